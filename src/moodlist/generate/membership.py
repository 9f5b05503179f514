"""
Ordered Membership Index: keep playlist positions a gap-free 1..N sequence.

Every mutation runs in a single database transaction, so a committed
playlist always has positions forming a permutation of 1..N.
"""

import logging
import random
from typing import Iterator, List, Optional

from ..db import Database, Playlist
from ..exceptions import DuplicateSongError, SongNotInPlaylistError

logger = logging.getLogger(__name__)


class OrderedSongs:
    """Restartable view of a playlist's songs in position order."""

    def __init__(self, database: Database, playlist_id: int):
        self.db = database
        self.playlist_id = playlist_id

    def __iter__(self) -> Iterator:
        # Re-read on every pass so edits between iterations are visible
        return iter(self.db.member_songs(self.playlist_id))

    def __len__(self) -> int:
        return self.db.count_memberships(self.playlist_id)


class MembershipIndex:
    """Position bookkeeping for one playlist."""

    def __init__(self, database: Database, playlist: Playlist, rng: Optional[random.Random] = None):
        """
        Args:
            database: Connected Database holding the playlist
            playlist: Playlist to manage
            rng: Random source for shuffle()
        """
        self.db = database
        self.playlist = playlist
        self.rng = rng or random.Random()

    @property
    def playlist_id(self) -> int:
        return self.playlist.playlist_id

    def __len__(self) -> int:
        return self.db.count_memberships(self.playlist_id)

    def __contains__(self, song) -> bool:
        return self.db.get_membership(self.playlist_id, song.song_id) is not None

    def valid_index(self, position: int) -> bool:
        """True if 1 <= position <= playlist size."""
        return 1 <= position <= len(self)

    def add(self, song) -> int:
        """
        Append a song at position N+1.

        Args:
            song: Catalog song

        Returns:
            Position assigned

        Raises:
            DuplicateSongError: If the song is already in the playlist.
        """
        with self.db.transaction():
            if song in self:
                raise DuplicateSongError(
                    f"Song {song.song_id} already in playlist {self.playlist_id}"
                )
            position = len(self) + 1
            self.db.insert_membership(self.playlist_id, song.song_id, position)
        logger.debug(f"Playlist {self.playlist_id}: added song {song.song_id} at {position}")
        return position

    def delete(self, song) -> int:
        """
        Remove a song and close the gap it leaves.

        Every member after the removed one moves up by one position.

        Args:
            song: Member song

        Returns:
            Position the song held

        Raises:
            SongNotInPlaylistError: If the song is not in the playlist.
        """
        with self.db.transaction():
            membership = self.db.get_membership(self.playlist_id, song.song_id)
            if membership is None:
                raise SongNotInPlaylistError(
                    f"Song {song.song_id} not found in playlist {self.playlist_id}"
                )
            self.db.remove_membership(self.playlist_id, song.song_id)
            self.db.shift_positions(self.playlist_id, membership.position + 1, None, -1)
        logger.debug(
            f"Playlist {self.playlist_id}: deleted song {song.song_id} from {membership.position}"
        )
        return membership.position

    def move_to(self, old_position: int, new_position: int) -> Playlist:
        """
        Move the member at old_position to new_position.

        Moving up the list (old > new) pushes positions [new, old-1] down by
        one; moving down (old < new) pulls positions [old+1, new] up by one.
        Out-of-range or equal positions leave the playlist untouched.

        Returns:
            The playlist
        """
        if (
            old_position == new_position
            or not self.valid_index(old_position)
            or not self.valid_index(new_position)
        ):
            logger.debug(
                f"Playlist {self.playlist_id}: ignoring move {old_position} -> {new_position}"
            )
            return self.playlist

        with self.db.transaction():
            moved = self.db.membership_at(self.playlist_id, old_position)
            if old_position > new_position:
                self.db.shift_positions(self.playlist_id, new_position, old_position - 1, 1)
            else:
                self.db.shift_positions(self.playlist_id, old_position + 1, new_position, -1)
            self.db.set_position(self.playlist_id, moved.song_id, new_position)

        logger.debug(f"Playlist {self.playlist_id}: moved {old_position} -> {new_position}")
        return self.playlist

    def shuffle(self) -> Playlist:
        """Assign a uniformly random permutation of positions. Returns the playlist."""
        with self.db.transaction():
            memberships = self.db.list_memberships(self.playlist_id)
            self.rng.shuffle(memberships)
            for position, membership in enumerate(memberships, start=1):
                self.db.set_position(self.playlist_id, membership.song_id, position)
        logger.debug(f"Playlist {self.playlist_id}: shuffled {len(memberships)} songs")
        return self.playlist

    def ordered_songs(self) -> OrderedSongs:
        """Songs in ascending position order (lazy, can be iterated repeatedly)."""
        return OrderedSongs(self.db, self.playlist_id)

    def positions(self) -> List[int]:
        """Positions as stored, in ascending order."""
        return [m.position for m in self.db.list_memberships(self.playlist_id)]
