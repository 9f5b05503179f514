"""
Playlist Assembler: build a named playlist from tags.

Orchestrates tag translation, relaxation search, sampling and the initial
population of the playlist's ordered membership.
"""

import logging
import random
from typing import List, Optional, Sequence, Union

from ..db import Database, Playlist
from ..exceptions import UnsatisfiableQueryError
from .membership import MembershipIndex
from .search import RelaxationSearch
from .tags import TagTranslator

logger = logging.getLogger(__name__)


class PlaylistAssembler:
    """Creates playlists from tag queries or random catalog samples."""

    def __init__(
        self,
        database: Database,
        translator: TagTranslator,
        rng: Optional[random.Random] = None,
        default_length: int = 20,
    ):
        """
        Args:
            database: Connected Database (catalog + playlist storage)
            translator: TagTranslator carrying the genre vocabulary
            rng: Random source shared by search and sampling
            default_length: Playlist length used when none is given
        """
        self.db = database
        self.translator = translator
        self.rng = rng or random.Random()
        self.default_length = default_length
        self.search = RelaxationSearch(database, rng=self.rng)

    @classmethod
    def from_config(
        cls,
        database: Database,
        config,
        rng: Optional[random.Random] = None,
    ) -> "PlaylistAssembler":
        """Build an assembler from a moodlist.config.Config."""
        return cls(
            database,
            TagTranslator.from_config(config),
            rng=rng,
            default_length=config.get("generate", "default_length", 20),
        )

    def generate(
        self,
        name: str,
        tags: Union[str, Sequence[str]],
        length: Optional[int] = None,
    ) -> Playlist:
        """
        Generate a playlist matching tags.

        Args:
            name: Playlist name
            tags: Feature and genre tags; empty means a random playlist.
                A single string is one tag.
            length: Desired number of songs (defaults to default_length)

        Returns:
            The persisted Playlist

        Raises:
            UnsatisfiableQueryError: If no song matches even after relaxation.
        """
        if isinstance(tags, str):
            tags = [tags] if tags.strip() else []
        if length is None:
            length = self.default_length
        if not tags:
            return self.random_playlist(name, length)

        translated = self.translator.translate(tags)
        result = self.search.search(
            translated.feature_predicates, translated.genre_predicates, length
        )

        if not result.songs:
            raise UnsatisfiableQueryError(
                f"Couldn't satisfy query for playlist {name!r} (tags: {', '.join(tags)})"
            )

        count = min(length, len(result.songs))
        if count < length:
            logger.warning(f"Only {count} of {length} songs available for {name!r}")
        chosen = self.rng.sample(result.songs, count)

        genres = list(translated.genres) or list(self.translator.genres)
        playlist = self._create(name, chosen, genres)
        logger.info(
            f"Playlist {name!r} built: {count} songs from {len(result.songs)} candidates"
        )
        return playlist

    def random_playlist(self, name: str, length: Optional[int] = None) -> Playlist:
        """
        Fill a playlist with a uniform sample of the whole catalog.

        Args:
            name: Playlist name
            length: Desired number of songs, capped at catalog size
                (defaults to default_length)

        Returns:
            The persisted Playlist
        """
        if length is None:
            length = self.default_length
        songs = self.db.sample_songs(length, self.rng)
        playlist = self._create(name, songs, list(self.translator.genres))
        logger.info(f"Random playlist {name!r} built: {len(songs)} songs")
        return playlist

    def _create(self, name: str, songs: List, genres: List[str]) -> Playlist:
        with self.db.transaction():
            playlist_id = self.db.create_playlist(name)
            playlist = Playlist(playlist_id=playlist_id, name=name, genres=genres)
            index = MembershipIndex(self.db, playlist, rng=self.rng)
            for song in songs:
                index.add(song)
        return playlist
