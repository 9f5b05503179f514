"""
SQLite Database Management for moodlist.

Holds the song catalog (numeric mood features + genre) and playlist
membership rows.

- Schema: songs, playlists, playlist_songs (playlist_id, song_id, position)
- Catalog queries take predicate trees from moodlist.generate.predicates
- Writes go through transaction(); nothing commits half an operation
- Single connection, no concurrent writers
"""

import sqlite3
import logging
import random
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .generate.features import Feature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Song:
    """Immutable catalog entry."""

    song_id: int
    genre: str
    acousticness: float = 0.0
    danceability: float = 0.0
    energy: float = 0.0
    instrumentalness: float = 0.0
    liveness: float = 0.0
    speechiness: float = 0.0
    valence: float = 0.0
    tempo: float = 0.0
    title: Optional[str] = None
    artist: Optional[str] = None


@dataclass
class Playlist:
    """Named playlist. `genres` is the active genre set and is not persisted."""

    playlist_id: int
    name: str
    genres: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Membership:
    """A song placed in a playlist at a 1-based position."""

    playlist_id: int
    song_id: int
    position: int


SONG_COLUMNS = (
    "id", "title", "artist", "genre",
    "acousticness", "danceability", "energy", "instrumentalness",
    "liveness", "speechiness", "valence", "tempo",
)


def _row_to_song(row: sqlite3.Row) -> Song:
    return Song(
        song_id=row["id"],
        title=row["title"],
        artist=row["artist"],
        genre=row["genre"],
        acousticness=row["acousticness"],
        danceability=row["danceability"],
        energy=row["energy"],
        instrumentalness=row["instrumentalness"],
        liveness=row["liveness"],
        speechiness=row["speechiness"],
        valence=row["valence"],
        tempo=row["tempo"],
    )


class Database:
    """SQLite database manager for the song catalog and playlists."""

    SCHEMA_VERSION = 1

    SCHEMA = """
    -- Songs table: catalog entries with mood features
    CREATE TABLE IF NOT EXISTS songs (
        id INTEGER PRIMARY KEY,
        title TEXT,
        artist TEXT,
        genre TEXT NOT NULL,
        acousticness REAL NOT NULL DEFAULT 0,
        danceability REAL NOT NULL DEFAULT 0,
        energy REAL NOT NULL DEFAULT 0,
        instrumentalness REAL NOT NULL DEFAULT 0,
        liveness REAL NOT NULL DEFAULT 0,
        speechiness REAL NOT NULL DEFAULT 0,
        valence REAL NOT NULL DEFAULT 0,
        tempo REAL NOT NULL DEFAULT 0
    );

    -- Playlists
    CREATE TABLE IF NOT EXISTS playlists (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    -- Memberships; positions are renumbered in place, so no UNIQUE(position)
    CREATE TABLE IF NOT EXISTS playlist_songs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        playlist_id INTEGER NOT NULL,
        song_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        UNIQUE (playlist_id, song_id),
        FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE,
        FOREIGN KEY (song_id) REFERENCES songs(id) ON DELETE CASCADE
    );

    -- Schema version tracking
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_songs_genre ON songs(genre);
    CREATE INDEX IF NOT EXISTS idx_playlist_songs_playlist ON playlist_songs(playlist_id, position);
    """

    def __init__(self, db_path: str = "data/db/catalog.sqlite"):
        """
        Initialize database connection settings.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn: Optional[sqlite3.Connection] = None
        self._tx_depth = 0

    @classmethod
    def from_config(cls, config) -> "Database":
        """Database at the configured catalog.db_path (not yet connected)."""
        return cls(config.get("catalog", "db_path", "data/db/catalog.sqlite"))

    def connect(self) -> None:
        """Open database connection and initialize schema."""
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        logger.info(f"Connected to database: {self.db_path}")
        self._initialize_schema()

    def disconnect(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database disconnected")

    def _initialize_schema(self) -> None:
        """Initialize or check schema version."""
        assert self.conn is not None
        cursor = self.conn.cursor()

        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if not cursor.fetchone():
            logger.info("Initializing database schema...")
            cursor.executescript(self.SCHEMA)
            cursor.execute(
                "INSERT INTO schema_version (version, updated_at) VALUES (?, ?)",
                (self.SCHEMA_VERSION, datetime.now(timezone.utc).isoformat()),
            )
            self.conn.commit()
            logger.info(f"Database schema initialized (v{self.SCHEMA_VERSION})")
        else:
            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            current_version = cursor.fetchone()[0]
            if current_version < self.SCHEMA_VERSION:
                logger.warning(
                    f"Schema version mismatch: {current_version} < {self.SCHEMA_VERSION}. "
                    f"Consider running migration."
                )

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Group writes into one commit.

        Nested uses join the outermost transaction; the commit (or rollback
        on error) happens when the outermost block exits.
        """
        assert self.conn is not None
        self._tx_depth += 1
        try:
            yield self.conn
        except Exception:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.rollback()
                logger.debug("Transaction rolled back")
            raise
        else:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.commit()

    def add_song(self, song: Song) -> None:
        """
        Add or replace a song in the catalog.

        Args:
            song: Song to store.
        """
        self.add_songs([song])

    def add_songs(self, songs: Iterable[Song]) -> int:
        """
        Add or replace several songs in one transaction.

        Returns:
            Number of songs written.
        """
        assert self.conn is not None
        rows = [
            (
                s.song_id, s.title, s.artist, s.genre,
                s.acousticness, s.danceability, s.energy, s.instrumentalness,
                s.liveness, s.speechiness, s.valence, s.tempo,
            )
            for s in songs
        ]
        with self.transaction() as conn:
            # Upsert rather than REPLACE, which would cascade-delete memberships
            conn.executemany(
                f"INSERT INTO songs ({', '.join(SONG_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in SONG_COLUMNS)}) "
                f"ON CONFLICT(id) DO UPDATE SET "
                + ", ".join(f"{col} = excluded.{col}" for col in SONG_COLUMNS[1:]),
                rows,
            )
        logger.debug(f"Added/updated {len(rows)} songs")
        return len(rows)

    def get_song(self, song_id: int) -> Optional[Song]:
        """
        Retrieve a song by ID.

        Returns:
            Song or None if not found.
        """
        assert self.conn is not None
        row = self.conn.execute("SELECT * FROM songs WHERE id = ?", (song_id,)).fetchone()
        return _row_to_song(row) if row else None

    def find_songs(self, predicate) -> List[Song]:
        """
        List catalog songs matching a predicate.

        Args:
            predicate: Predicate tree exposing to_sql().

        Returns:
            Distinct songs, ordered by ID.
        """
        assert self.conn is not None
        where, params = predicate.to_sql()
        rows = self.conn.execute(
            f"SELECT * FROM songs WHERE {where} ORDER BY id", params
        ).fetchall()
        logger.debug(f"Query [{predicate}] matched {len(rows)} songs")
        return [_row_to_song(row) for row in rows]

    def all_song_ids(self) -> List[int]:
        """IDs of every catalog song, ascending."""
        assert self.conn is not None
        return [row[0] for row in self.conn.execute("SELECT id FROM songs ORDER BY id")]

    def sample_songs(self, count: int, rng: Optional[random.Random] = None) -> List[Song]:
        """
        Uniformly sample songs from the whole catalog.

        Args:
            count: Songs wanted; capped at catalog size.
            rng: Random source (fresh unseeded Random if None).

        Returns:
            Sampled songs in sampled order.
        """
        rng = rng or random.Random()
        ids = self.all_song_ids()
        if count > len(ids):
            logger.warning(f"Requested {count} songs but catalog holds {len(ids)}")
            count = len(ids)
        chosen = rng.sample(ids, count)
        by_id = {song.song_id: song for song in self.get_songs(chosen)}
        return [by_id[song_id] for song_id in chosen]

    def get_songs(self, song_ids: Sequence[int]) -> List[Song]:
        """Fetch songs by ID (order not guaranteed, missing IDs skipped)."""
        assert self.conn is not None
        songs: List[Song] = []
        # Stay under SQLite's bound-parameter limit
        for start in range(0, len(song_ids), 500):
            chunk = list(song_ids[start:start + 500])
            rows = self.conn.execute(
                f"SELECT * FROM songs WHERE id IN ({', '.join('?' for _ in chunk)})", chunk
            ).fetchall()
            songs.extend(_row_to_song(row) for row in rows)
        return songs

    def create_playlist(self, name: str) -> int:
        """
        Insert a playlist row.

        Returns:
            New playlist ID.
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO playlists (name, created_at) VALUES (?, ?)",
                (name, datetime.now(timezone.utc).isoformat()),
            )
        logger.debug(f"Created playlist {cursor.lastrowid}: {name}")
        return cursor.lastrowid

    def get_playlist(self, playlist_id: int, genres: Optional[List[str]] = None) -> Optional[Playlist]:
        """
        Load a playlist by ID.

        Args:
            playlist_id: Playlist ID.
            genres: Active genres to attach (not stored in the database).

        Returns:
            Playlist or None if not found.
        """
        assert self.conn is not None
        row = self.conn.execute(
            "SELECT id, name FROM playlists WHERE id = ?", (playlist_id,)
        ).fetchone()
        if not row:
            return None
        return Playlist(playlist_id=row["id"], name=row["name"], genres=list(genres or []))

    def find_playlist(self, name: str, genres: Optional[List[str]] = None) -> Optional[Playlist]:
        """Load the most recently created playlist with the given name."""
        assert self.conn is not None
        row = self.conn.execute(
            "SELECT id FROM playlists WHERE name = ? ORDER BY id DESC LIMIT 1", (name,)
        ).fetchone()
        return self.get_playlist(row["id"], genres) if row else None

    def list_memberships(self, playlist_id: int) -> List[Membership]:
        """Memberships of a playlist in ascending position order."""
        assert self.conn is not None
        rows = self.conn.execute(
            "SELECT playlist_id, song_id, position FROM playlist_songs "
            "WHERE playlist_id = ? ORDER BY position, id",
            (playlist_id,),
        ).fetchall()
        return [Membership(row["playlist_id"], row["song_id"], row["position"]) for row in rows]

    def count_memberships(self, playlist_id: int) -> int:
        assert self.conn is not None
        return self.conn.execute(
            "SELECT COUNT(*) FROM playlist_songs WHERE playlist_id = ?", (playlist_id,)
        ).fetchone()[0]

    def get_membership(self, playlist_id: int, song_id: int) -> Optional[Membership]:
        assert self.conn is not None
        row = self.conn.execute(
            "SELECT playlist_id, song_id, position FROM playlist_songs "
            "WHERE playlist_id = ? AND song_id = ?",
            (playlist_id, song_id),
        ).fetchone()
        return Membership(row["playlist_id"], row["song_id"], row["position"]) if row else None

    def membership_at(self, playlist_id: int, position: int) -> Optional[Membership]:
        assert self.conn is not None
        row = self.conn.execute(
            "SELECT playlist_id, song_id, position FROM playlist_songs "
            "WHERE playlist_id = ? AND position = ?",
            (playlist_id, position),
        ).fetchone()
        return Membership(row["playlist_id"], row["song_id"], row["position"]) if row else None

    def insert_membership(self, playlist_id: int, song_id: int, position: int) -> None:
        """Insert a membership row. Call inside transaction()."""
        assert self.conn is not None
        self.conn.execute(
            "INSERT INTO playlist_songs (playlist_id, song_id, position) VALUES (?, ?, ?)",
            (playlist_id, song_id, position),
        )

    def remove_membership(self, playlist_id: int, song_id: int) -> None:
        """Delete a membership row. Call inside transaction()."""
        assert self.conn is not None
        self.conn.execute(
            "DELETE FROM playlist_songs WHERE playlist_id = ? AND song_id = ?",
            (playlist_id, song_id),
        )

    def shift_positions(self, playlist_id: int, low: int, high: Optional[int], delta: int) -> int:
        """
        Add delta to every position in [low, high] (high=None means no upper bound).

        Call inside transaction().

        Returns:
            Number of memberships shifted.
        """
        assert self.conn is not None
        query = "UPDATE playlist_songs SET position = position + ? WHERE playlist_id = ? AND position >= ?"
        params: List[Any] = [delta, playlist_id, low]
        if high is not None:
            query += " AND position <= ?"
            params.append(high)
        return self.conn.execute(query, params).rowcount

    def set_position(self, playlist_id: int, song_id: int, position: int) -> None:
        """Set one membership's position. Call inside transaction()."""
        assert self.conn is not None
        self.conn.execute(
            "UPDATE playlist_songs SET position = ? WHERE playlist_id = ? AND song_id = ?",
            (position, playlist_id, song_id),
        )

    def member_songs(self, playlist_id: int) -> List[Song]:
        """Songs of a playlist in ascending position order."""
        assert self.conn is not None
        rows = self.conn.execute(
            "SELECT s.* FROM playlist_songs ps JOIN songs s ON s.id = ps.song_id "
            "WHERE ps.playlist_id = ? ORDER BY ps.position, ps.id",
            (playlist_id,),
        ).fetchall()
        return [_row_to_song(row) for row in rows]

    def extreme_member(self, playlist_id: int, feature: Feature, highest: bool) -> Optional[Song]:
        """
        Member with the lowest (or highest) value of a feature.

        Ties go to the first (lowest) song ID when looking for the lowest
        value and to the last (highest) song ID when looking for the highest,
        i.e. first/last of the playlist ordered by (feature, id).

        Returns:
            Song or None for an empty playlist.
        """
        assert self.conn is not None
        column = Feature.parse(feature).value
        direction = "DESC" if highest else "ASC"
        row = self.conn.execute(
            f"SELECT s.* FROM playlist_songs ps JOIN songs s ON s.id = ps.song_id "
            f"WHERE ps.playlist_id = ? ORDER BY s.{column} {direction}, s.id {direction} LIMIT 1",
            (playlist_id,),
        ).fetchone()
        return _row_to_song(row) if row else None

    def get_stats(self) -> Dict[str, Any]:
        """
        Get database statistics.

        Returns:
            Dictionary with song/playlist counts, genre breakdown and tempo range.
        """
        assert self.conn is not None
        cursor = self.conn.cursor()

        cursor.execute("SELECT COUNT(*) FROM songs")
        total_songs = cursor.fetchone()[0]

        cursor.execute("SELECT COUNT(*) FROM playlists")
        total_playlists = cursor.fetchone()[0]

        cursor.execute("SELECT genre, COUNT(*) AS n FROM songs GROUP BY genre ORDER BY genre")
        genres = {row["genre"]: row["n"] for row in cursor.fetchall()}

        cursor.execute(
            "SELECT MIN(tempo) as min_tempo, MAX(tempo) as max_tempo, AVG(tempo) as avg_tempo FROM songs"
        )
        tempo_stats = dict(cursor.fetchone())

        return {
            "total_songs": total_songs,
            "total_playlists": total_playlists,
            "genres": genres,
            "tempo_stats": tempo_stats,
        }
