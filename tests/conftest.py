"""Shared fixtures: in-memory catalog databases and song factories."""

import random

import pytest

from moodlist.config import DEFAULT_GENRES
from moodlist.db import Database, Song
from moodlist.generate.tags import TagTranslator

SONGS_PER_GENRE = 40


def _make_song(song_id, genre="rock", **features):
    return Song(song_id=song_id, genre=genre, title=f"Song {song_id}", **features)


def _build_catalog(seed: int = 0):
    """Synthetic catalog: SONGS_PER_GENRE songs for every default genre."""
    rng = random.Random(seed)
    songs = []
    song_id = 1
    for genre in DEFAULT_GENRES:
        for _ in range(SONGS_PER_GENRE):
            songs.append(
                _make_song(
                    song_id,
                    genre=genre,
                    acousticness=rng.random(),
                    danceability=rng.random(),
                    energy=rng.random(),
                    instrumentalness=rng.random(),
                    liveness=rng.random(),
                    speechiness=rng.random(),
                    valence=rng.random(),
                    tempo=rng.uniform(60.0, 180.0),
                )
            )
            song_id += 1
    return songs


@pytest.fixture
def make_song():
    """Factory for Song objects with default features."""
    return _make_song


@pytest.fixture
def database():
    """Empty in-memory database."""
    db = Database(":memory:")
    db.connect()
    yield db
    db.disconnect()


@pytest.fixture
def catalog(database):
    """In-memory database filled with the synthetic catalog."""
    database.add_songs(_build_catalog(seed=123))
    return database


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def translator():
    """Tag translator over the default genre vocabulary."""
    return TagTranslator(DEFAULT_GENRES)
