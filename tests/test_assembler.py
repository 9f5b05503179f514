"""
Unit tests for PlaylistAssembler.

Tests tag-driven generation, random playlists and unsatisfiable queries
against the in-memory synthetic catalog.
"""

import logging

import pytest
from unittest.mock import patch
from moodlist.config import DEFAULT_GENRES, Config
from moodlist.exceptions import UnsatisfiableQueryError
from moodlist.generate.assembler import PlaylistAssembler
from moodlist.generate.membership import MembershipIndex


@pytest.fixture
def assembler(catalog, translator, rng):
    return PlaylistAssembler(catalog, translator, rng=rng)


def members(database, playlist):
    return list(MembershipIndex(database, playlist).ordered_songs())


def positions(database, playlist):
    return [m.position for m in database.list_memberships(playlist.playlist_id)]


class TestGenerate:
    """Test generation of the correct length."""

    def test_happy_playlist(self, catalog, assembler):
        """A single feature tag yields K matching songs at positions 1..K."""
        playlist = assembler.generate("test 1", ["happy"], 20)

        songs = members(catalog, playlist)
        assert len(songs) == 20
        assert all(s.valence >= 0.6 for s in songs)
        assert positions(catalog, playlist) == list(range(1, 21))

    def test_narrow_query_relaxes(self, catalog, assembler):
        """A query too narrow for K is widened but keeps its genre."""
        playlist = assembler.generate("test 2", ["country", "melancholy", "chill"], 30)

        songs = members(catalog, playlist)
        assert len(songs) == 30
        assert all(s.genre == "country" for s in songs)
        assert playlist.genres == ["country"]

    def test_two_genres(self, catalog, assembler):
        """Songs come from either requested genre."""
        playlist = assembler.generate("test 3", ["jazz", "country", "slow", "acoustic"], 25)

        songs = members(catalog, playlist)
        assert len(songs) == 25
        assert {s.genre for s in songs} <= {"jazz", "country"}
        assert playlist.genres == ["jazz", "country"]

    def test_no_duplicate_members(self, catalog, assembler):
        """No song appears twice in a generated playlist."""
        playlist = assembler.generate("dupes", ["energetic", "fast"], 40)
        ids = [s.song_id for s in members(catalog, playlist)]
        assert len(ids) == len(set(ids)) == 40

    def test_without_genre_tags_uses_full_vocabulary(self, assembler):
        """Active genres default to the whole vocabulary."""
        playlist = assembler.generate("feel good", ["happy", "dancing"], 10)
        assert playlist.genres == list(DEFAULT_GENRES)

    def test_persisted_by_name(self, catalog, assembler):
        """The playlist can be found again by name."""
        playlist = assembler.generate("saved", ["happy"], 5)
        loaded = catalog.find_playlist("saved")
        assert loaded.playlist_id == playlist.playlist_id
        assert catalog.count_memberships(loaded.playlist_id) == 5

    def test_single_string_is_one_tag(self, catalog, assembler):
        """A bare string is treated as one tag, not a sequence of letters."""
        playlist = assembler.generate("solo", "Rock", 10)

        songs = members(catalog, playlist)
        assert len(songs) == 10
        assert all(s.genre == "rock" for s in songs)
        assert playlist.genres == ["rock"]

    def test_blank_string_is_random(self, catalog, assembler):
        """A blank string means no tags at all."""
        with patch.object(assembler.search, "search") as mock_search:
            playlist = assembler.generate("blank", "  ", 5)

        mock_search.assert_not_called()
        assert len(members(catalog, playlist)) == 5


class TestDefaultLength:
    """Test the configured default playlist length."""

    def test_length_defaults(self, catalog, translator, rng):
        """Omitting length uses default_length."""
        assembler = PlaylistAssembler(catalog, translator, rng=rng, default_length=7)

        tagged = assembler.generate("tagged", ["happy"])
        untagged = assembler.random_playlist("untagged")

        assert len(members(catalog, tagged)) == 7
        assert len(members(catalog, untagged)) == 7

    def test_from_config(self, catalog, rng):
        """from_config reads generate.default_length and the vocabulary."""
        config = Config({
            "generate": {"default_length": 12},
            "genres": {"vocabulary": ["rock", "jazz"]},
        })
        assembler = PlaylistAssembler.from_config(catalog, config, rng=rng)

        playlist = assembler.generate("configured", ["energetic"])

        assert assembler.default_length == 12
        assert playlist.genres == ["rock", "jazz"]
        assert len(members(catalog, playlist)) == 12

    def test_from_config_vocabulary_limits_genre_tags(self, catalog, rng):
        """Genres outside the configured vocabulary are unrecognized."""
        config = Config({"genres": {"vocabulary": ["rock"]}})
        assembler = PlaylistAssembler.from_config(catalog, config, rng=rng)

        translated = assembler.translator.translate(["jazz", "rock"])

        assert translated.genres == ("rock",)
        assert translated.unrecognized == ("jazz",)


class TestRandomPlaylist:
    """Test generation without attributes."""

    def test_no_tags_bypasses_search(self, catalog, assembler):
        """An empty tag list samples the catalog without searching."""
        with patch.object(assembler.search, "search") as mock_search:
            playlist = assembler.generate("test 2", [], 30)

        mock_search.assert_not_called()
        assert len(members(catalog, playlist)) == 30
        assert positions(catalog, playlist) == list(range(1, 31))
        assert playlist.genres == list(DEFAULT_GENRES)

    def test_only_unrecognized_tags_sample_catalog(self, catalog, assembler):
        """Tags that translate to nothing fall back to a catalog sample."""
        playlist = assembler.generate("mystery", ["polka"], 12)
        assert len(members(catalog, playlist)) == 12

    def test_capped_at_catalog_size(self, database, make_song, translator, rng):
        """A random playlist never exceeds the catalog size."""
        database.add_songs([make_song(i) for i in range(1, 4)])
        assembler = PlaylistAssembler(database, translator, rng=rng)

        playlist = assembler.random_playlist("tiny", 10)

        assert len(members(database, playlist)) == 3


class TestUnsatisfiable:
    """Test queries that match nothing."""

    def test_raises_and_creates_nothing(self, database, make_song, translator, rng):
        """An unsatisfiable query leaves no playlist behind."""
        database.add_songs([make_song(i, genre="jazz") for i in range(1, 6)])
        assembler = PlaylistAssembler(database, translator, rng=rng)

        with pytest.raises(UnsatisfiableQueryError):
            assembler.generate("nope", ["rock"], 5)

        assert database.get_stats()["total_playlists"] == 0

    def test_shortfall_uses_what_was_found(self, database, make_song, translator, rng, caplog):
        """Fewer than K matches still builds a playlist and logs a warning."""
        database.add_songs([make_song(i, genre="rock") for i in range(1, 4)])
        database.add_songs([make_song(i, genre="jazz") for i in range(4, 10)])
        assembler = PlaylistAssembler(database, translator, rng=rng)

        with caplog.at_level(logging.WARNING):
            playlist = assembler.generate("short", ["rock"], 5)

        songs = members(database, playlist)
        assert len(songs) == 3
        assert all(s.genre == "rock" for s in songs)
        assert "Only 3 of 5" in caplog.text
