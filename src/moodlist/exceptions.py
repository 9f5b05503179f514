"""Custom exceptions for moodlist."""


class MoodlistError(Exception):
    """Base class for playlist generation and editing errors."""

    pass


class UnsatisfiableQueryError(MoodlistError):
    """Raised when a generation query matches no songs even after relaxation."""

    pass


class SongNotInPlaylistError(MoodlistError, LookupError):
    """Raised when removing a song that is not a member of the playlist."""

    pass


class DuplicateSongError(MoodlistError):
    """Raised when adding a song that is already a member of the playlist."""

    pass


class EmptyPlaylistError(MoodlistError, ValueError):
    """Raised when a feature average is requested for a playlist with no members."""

    pass
