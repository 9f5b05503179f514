"""
Song features: the closed set of numeric columns a playlist can be tuned on.

Feature values are read through an explicit accessor table rather than by
attribute name, so only the columns listed in Feature are reachable.
"""

import logging
from enum import Enum
from operator import attrgetter
from typing import Callable, Dict, Iterable, Union

logger = logging.getLogger(__name__)


class Feature(Enum):
    """Numeric song columns. Values are the catalog column names."""

    ACOUSTICNESS = "acousticness"
    DANCEABILITY = "danceability"
    ENERGY = "energy"
    INSTRUMENTALNESS = "instrumentalness"
    LIVENESS = "liveness"
    SPEECHINESS = "speechiness"
    VALENCE = "valence"
    TEMPO = "tempo"

    @classmethod
    def parse(cls, name: Union[str, "Feature"]) -> "Feature":
        """
        Resolve a feature from its column name.

        Raises:
            ValueError: If the name is not a known feature.
        """
        if isinstance(name, Feature):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown feature: {name!r}") from None


FEATURE_ACCESSORS: Dict[Feature, Callable] = {
    Feature.ACOUSTICNESS: attrgetter("acousticness"),
    Feature.DANCEABILITY: attrgetter("danceability"),
    Feature.ENERGY: attrgetter("energy"),
    Feature.INSTRUMENTALNESS: attrgetter("instrumentalness"),
    Feature.LIVENESS: attrgetter("liveness"),
    Feature.SPEECHINESS: attrgetter("speechiness"),
    Feature.VALENCE: attrgetter("valence"),
    Feature.TEMPO: attrgetter("tempo"),
}

# (high, low) sufficiency thresholds
DEFAULT_THRESHOLDS = (0.6, 0.4)
TEMPO_THRESHOLDS = (125.0, 115.0)


def feature_value(song, feature: Feature) -> float:
    """Read one feature value from a song."""
    return float(FEATURE_ACCESSORS[feature](song))


def thresholds_for(feature: Feature) -> tuple:
    """Return the (high, low) thresholds used to judge a feature."""
    return TEMPO_THRESHOLDS if feature is Feature.TEMPO else DEFAULT_THRESHOLDS


def average(songs: Iterable, feature: Feature) -> float:
    """
    Mean value of a feature over songs.

    Args:
        songs: Songs to average over
        feature: Feature to average

    Returns:
        Arithmetic mean

    Raises:
        ValueError: If there are no songs.
    """
    values = [feature_value(song, feature) for song in songs]
    if not values:
        raise ValueError(f"Cannot average {feature.value} over zero songs")
    return sum(values) / len(values)


def is_sufficient(value: float, feature: Feature, increasing: bool) -> bool:
    """
    Check whether a value is high (or low) enough to count as tagged.

    Args:
        value: Average or single song value
        feature: Feature the value belongs to
        increasing: True checks value >= high threshold, False checks value <= low threshold

    Returns:
        True if the value meets the threshold
    """
    high, low = thresholds_for(feature)
    return value >= high if increasing else value <= low


def distribution(songs: Iterable, feature: Feature) -> Dict[str, int]:
    """
    Count songs on each side of the thresholds for a feature.

    Returns:
        Dict with "positive" (>= high), "negative" (<= low) and "neutral" counts
    """
    counts = {"positive": 0, "negative": 0, "neutral": 0}
    for song in songs:
        value = feature_value(song, feature)
        if is_sufficient(value, feature, True):
            counts["positive"] += 1
        elif is_sufficient(value, feature, False):
            counts["negative"] += 1
        else:
            counts["neutral"] += 1
    return counts
