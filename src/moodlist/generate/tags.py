"""
Tag Translator: turn symbolic mood and genre tags into catalog predicates.

A tag is either a feature tag ("energetic", "slow", ...) mapped to a fixed
threshold comparison, or a genre from the configured vocabulary mapped to a
genre equality test. Anything else is reported back as unrecognized.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .predicates import Comparison, Op

logger = logging.getLogger(__name__)


FEATURE_TAGS: Dict[str, Comparison] = {
    "acoustic": Comparison("acousticness", Op.GE, 0.6),
    "dancing": Comparison("danceability", Op.GE, 0.6),
    "energetic": Comparison("energy", Op.GE, 0.6),
    "chill": Comparison("energy", Op.LE, 0.4),
    "live": Comparison("liveness", Op.GE, 0.6),
    "lyrical": Comparison("instrumentalness", Op.LE, 0.4),
    "fast": Comparison("tempo", Op.GE, 125.0),
    "slow": Comparison("tempo", Op.LE, 115.0),
    "happy": Comparison("valence", Op.GE, 0.6),
    "melancholy": Comparison("valence", Op.LE, 0.4),
}

LYRICAL_PREDICATES: Dict[str, Comparison] = {
    "instrumentalness": Comparison("instrumentalness", Op.LE, 0.4),
    "speechiness": Comparison("speechiness", Op.GE, 0.6),
}


@dataclass(frozen=True)
class TranslatedTags:
    """
    Result of translating a tag list.

    Attributes:
        feature_predicates: Unique threshold comparisons, in tag order
        genre_predicates: Unique genre equality comparisons, in tag order
        genres: Distinct genre names explicitly requested
        unrecognized: Tags matching neither table
    """

    feature_predicates: Tuple[Comparison, ...] = ()
    genre_predicates: Tuple[Comparison, ...] = ()
    genres: Tuple[str, ...] = ()
    unrecognized: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when no usable predicate came out of the tags."""
        return not self.feature_predicates and not self.genre_predicates


class TagTranslator:
    """Maps tags onto predicates using a fixed feature table and a genre vocabulary."""

    def __init__(self, genres: Sequence[str], lyrical_feature: str = "instrumentalness"):
        """
        Args:
            genres: Closed genre vocabulary
            lyrical_feature: Column the "lyrical" tag tests, "instrumentalness" or "speechiness"
        """
        if lyrical_feature not in LYRICAL_PREDICATES:
            raise ValueError(f"Unsupported lyrical feature: {lyrical_feature!r}")
        self.genres = tuple(g.strip().lower() for g in genres)
        self.feature_tags = dict(FEATURE_TAGS)
        self.feature_tags["lyrical"] = LYRICAL_PREDICATES[lyrical_feature]

    @classmethod
    def from_config(cls, config) -> "TagTranslator":
        """Build a translator from a moodlist.config.Config."""
        return cls(config.genres, config.get("tags", "lyrical_feature", "instrumentalness"))

    def is_genre(self, tag: str) -> bool:
        return tag.strip().lower() in self.genres

    def translate(self, tags: Optional[Iterable[str]]) -> TranslatedTags:
        """
        Translate tags into feature and genre predicates.

        Duplicates (including two tags that map to the same threshold) are
        dropped, keeping first-appearance order.

        Args:
            tags: Tag strings, or one tag as a bare string; matching ignores
                case and surrounding whitespace

        Returns:
            TranslatedTags
        """
        features: List[Comparison] = []
        genre_predicates: List[Comparison] = []
        genres: List[str] = []
        unrecognized: List[str] = []

        if isinstance(tags, str):
            tags = [tags]
        for raw in tags or ():
            tag = str(raw).strip().lower()
            if tag in self.feature_tags:
                predicate = self.feature_tags[tag]
                if predicate not in features:
                    features.append(predicate)
            elif tag in self.genres:
                if tag not in genres:
                    genres.append(tag)
                    genre_predicates.append(Comparison("genre", Op.EQ, tag))
            else:
                unrecognized.append(raw)

        if unrecognized:
            logger.warning(f"Ignoring unrecognized tags: {', '.join(map(str, unrecognized))}")

        logger.debug(
            f"Translated {len(features)} feature and {len(genre_predicates)} genre predicates"
        )

        return TranslatedTags(
            feature_predicates=tuple(features),
            genre_predicates=tuple(genre_predicates),
            genres=tuple(genres),
            unrecognized=tuple(unrecognized),
        )
