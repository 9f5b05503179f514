"""
Feature Optimizer: push a playlist's average feature value up or down.

Each iteration adds one random catalog song that beats the current average
and removes the member pulling hardest the other way. The loop ends when the
average is sufficient, no better song exists, or the replacement budget
(ceil(percent * starting size)) is spent.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from ..config import DEFAULT_GENRES
from ..db import Database, Playlist
from ..exceptions import EmptyPlaylistError
from . import features as feat
from .features import Feature
from .membership import MembershipIndex
from .predicates import And, Comparison, Op, Or

logger = logging.getLogger(__name__)

SUFFICIENT = "sufficient"
STALLED = "stalled"
BUDGET_EXHAUSTED = "budget_exhausted"


@dataclass
class OptimizationResult:
    """Outcome of one optimize() run."""

    feature: Feature
    increasing: bool
    status: str
    replacements: int
    budget: int
    average_before: float
    average_after: float
    added: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)


class FeatureOptimizer:
    """Incrementally replaces members to move a feature average toward a target."""

    def __init__(
        self,
        database: Database,
        playlist: Playlist,
        rng: Optional[random.Random] = None,
        vocabulary: Optional[Sequence[str]] = None,
        replace_percent: float = 0.25,
    ):
        """
        Args:
            database: Connected Database (catalog + playlist storage)
            playlist: Playlist to optimize; its genres restrict candidates
            rng: Random source for candidate choice
            vocabulary: Genres used when the playlist carries none
            replace_percent: Default replacement budget for optimize()
        """
        self.db = database
        self.playlist = playlist
        self.rng = rng or random.Random()
        self.vocabulary = list(vocabulary) if vocabulary else list(DEFAULT_GENRES)
        self.replace_percent = replace_percent
        self.index = MembershipIndex(database, playlist, rng=self.rng)

    @classmethod
    def from_config(
        cls,
        database: Database,
        playlist: Playlist,
        config,
        rng: Optional[random.Random] = None,
    ) -> "FeatureOptimizer":
        """Build an optimizer using the configured vocabulary and optimize.replace_percent."""
        return cls(
            database,
            playlist,
            rng=rng,
            vocabulary=config.genres,
            replace_percent=config.get("optimize", "replace_percent", 0.25),
        )

    @property
    def active_genres(self) -> List[str]:
        """The playlist's genres, or the whole vocabulary if it has none."""
        return list(self.playlist.genres) or list(self.vocabulary)

    def _members(self) -> List:
        songs = list(self.index.ordered_songs())
        if not songs:
            raise EmptyPlaylistError(
                f"Playlist {self.playlist.playlist_id} has no members to average"
            )
        return songs

    def average(self, feature: Union[str, Feature]) -> float:
        """
        Current mean of a feature across members.

        Raises:
            EmptyPlaylistError: If the playlist has no members.
        """
        return feat.average(self._members(), Feature.parse(feature))

    def feature_averages(self) -> Dict[str, float]:
        """Average of every feature, keyed by column name."""
        songs = self._members()
        return {f.value: feat.average(songs, f) for f in Feature}

    def distribution(self, feature: Union[str, Feature]) -> Dict[str, int]:
        """Count members above, below and between the feature thresholds."""
        return feat.distribution(self.index.ordered_songs(), Feature.parse(feature))

    def summary(self) -> Dict[str, Any]:
        """Name, length and feature averages of the playlist."""
        length = len(self.index)
        return {
            "name": self.playlist.name,
            "length": length,
            "data": self.feature_averages() if length else {},
        }

    def is_sufficient(self, feature: Union[str, Feature], increasing: bool) -> bool:
        """True if the average already counts as high (increasing) or low."""
        feature = Feature.parse(feature)
        return feat.is_sufficient(self.average(feature), feature, increasing)

    def better_songs(self, feature: Union[str, Feature], increasing: bool) -> List:
        """
        Catalog songs that would move the average the right way.

        Only songs in the playlist's active genres that are not already
        members qualify. An empty list means the playlist cannot improve.
        """
        feature = Feature.parse(feature)
        avg = self.average(feature)
        threshold = Comparison(feature.value, Op.GT if increasing else Op.LT, avg)
        genres = Or(tuple(Comparison("genre", Op.EQ, g) for g in self.active_genres))
        predicate = And((threshold, genres))

        members = {m.song_id for m in self.db.list_memberships(self.playlist.playlist_id)}
        return [song for song in self.db.find_songs(predicate) if song.song_id not in members]

    def optimize(
        self,
        feature: Union[str, Feature],
        increasing: bool,
        percent: Optional[float] = None,
    ) -> OptimizationResult:
        """
        Improve the playlist for a feature.

        Args:
            feature: Feature to tune
            increasing: True for "more" of the feature, False for "less"
            percent: Largest fraction of the starting playlist to replace
                (defaults to replace_percent)

        Returns:
            OptimizationResult describing why the loop stopped

        Raises:
            EmptyPlaylistError: If the playlist has no members.
        """
        feature = Feature.parse(feature)
        if percent is None:
            percent = self.replace_percent
        budget = math.ceil(percent * len(self.index))
        average_before = self.average(feature)
        result = OptimizationResult(
            feature=feature,
            increasing=increasing,
            status=BUDGET_EXHAUSTED,
            replacements=0,
            budget=budget,
            average_before=average_before,
            average_after=average_before,
        )
        direction = "up" if increasing else "down"

        logger.info(
            f"Optimizing {self.playlist.name!r} {feature.value} {direction} "
            f"(avg {average_before:.3f}, budget {budget})"
        )

        while True:
            if self.is_sufficient(feature, increasing):
                result.status = SUFFICIENT
                break
            if result.replacements >= budget:
                result.status = BUDGET_EXHAUSTED
                break

            candidates = self.better_songs(feature, increasing)
            if not candidates:
                result.status = STALLED
                logger.warning(f"Playlist {self.playlist.name!r} is already optimized for {feature.value}")
                break

            added = self.rng.choice(candidates)
            with self.db.transaction():
                self.index.add(added)
                removed = self.db.extreme_member(
                    self.playlist.playlist_id, feature, highest=not increasing
                )
                self.index.delete(removed)

            result.replacements += 1
            result.added.append(added.song_id)
            result.removed.append(removed.song_id)
            logger.debug(
                f"Replaced song {removed.song_id} with {added.song_id} "
                f"({feature.value}: {feat.feature_value(removed, feature):.3f} -> "
                f"{feat.feature_value(added, feature):.3f})"
            )

        result.average_after = self.average(feature)
        logger.info(
            f"Optimization of {self.playlist.name!r} finished ({result.status}): "
            f"{result.replacements} songs replaced, {feature.value} "
            f"{average_before:.3f} -> {result.average_after:.3f}"
        )
        return result
