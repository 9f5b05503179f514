"""
Relaxation Search: widen a tag query until enough songs match.

Search order:
1. Full predicate (all feature thresholds AND any-of the genres)
2. Same predicate with every threshold loosened one step
3. Drop feature thresholds: every subset of size |F|-1, |F|-2, ... 0,
   genre clause held fixed, stopping the moment the target is reached

Results accumulate in discovery order, deduplicated by song ID.
"""

import logging
import random
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, List, Optional, Sequence

from .predicates import Comparison, THRESHOLD_RELAXATION, build_query, relax

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """
    Songs found by a search.

    Attributes:
        songs: Distinct songs in discovery order
        target: Number of songs asked for
        queries: Text of each predicate sent to the catalog
        sampled: True when the catalog was sampled instead of searched
    """

    songs: List = field(default_factory=list)
    target: int = 0
    queries: List[str] = field(default_factory=list)
    sampled: bool = False

    @property
    def shortfall(self) -> bool:
        """True when fewer songs than the target could be found."""
        return len(self.songs) < self.target

    def __len__(self) -> int:
        return len(self.songs)


class RelaxationSearch:
    """Progressive constraint-relaxation search over the song catalog."""

    def __init__(
        self,
        catalog,
        rng: Optional[random.Random] = None,
        relaxation_table: Optional[Dict[float, float]] = None,
    ):
        """
        Args:
            catalog: Object exposing find_songs(predicate) and sample_songs(count, rng)
            rng: Random source for the no-predicate sample
            relaxation_table: Threshold loosening steps (default THRESHOLD_RELAXATION)
        """
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.relaxation_table = (
            THRESHOLD_RELAXATION if relaxation_table is None else relaxation_table
        )

    def search(
        self,
        feature_predicates: Sequence[Comparison],
        genre_predicates: Sequence[Comparison],
        target: int,
    ) -> SearchResult:
        """
        Find at least `target` songs, relaxing the query as needed.

        Args:
            feature_predicates: Threshold comparisons (ANDed)
            genre_predicates: Genre comparisons (ORed)
            target: Songs wanted

        Returns:
            SearchResult; may hold more than `target` songs after steps 1-2,
            exactly `target` once step 3 reaches it, fewer if the catalog
            runs out (shortfall)
        """
        features = list(feature_predicates)
        genres = list(genre_predicates)
        result = SearchResult(target=target)

        if not features and not genres:
            result.songs = self.catalog.sample_songs(target, self.rng)
            result.sampled = True
            logger.info(f"No predicates; sampled {len(result.songs)} songs from catalog")
            return result

        found: Dict[int, object] = {}

        def collect(predicate) -> None:
            result.queries.append(str(predicate))
            for song in self.catalog.find_songs(predicate):
                found.setdefault(song.song_id, song)

        collect(build_query(features, genres))

        if len(found) < target:
            relaxed = [relax(p, self.relaxation_table) for p in features]
            if relaxed != features:
                logger.debug(f"Loosening thresholds ({len(found)}/{target} found)")
                collect(build_query(relaxed, genres))

        size = len(features)
        while size > 0 and len(found) < target:
            size -= 1
            logger.debug(f"Dropping to {size} feature predicates ({len(found)}/{target} found)")
            for subset in combinations(features, size):
                collect(build_query(subset, genres))
                if len(found) >= target:
                    break

        songs = list(found.values())
        if len(songs) > target and size < len(features):
            songs = songs[:target]
        result.songs = songs

        if result.shortfall:
            logger.warning(
                f"Search exhausted after {len(result.queries)} queries: "
                f"{len(songs)}/{target} songs found"
            )
        else:
            logger.info(f"Search found {len(songs)} songs in {len(result.queries)} queries")

        return result
