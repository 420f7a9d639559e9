"""
Duplicate Resolver - merges new reports into existing nearby reports.

DESIGN PRINCIPLES:
- Only open primaries within the duplicate radius are merge targets
- A photo comparison at or above the threshold marks a duplicate
- First match wins by default (candidates are most recent first)
- An oracle failure is a non-match, never a failed submission
"""

from typing import NamedTuple, Optional, Tuple
import logging

from reporthub.models.report import DuplicateMatch
from reporthub.services.geo_index import GeoIndex, NearbyCandidate
from reporthub.services.report_store.base import ReportStore
from reporthub.services.similarity.base import SimilarityOracle

logger = logging.getLogger(__name__)


class DuplicateCheck(NamedTuple):
    match: Optional[DuplicateMatch]
    candidates_checked: int
    # A comparison failed or came from the fallback estimator.
    degraded: bool = False


class MatchStrategy:
    FIRST = "first"
    BEST = "best"

    ALL = (FIRST, BEST)


class DuplicateResolver:
    """
    Classifies an incoming report as a new primary or a duplicate of an
    existing primary.
    """

    DEFAULT_RADIUS_METERS = 50.0
    DEFAULT_SIMILARITY_THRESHOLD = 80.0

    def __init__(
        self,
        store: ReportStore,
        geo_index: GeoIndex,
        oracle: SimilarityOracle,
        radius_meters: float = DEFAULT_RADIUS_METERS,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        strategy: str = MatchStrategy.FIRST
    ):
        if strategy not in MatchStrategy.ALL:
            raise ValueError(f"Unknown duplicate match strategy: {strategy!r}")
        self.store = store
        self.geo_index = geo_index
        self.oracle = oracle
        self.radius_meters = radius_meters
        self.similarity_threshold = similarity_threshold
        self.strategy = strategy

    def resolve(
        self,
        latitude: float,
        longitude: float,
        photo_ref: str,
        exclude_id: Optional[int] = None
    ) -> Optional[DuplicateMatch]:
        """
        Find the primary this report duplicates, if any.

        Returns None when no candidate within the radius reaches the
        similarity threshold.
        """
        return self.resolve_with_stats(latitude, longitude, photo_ref, exclude_id).match

    def resolve_with_stats(
        self,
        latitude: float,
        longitude: float,
        photo_ref: str,
        exclude_id: Optional[int] = None
    ) -> DuplicateCheck:
        """
        Same as resolve(), also reporting how many nearby candidates were
        found and whether any comparison was degraded.
        """
        candidates = self.geo_index.find_nearby(latitude, longitude, self.radius_meters, exclude_id)
        if not candidates:
            return DuplicateCheck(None, 0)

        logger.info(f"Checking {len(candidates)} nearby report(s) for duplicates")

        best: Optional[DuplicateMatch] = None
        degraded = False
        for candidate in candidates:
            match, low_confidence = self._compare(photo_ref, candidate)
            degraded = degraded or low_confidence
            if match is None:
                continue
            if self.strategy == MatchStrategy.FIRST:
                return DuplicateCheck(match, len(candidates), degraded)
            # Strict comparison keeps the more recent candidate on ties.
            if best is None or match.similarity > best.similarity:
                best = match
        return DuplicateCheck(best, len(candidates), degraded)

    def _compare(self, photo_ref: str, candidate: NearbyCandidate) -> Tuple[Optional[DuplicateMatch], bool]:
        report = candidate.report
        if not self.oracle.photo_exists(report.photo_ref):
            logger.info(f"Skipping report #{report.id}: stored photo unavailable")
            return None, False

        logger.info(f"Comparing with report #{report.id} ({candidate.distance:.1f}m away)")
        try:
            result = self.oracle.compare(photo_ref, report.photo_ref)
        except Exception as e:
            logger.warning(f"Error comparing with report #{report.id}, treating as non-match: {e}")
            return None, True

        logger.info(f"Similarity score against #{report.id}: {result.score:.0f}%")
        logger.debug(f"Comparison with #{report.id}: {result.to_dict()}")
        if result.score < self.similarity_threshold:
            return None, result.fallback_used

        logger.info(f"Duplicate detected! Similar to report #{report.id} ({result.score:.0f}% similarity)")
        match = DuplicateMatch(
            primary_id=report.id,
            similarity=result.score,
            distance=candidate.distance,
            reasoning=result.reasoning,
            low_confidence=result.fallback_used,
        )
        return match, result.fallback_used
