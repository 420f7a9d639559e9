"""
GeoIndex - radius search over open primary reports.

Candidates come back most recent first; DuplicateResolver relies on this
order as its tie-break.
"""

from typing import List, NamedTuple, Optional
import logging

from reporthub.models.report import Report
from reporthub.services.report_store.base import ReportStore
from reporthub.utils.geo import haversine_distance

logger = logging.getLogger(__name__)


class NearbyCandidate(NamedTuple):
    report: Report
    distance: float  # meters


class GeoIndex:

    def __init__(self, store: ReportStore):
        self.store = store

    def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        exclude_id: Optional[int] = None
    ) -> List[NearbyCandidate]:
        """
        Open primaries (pending/verified) within radius_meters of the point.

        Resolved reports and duplicates are never merge targets. A report
        exactly on the radius boundary is included.
        """
        candidates = []
        for report in self.store.find_nearby_primaries(latitude, longitude, radius_meters, exclude_id):
            # Backends may prefilter coarsely; the distance check here is authoritative.
            distance = haversine_distance(latitude, longitude, report.latitude, report.longitude)
            if distance <= radius_meters and report.id != exclude_id:
                candidates.append(NearbyCandidate(report, distance))

        candidates.sort(key=lambda c: (c.report.created_at, c.report.id or 0), reverse=True)
        logger.debug(f"{len(candidates)} open primaries within {radius_meters}m of ({latitude}, {longitude})")
        return candidates
