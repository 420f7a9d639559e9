"""
In-memory report store for local development and tests.
"""

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional
import logging

from reporthub.models.report import Report, ReportStatus, ResolutionVerification, OPEN_STATUSES
from reporthub.services.report_store.base import ReportStore, ReportNotFoundError
from reporthub.utils.geo import haversine_distance

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class InMemoryReportStore(ReportStore):
    """Thread-safe store; every mutation runs under a single lock and hands out copies."""

    backend_name = "memory"

    def __init__(self):
        self.reports: Dict[int, Report] = {}
        self.lock = Lock()
        self._next_id = 1

    def insert(self, report: Report) -> int:
        with self.lock:
            report_id = self._next_id
            self._next_id += 1
            self.reports[report_id] = report.model_copy(update={"id": report_id}, deep=True)
        logger.debug(f"Report {report_id} inserted (primary={report.is_primary})")
        return report_id

    def get(self, report_id: int) -> Report:
        with self.lock:
            return self._get_locked(report_id).model_copy(deep=True)

    def _get_locked(self, report_id: int) -> Report:
        report = self.reports.get(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)
        return report

    def insert_duplicate(self, report: Report, primary_id: int) -> Optional[int]:
        with self.lock:
            primary = self.reports.get(primary_id)
            if primary is None or not primary.is_primary or not primary.is_open:
                return None
            report_id = self._next_id
            self._next_id += 1
            self.reports[report_id] = report.model_copy(
                update={"id": report_id, "is_primary": False, "duplicate_of": primary_id},
                deep=True,
            )
            self.reports[primary_id] = primary.model_copy(update={
                "duplicate_count": primary.duplicate_count + 1,
                "merged_report_ids": primary.merged_report_ids + [report_id],
            })
        logger.debug(f"Report {report_id} inserted as duplicate of {primary_id}")
        return report_id

    def update_escalation(self, report_id: int, escalated: bool, notified: bool) -> bool:
        with self.lock:
            report = self._get_locked(report_id)
            if escalated and not report.is_open:
                return False
            update = {"escalated": escalated, "escalation_notified": notified}
            if escalated and not report.escalated:
                update["escalated_at"] = datetime.now(timezone.utc)
            self.reports[report_id] = report.model_copy(update=update)
            return True

    def mark_escalated(self, report_id: int) -> bool:
        with self.lock:
            report = self._get_locked(report_id)
            if report.escalated or not report.is_open:
                return False
            self.reports[report_id] = report.model_copy(update={
                "escalated": True,
                "escalation_notified": False,
                "escalated_at": datetime.now(timezone.utc),
            })
            return True

    def update_status(self, report_id: int, status: ReportStatus, resolved_at: Optional[datetime] = None) -> Report:
        with self.lock:
            report = self._get_locked(report_id)
            update = {"status": status}
            if status == ReportStatus.RESOLVED:
                update.update({
                    "escalated": False,
                    "escalation_notified": False,
                    "resolved_at": resolved_at or datetime.now(timezone.utc),
                })
            updated = report.model_copy(update=update)
            self.reports[report_id] = updated
            return updated.model_copy(deep=True)

    def record_resolution(
        self,
        report_id: int,
        resolution_photo_ref: str,
        verification: ResolutionVerification,
        resolved_at: datetime
    ) -> Report:
        with self.lock:
            report = self._get_locked(report_id)
            updated = report.model_copy(update={
                "status": ReportStatus.RESOLVED,
                "escalated": False,
                "escalation_notified": False,
                "resolved_at": resolved_at,
                "resolution_photo_ref": resolution_photo_ref,
                "resolution_verification": verification.model_copy(),
            })
            self.reports[report_id] = updated
            return updated.model_copy(deep=True)

    def _snapshot(self) -> List[Report]:
        with self.lock:
            return [report.model_copy(deep=True) for report in self.reports.values()]

    def find_open_past_deadline(self, now: datetime) -> List[Report]:
        now = _as_utc(now)
        return [
            r for r in self._snapshot()
            if r.is_open and not r.escalated and _as_utc(r.sla_deadline) < now
        ]

    def find_pending_notifications(self) -> List[Report]:
        return [r for r in self._snapshot() if r.is_open and r.escalated and not r.escalation_notified]

    def find_nearby_primaries(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        exclude_id: Optional[int] = None
    ) -> List[Report]:
        return [
            r for r in self._snapshot()
            if r.is_primary
            and r.status in OPEN_STATUSES
            and r.id != exclude_id
            and haversine_distance(latitude, longitude, r.latitude, r.longitude) <= radius_meters
        ]

    def list_reports(self, include_duplicates: bool = False) -> List[Report]:
        return [r for r in self._snapshot() if include_duplicates or r.is_primary]

    def find_escalated(self) -> List[Report]:
        return [r for r in self._snapshot() if r.escalated and r.is_open]
