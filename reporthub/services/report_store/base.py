"""
Report Store Interface.

Defines the narrow contract the deduplication and escalation engine uses to
read and write report records. Backends: in-memory and Firestore.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from reporthub.models.report import Report, ReportStatus, ResolutionVerification


class StoreError(Exception):
    """A store operation failed; the write may not have been recorded."""


class ReportNotFoundError(StoreError):
    def __init__(self, report_id: int):
        super().__init__(f"Report {report_id} not found")
        self.report_id = report_id


class ReportStore(ABC):
    """
    Durable report records.

    Contract:
    - insert() assigns a new unique integer id and returns it.
    - insert_duplicate() is atomic per primary: concurrent merges into
      the same primary never lose an increment or an id.
    - update_status() to RESOLVED clears escalated and escalation_notified
      in the same write.
    - Query methods are pure reads.
    """

    backend_name = "abstract"

    @abstractmethod
    def insert(self, report: Report) -> int:
        raise NotImplementedError

    @abstractmethod
    def get(self, report_id: int) -> Report:
        """Return the report or raise ReportNotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def insert_duplicate(self, report: Report, primary_id: int) -> Optional[int]:
        """
        Insert report as a duplicate of primary_id and update the primary's
        merge counters in one atomic write.

        Returns the new id, or None without writing anything when the target
        is missing, not a primary, or already resolved.
        """
        raise NotImplementedError

    @abstractmethod
    def record_resolution(
        self,
        report_id: int,
        resolution_photo_ref: str,
        verification: ResolutionVerification,
        resolved_at: datetime
    ) -> Report:
        """Resolve with an after photo; clears escalation flags like update_status(RESOLVED)."""
        raise NotImplementedError

    @abstractmethod
    def update_escalation(self, report_id: int, escalated: bool, notified: bool) -> bool:
        """
        Set both escalation flags in one write.

        Setting escalated=True on a resolved report is refused (returns False)
        so a late acknowledgment cannot re-escalate a resolved report.
        """
        raise NotImplementedError

    @abstractmethod
    def mark_escalated(self, report_id: int) -> bool:
        """
        Conditionally flip escalated False -> True (notified stays False).

        Returns False without writing when the report is resolved or already
        escalated, so an overlapping sweep cannot reset escalation_notified.
        """
        raise NotImplementedError

    @abstractmethod
    def update_status(self, report_id: int, status: ReportStatus, resolved_at: Optional[datetime] = None) -> Report:
        raise NotImplementedError

    @abstractmethod
    def find_open_past_deadline(self, now: datetime) -> List[Report]:
        """Reports with status != resolved, escalated = False and sla_deadline < now."""
        raise NotImplementedError

    @abstractmethod
    def find_pending_notifications(self) -> List[Report]:
        """Reports with escalated = True, escalation_notified = False and status != resolved."""
        raise NotImplementedError

    @abstractmethod
    def find_nearby_primaries(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        exclude_id: Optional[int] = None
    ) -> List[Report]:
        """Open primaries (pending/verified) within radius_meters, any order."""
        raise NotImplementedError

    @abstractmethod
    def list_reports(self, include_duplicates: bool = False) -> List[Report]:
        raise NotImplementedError

    @abstractmethod
    def find_escalated(self) -> List[Report]:
        """Escalated, unresolved reports."""
        raise NotImplementedError

    def ping(self) -> bool:
        """Lightweight connectivity check used by the health endpoint."""
        return True
