"""
Firestore-backed report store.

Documents live in the reports collection keyed by the integer report id.
Ids come from a transactional counter document so they stay sequential
across processes.
"""

from datetime import datetime, timezone
from typing import List, Optional
import logging

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from reporthub.core.settings import settings
from reporthub.models.report import Report, ReportStatus, ResolutionVerification, OPEN_STATUSES
from reporthub.services.report_store.base import ReportStore, ReportNotFoundError, StoreError
from reporthub.utils.firestore_helpers import where_filter, report_doc_id
from reporthub.utils.geo import haversine_distance

logger = logging.getLogger(__name__)

REPORT_ID_COUNTER = "report_ids"


@firestore.transactional
def _insert_with_new_id(transaction, counter_ref, reports_ref, data: dict) -> int:
    snapshot = counter_ref.get(transaction=transaction)
    next_id = (snapshot.get("value") if snapshot.exists else 0) + 1
    transaction.set(counter_ref, {"value": next_id})
    transaction.create(reports_ref.document(report_doc_id(next_id)), {**data, "id": next_id})
    return next_id


def _write_duplicate(transaction, counter_ref, reports_ref, primary_id: int, data: dict) -> Optional[int]:
    """Duplicate insert plus primary merge counters; None when the primary can no longer take merges."""
    primary_ref = reports_ref.document(report_doc_id(primary_id))
    primary = primary_ref.get(transaction=transaction)
    counter = counter_ref.get(transaction=transaction)
    if not primary.exists:
        return None
    primary_data = primary.to_dict()
    if not primary_data.get("is_primary", True) or primary_data.get("status") == ReportStatus.RESOLVED.value:
        return None
    next_id = (counter.get("value") if counter.exists else 0) + 1
    transaction.set(counter_ref, {"value": next_id})
    transaction.create(reports_ref.document(report_doc_id(next_id)), {
        **data,
        "id": next_id,
        "is_primary": False,
        "duplicate_of": primary_id,
    })
    transaction.update(primary_ref, {
        "duplicate_count": firestore.Increment(1),
        "merged_report_ids": firestore.ArrayUnion([next_id]),
    })
    return next_id


_insert_duplicate = firestore.transactional(_write_duplicate)


@firestore.transactional
def _update_if(transaction, doc_ref, predicate, fields: dict) -> Optional[bool]:
    """None when the document is missing, otherwise whether the update applied."""
    snapshot = doc_ref.get(transaction=transaction)
    if not snapshot.exists:
        return None
    if not predicate(snapshot.to_dict()):
        return False
    transaction.update(doc_ref, fields)
    return True


class FirestoreReportStore(ReportStore):

    backend_name = "firestore"

    def __init__(self, db=None):
        if db is None:
            from reporthub.config.firebase import get_db
            db = get_db()
        self.db = db
        self.reports_ref = self.db.collection(settings.FIRESTORE_REPORTS_COLLECTION)
        self.counter_ref = self.db.collection(settings.FIRESTORE_COUNTERS_COLLECTION).document(REPORT_ID_COUNTER)

    def _to_report(self, doc) -> Report:
        data = doc.to_dict()
        data["id"] = int(doc.id)
        return Report.model_validate(data)

    def _stream(self, query) -> List[Report]:
        try:
            return [self._to_report(doc) for doc in query.stream()]
        except google_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Firestore query failed: {e}") from e

    def insert(self, report: Report) -> int:
        try:
            report_id = _insert_with_new_id(
                self.db.transaction(),
                self.counter_ref,
                self.reports_ref,
                report.to_document(),
            )
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Failed to save report to Firestore: {e}", exc_info=True)
            raise StoreError(f"Failed to save report: {e}") from e
        logger.info(f"Report saved to Firestore: {report_id}")
        return report_id

    def get(self, report_id: int) -> Report:
        try:
            doc = self.reports_ref.document(report_doc_id(report_id)).get()
        except google_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Failed to fetch report {report_id}: {e}") from e
        if not doc.exists:
            raise ReportNotFoundError(report_id)
        return self._to_report(doc)

    def _update(self, report_id: int, fields: dict) -> None:
        try:
            self.reports_ref.document(report_doc_id(report_id)).update(fields)
        except google_exceptions.NotFound:
            raise ReportNotFoundError(report_id)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Failed to update report {report_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to update report {report_id}: {e}") from e

    def insert_duplicate(self, report: Report, primary_id: int) -> Optional[int]:
        try:
            report_id = _insert_duplicate(
                self.db.transaction(),
                self.counter_ref,
                self.reports_ref,
                primary_id,
                report.to_document(),
            )
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Failed to save duplicate of report {primary_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to save report: {e}") from e
        if report_id is not None:
            logger.info(f"Report saved to Firestore: {report_id} (duplicate of {primary_id})")
        return report_id

    def _conditional_update(self, report_id: int, predicate, fields: dict) -> bool:
        doc_ref = self.reports_ref.document(report_doc_id(report_id))
        try:
            applied = _update_if(self.db.transaction(), doc_ref, predicate, fields)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Failed to update report {report_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to update report {report_id}: {e}") from e
        if applied is None:
            raise ReportNotFoundError(report_id)
        return applied

    def update_escalation(self, report_id: int, escalated: bool, notified: bool) -> bool:
        fields = {"escalated": escalated, "escalation_notified": notified}

        def allowed(data: dict) -> bool:
            return not escalated or data.get("status") != ReportStatus.RESOLVED.value

        return self._conditional_update(report_id, allowed, fields)

    def mark_escalated(self, report_id: int) -> bool:
        fields = {
            "escalated": True,
            "escalation_notified": False,
            "escalated_at": datetime.now(timezone.utc),
        }

        def allowed(data: dict) -> bool:
            return not data.get("escalated", False) and data.get("status") != ReportStatus.RESOLVED.value

        return self._conditional_update(report_id, allowed, fields)

    def update_status(self, report_id: int, status: ReportStatus, resolved_at: Optional[datetime] = None) -> Report:
        fields = {"status": status.value}
        if status == ReportStatus.RESOLVED:
            fields.update({
                "escalated": False,
                "escalation_notified": False,
                "resolved_at": resolved_at or datetime.now(timezone.utc),
            })
        self._update(report_id, fields)
        return self.get(report_id)

    def record_resolution(
        self,
        report_id: int,
        resolution_photo_ref: str,
        verification: ResolutionVerification,
        resolved_at: datetime
    ) -> Report:
        self._update(report_id, {
            "status": ReportStatus.RESOLVED.value,
            "escalated": False,
            "escalation_notified": False,
            "resolved_at": resolved_at,
            "resolution_photo_ref": resolution_photo_ref,
            "resolution_verification": verification.model_dump(mode="python"),
        })
        return self.get(report_id)

    def find_open_past_deadline(self, now: datetime) -> List[Report]:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        query = where_filter(self.reports_ref, "escalated", "==", False)
        query = where_filter(query, "sla_deadline", "<", now)
        return [r for r in self._stream(query) if r.is_open]

    def find_pending_notifications(self) -> List[Report]:
        query = where_filter(self.reports_ref, "escalated", "==", True)
        query = where_filter(query, "escalation_notified", "==", False)
        return [r for r in self._stream(query) if r.is_open]

    def find_nearby_primaries(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        exclude_id: Optional[int] = None
    ) -> List[Report]:
        query = where_filter(self.reports_ref, "is_primary", "==", True)
        query = where_filter(query, "status", "in", [s.value for s in OPEN_STATUSES])
        return [
            r for r in self._stream(query)
            if r.id != exclude_id
            and haversine_distance(latitude, longitude, r.latitude, r.longitude) <= radius_meters
        ]

    def list_reports(self, include_duplicates: bool = False) -> List[Report]:
        query = self.reports_ref
        if not include_duplicates:
            query = where_filter(query, "is_primary", "==", True)
        return self._stream(query)

    def find_escalated(self) -> List[Report]:
        query = where_filter(self.reports_ref, "escalated", "==", True)
        return [r for r in self._stream(query) if r.is_open]

    def ping(self) -> bool:
        list(self.db.collections())
        return True
