"""
Report service - submission, status updates, resolution and report listings.

DESIGN NOTE:
- Input is validated before anything touches the store
- Duplicate resolution runs synchronously during submission and always
  yields a classification (oracle failures degrade, never block)
- SLA deadline is computed once here and stored with the report
- Resolving a report clears its escalation flags in the same write
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union
import logging

from pydantic import ValidationError

from reporthub.models.base import EscalationStats, ReportAnalytics, ResolutionResponse
from reporthub.models.report import (
    DuplicateInfo,
    Report,
    ReportStatus,
    Severity,
    SubmissionResult,
    TriageResult,
)
from reporthub.services.duplicate_resolver import DuplicateResolver
from reporthub.services.issue_catalog import department_for, is_urgent, normalize_category
from reporthub.services.report_store.base import ReportStore
from reporthub.services.resolution_verifier import ResolutionVerifier
from reporthub.services.sla_policy import SlaPolicy
from reporthub.services.status_workflow import StatusWorkflowEngine
from reporthub.utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

SEVERITY_RANK = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}


class InvalidReportError(ValueError):
    """Submission rejected before any store mutation."""


class ResolutionNotFoundError(LookupError):
    def __init__(self, report_id: int):
        super().__init__(f"No resolution data available for report {report_id}")
        self.report_id = report_id


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ReportService:

    def __init__(
        self,
        store: ReportStore,
        resolver: DuplicateResolver,
        sla_policy: SlaPolicy,
        clock: Callable[[], datetime] = _utc_now,
        verifier: Optional[ResolutionVerifier] = None
    ):
        self.store = store
        self.resolver = resolver
        self.sla_policy = sla_policy
        self.clock = clock
        self.verifier = verifier or ResolutionVerifier(None)

    def submit_report(
        self,
        latitude: float,
        longitude: float,
        photo_ref: str,
        triage: Union[TriageResult, dict],
        description: str = "",
        now: Optional[datetime] = None
    ) -> SubmissionResult:
        """
        Store a new report as a primary or as a duplicate of a nearby primary.

        Flow:
        1. Validate coordinates, photo reference and triage
        2. Resolve duplicates (geo radius + photo similarity)
        3. Compute the SLA deadline
        4. Insert the report; a duplicate and its primary's merge counters
           are written together, and a primary resolved in the meantime
           turns the report into a new primary

        Raises:
            InvalidReportError: invalid input (nothing was written)
            StoreError: the report could not be durably recorded
        """
        triage = self._validate(latitude, longitude, photo_ref, triage)
        latitude, longitude = float(latitude), float(longitude)
        created_at = _as_utc(now or self.clock())
        category = normalize_category(triage.category)

        check = self.resolver.resolve_with_stats(latitude, longitude, photo_ref)
        match, checked = check.match, check.candidates_checked

        sla_deadline = self.sla_policy.compute_deadline(category, triage.severity, created_at)
        department = triage.department or department_for(category)
        urgent = is_urgent(triage.severity, triage.estimated_urgency)

        report = Report(
            latitude=latitude,
            longitude=longitude,
            photo_ref=photo_ref,
            description=description or "",
            category=category,
            severity=triage.severity,
            department=department,
            urgent=urgent,
            status=ReportStatus.PENDING,
            is_primary=match is None,
            duplicate_of=match.primary_id if match else None,
            similarity_score=match.similarity if match else 0.0,
            duplicate_reasoning=match.reasoning if match else None,
            sla_deadline=sla_deadline,
            created_at=created_at,
        )

        report_id = None
        if match:
            report_id = self.store.insert_duplicate(report, match.primary_id)
            if report_id is None:
                logger.info(f"Primary #{match.primary_id} closed during submission, storing report as primary")
                match = None
                report = report.model_copy(update={
                    "is_primary": True,
                    "duplicate_of": None,
                    "similarity_score": 0.0,
                    "duplicate_reasoning": None,
                })
            else:
                logger.info(f"Report {report_id} stored as duplicate of #{match.primary_id}")

        if report_id is None:
            report_id = self.store.insert(report)
            logger.info(f"Report {report_id} stored as primary ({checked} nearby report(s) checked)")

        return SubmissionResult(
            report_id=report_id,
            is_primary=match is None,
            duplicate_info=DuplicateInfo.from_match(match) if match else None,
            category=category,
            severity=triage.severity,
            department=department,
            urgent=urgent,
            sla_deadline=sla_deadline,
            nearby_reports_checked=checked,
            low_confidence=check.degraded,
        )

    def _validate(self, latitude, longitude, photo_ref, triage) -> TriageResult:
        if latitude is None or longitude is None:
            raise InvalidReportError("Latitude and longitude are required")
        if not is_valid_coordinate(latitude, longitude):
            raise InvalidReportError(f"Coordinates out of range: ({latitude}, {longitude})")
        if not isinstance(photo_ref, str) or not photo_ref.strip():
            raise InvalidReportError("Photo is required")
        if triage is None:
            raise InvalidReportError("Triage category and severity are required")
        if isinstance(triage, TriageResult):
            return triage
        try:
            return TriageResult.model_validate(triage)
        except ValidationError as e:
            raise InvalidReportError(f"Invalid triage: {e.errors()}") from e

    def update_status(self, report_id: int, new_status: Union[ReportStatus, str]) -> Report:
        """
        Move a report to a new status.

        Resolution clears escalated and escalation_notified.

        Raises:
            ReportNotFoundError: unknown report
            InvalidStatusTransitionError: transition not allowed
        """
        report = self.store.get(report_id)
        target = StatusWorkflowEngine.validate_transition(report.status, new_status)
        if target == report.status:
            return report

        resolved_at = self.clock() if target == ReportStatus.RESOLVED else None
        updated = self.store.update_status(report_id, target, resolved_at=resolved_at)

        if target == ReportStatus.RESOLVED and report.escalated:
            logger.info(f"Report {report_id} resolved, escalation cleared")
        logger.info(f"Report {report_id} status updated: {report.status.value} → {target.value}")
        return updated

    def get_report(self, report_id: int) -> Report:
        return self.store.get(report_id)

    def list_reports(self, include_duplicates: bool = False) -> List[Report]:
        """Ordered by escalated, urgent, severity, duplicate_count, created_at (all descending)."""
        reports = self.store.list_reports(include_duplicates=include_duplicates)
        return sorted(
            reports,
            key=lambda r: (
                r.escalated,
                r.urgent,
                SEVERITY_RANK.get(r.severity, 0),
                r.duplicate_count,
                _as_utc(r.created_at),
            ),
            reverse=True,
        )

    def list_escalations(self) -> List[Report]:
        """Escalated, unresolved reports, most overdue first."""
        return sorted(self.store.find_escalated(), key=lambda r: _as_utc(r.sla_deadline))

    def escalation_stats(self) -> EscalationStats:
        return self._escalation_stats(self.store.list_reports(include_duplicates=True))

    def _escalation_stats(self, reports: List[Report]) -> EscalationStats:
        escalated = [r for r in reports if r.escalated]
        return EscalationStats(
            total_escalated=len(escalated),
            pending_escalated=sum(1 for r in escalated if r.is_open),
            resolved_escalated=sum(1 for r in escalated if not r.is_open),
        )

    def analytics(self) -> ReportAnalytics:
        reports = self.store.list_reports(include_duplicates=True)
        return ReportAnalytics(
            total_reports=len(reports),
            primary_reports=sum(1 for r in reports if r.is_primary),
            duplicate_reports=sum(1 for r in reports if not r.is_primary),
            urgent_reports=sum(1 for r in reports if r.urgent),
            by_category=dict(Counter(r.category for r in reports)),
            by_status=dict(Counter(r.status.value for r in reports)),
            by_department=dict(Counter(r.department for r in reports)),
            by_severity=dict(Counter(r.severity.value for r in reports)),
            escalation_stats=self._escalation_stats(reports),
        )

    def resolve_with_photo(self, report_id: int, resolution_photo_ref: str) -> ResolutionResponse:
        """
        Resolve a report with an after photo and record the before/after verification.

        The report is resolved whatever the verdict; a failed or unavailable
        verification is stored as NEEDS_REVIEW for manual follow-up.

        Raises:
            InvalidReportError: missing photo reference
            ReportNotFoundError: unknown report
            InvalidStatusTransitionError: report already resolved
        """
        if not isinstance(resolution_photo_ref, str) or not resolution_photo_ref.strip():
            raise InvalidReportError("Resolution photo is required")

        report = self.store.get(report_id)
        StatusWorkflowEngine.validate_transition(report.status, ReportStatus.RESOLVED)

        verification = self.verifier.verify(report.photo_ref, resolution_photo_ref, report.category)
        updated = self.store.record_resolution(
            report_id,
            resolution_photo_ref,
            verification,
            resolved_at=self.clock(),
        )
        logger.info(
            f"Report {report_id} resolved with photo, verification {verification.recommendation} "
            f"({verification.verification_score:.0f})"
        )
        return self._resolution_response(updated, cleared_escalation=report.escalated)

    def get_resolution(self, report_id: int) -> ResolutionResponse:
        report = self.store.get(report_id)
        if report.is_open or not report.resolution_photo_ref:
            raise ResolutionNotFoundError(report_id)
        return self._resolution_response(report)

    def _resolution_response(self, report: Report, cleared_escalation: bool = False) -> ResolutionResponse:
        return ResolutionResponse(
            report_id=report.id,
            status=report.status.value,
            before_photo_ref=report.photo_ref,
            after_photo_ref=report.resolution_photo_ref,
            resolved_at=report.resolved_at,
            cleared_escalation=cleared_escalation,
            verification=report.resolution_verification,
        )
