"""
Escalation Scheduler - periodic SLA sweep.

DESIGN PRINCIPLES:
- A report escalates once: on-time -> escalated when now > sla_deadline
- Only resolution clears escalation (no de-escalation while open)
- escalation_notified is set only after the sink acknowledges delivery,
  so a failed notification is retried on the next sweep
- One report's failure never blocks the rest of the sweep
- The sweep runs on a fixed interval, not on per-report timers
"""

from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Callable, List, Optional, Set
import logging

from pydantic import BaseModel, Field

from reporthub.models.report import Report
from reporthub.services.notification.base import NotificationSink
from reporthub.services.report_store.base import ReportStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SweepResult(BaseModel):
    swept_at: datetime
    escalated_ids: List[int] = Field(default_factory=list)
    notified_ids: List[int] = Field(default_factory=list)
    failed_ids: List[int] = Field(default_factory=list)


class EscalationScheduler:

    DEFAULT_INTERVAL_MINUTES = 30

    def __init__(
        self,
        store: ReportStore,
        sink: NotificationSink,
        clock: Callable[[], datetime] = _utc_now
    ):
        self.store = store
        self.sink = sink
        self.clock = clock
        self.interval_seconds = self.DEFAULT_INTERVAL_MINUTES * 60
        self.last_result: Optional[SweepResult] = None

        self._in_flight: Set[int] = set()
        self._in_flight_lock = Lock()
        self._lifecycle_lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Escalate overdue open reports, then notify escalated reports that
        have not been acknowledged yet. Safe to run repeatedly.
        """
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        result = SweepResult(swept_at=now)

        for report in self.store.find_open_past_deadline(now):
            self._escalate(report, now, result)

        for report in self.store.find_pending_notifications():
            self._notify(report, result)

        if result.escalated_ids or result.notified_ids or result.failed_ids:
            logger.info(
                f"Escalation sweep: {len(result.escalated_ids)} escalated, "
                f"{len(result.notified_ids)} notified, {len(result.failed_ids)} failed"
            )
        else:
            logger.debug("Escalation sweep: nothing overdue")

        self.last_result = result
        return result

    @staticmethod
    def is_overdue(report: Report, now: datetime) -> bool:
        deadline = report.sla_deadline
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return report.is_open and not report.escalated and now > deadline

    def _escalate(self, report: Report, now: datetime, result: SweepResult) -> None:
        if not self.is_overdue(report, now):
            return
        try:
            if self.store.mark_escalated(report.id):
                result.escalated_ids.append(report.id)
                logger.info(f"Report {report.id} escalated: SLA deadline {report.sla_deadline.isoformat()} passed")
        except Exception as e:
            logger.error(f"Failed to escalate report {report.id}: {e}", exc_info=True)
            result.failed_ids.append(report.id)

    def _notify(self, report: Report, result: SweepResult) -> None:
        if not self._claim(report.id):
            logger.debug(f"Report {report.id} notification already in progress")
            return
        try:
            # The snapshot may predate another sweep's acknowledged delivery.
            report = self.store.get(report.id)
            if not (report.is_open and report.escalated and not report.escalation_notified):
                logger.debug(f"Report {report.id} no longer awaiting notification")
                return

            try:
                acknowledged = self.sink.notify_escalation(report)
            except Exception as e:
                logger.warning(f"Escalation notification failed for report {report.id}: {e}")
                acknowledged = False

            if not acknowledged:
                result.failed_ids.append(report.id)
                return

            if self.store.update_escalation(report.id, escalated=True, notified=True):
                result.notified_ids.append(report.id)
            else:
                logger.info(f"Report {report.id} was resolved while its escalation was being delivered")
        except Exception as e:
            logger.error(f"Failed to record notification for report {report.id}: {e}", exc_info=True)
            result.failed_ids.append(report.id)
        finally:
            self._release(report.id)

    def _claim(self, report_id: int) -> bool:
        with self._in_flight_lock:
            if report_id in self._in_flight:
                return False
            self._in_flight.add(report_id)
            return True

    def _release(self, report_id: int) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(report_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval_minutes: float = DEFAULT_INTERVAL_MINUTES, run_immediately: bool = False) -> None:
        """Start the background sweep loop. Starting a running scheduler is a no-op."""
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        with self._lifecycle_lock:
            if self.is_running:
                logger.info("Escalation scheduler already running")
                return
            self.interval_seconds = interval_minutes * 60
            self._stop_event = Event()
            self._thread = Thread(
                target=self._run,
                args=(self._stop_event, run_immediately),
                name="escalation-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"Escalation scheduler started (every {interval_minutes} minutes)")

    def stop(self, timeout: float = 10.0) -> None:
        with self._lifecycle_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is None:
            return
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Escalation scheduler did not stop within timeout (a sweep is still running)")
        else:
            logger.info("Escalation scheduler stopped")

    def _run(self, stop_event: Event, run_immediately: bool) -> None:
        if run_immediately:
            self._tick()
        while not stop_event.wait(self.interval_seconds):
            self._tick()

    def _tick(self) -> None:
        try:
            self.sweep()
        except Exception as e:
            # The next tick retries.
            logger.error(f"Escalation sweep failed: {e}", exc_info=True)
