"""Tests for reporthub/services/escalation_scheduler.py"""

import threading
import time
from datetime import timedelta
from unittest.mock import patch

import pytest

from reporthub.models.report import Severity
from reporthub.services.escalation_scheduler import EscalationScheduler

from conftest import T0, FailingSink, RecordingSink, triage


def submit_high(service, lat=12.0, photo="a.jpg"):
    return service.submit_report(lat, 77.0, photo, triage("STREET_LIGHT", Severity.HIGH), now=T0).report_id


def test_high_severity_escalates_after_24_hours(service, scheduler, store, sink):
    report_id = submit_high(service)
    assert store.get(report_id).sla_deadline == T0 + timedelta(hours=24)

    early = scheduler.sweep(now=T0 + timedelta(hours=23))
    assert early.escalated_ids == []
    assert store.get(report_id).escalated is False

    late = scheduler.sweep(now=T0 + timedelta(hours=25))
    assert late.escalated_ids == [report_id]
    assert late.notified_ids == [report_id]
    assert sink.notified == [report_id]

    stored = store.get(report_id)
    assert stored.escalated is True
    assert stored.escalation_notified is True
    assert stored.escalated_at is not None


def test_report_at_exact_deadline_is_not_overdue(service, scheduler, store):
    report_id = submit_high(service)
    result = scheduler.sweep(now=T0 + timedelta(hours=24))
    assert result.escalated_ids == []
    assert store.get(report_id).escalated is False


def test_sweep_is_idempotent(service, scheduler, store, sink):
    report_id = submit_high(service)
    now = T0 + timedelta(hours=30)

    scheduler.sweep(now=now)
    snapshot = store.get(report_id)
    second = scheduler.sweep(now=now)

    assert second.escalated_ids == [] and second.notified_ids == []
    assert sink.notified == [report_id]
    assert store.get(report_id) == snapshot


def test_failed_notification_retried_next_sweep(engine, service, store):
    sink = RecordingSink(acknowledge=False)
    scheduler = EscalationScheduler(store, sink)
    report_id = submit_high(service)

    first = scheduler.sweep(now=T0 + timedelta(hours=25))
    assert first.escalated_ids == [report_id]
    assert first.failed_ids == [report_id]
    stored = store.get(report_id)
    assert stored.escalated is True
    assert stored.escalation_notified is False

    sink.acknowledge = True
    second = scheduler.sweep(now=T0 + timedelta(hours=26))
    assert second.escalated_ids == []
    assert second.notified_ids == [report_id]
    assert sink.notified == [report_id, report_id]
    assert store.get(report_id).escalation_notified is True


def test_sink_exception_does_not_stop_sweep(service, store):
    sink = FailingSink()
    scheduler = EscalationScheduler(store, sink)
    first = submit_high(service, lat=12.0, photo="a.jpg")
    second = submit_high(service, lat=13.0, photo="b.jpg")

    result = scheduler.sweep(now=T0 + timedelta(hours=25))

    assert sorted(result.escalated_ids) == [first, second]
    assert sorted(result.failed_ids) == [first, second]
    assert sink.attempts == 2


def test_resolution_clears_escalation_and_sweep_leaves_it_cleared(service, scheduler, store):
    report_id = submit_high(service)
    scheduler.sweep(now=T0 + timedelta(hours=25))

    service.update_status(report_id, "resolved")
    stored = store.get(report_id)
    assert stored.escalated is False
    assert stored.escalation_notified is False
    assert stored.resolved_at is not None

    result = scheduler.sweep(now=T0 + timedelta(hours=48))
    assert result.escalated_ids == []
    assert store.get(report_id).escalated is False


def test_escalation_survives_verification(service, scheduler, store):
    report_id = submit_high(service)
    scheduler.sweep(now=T0 + timedelta(hours=25))

    service.update_status(report_id, "verified")

    assert store.get(report_id).escalated is True


def test_late_acknowledgment_does_not_reescalate_resolved_report(service, store):
    report_id = submit_high(service)

    class ResolvingSink(RecordingSink):
        def notify_escalation(self, report):
            service.update_status(report.id, "resolved")
            return super().notify_escalation(report)

    scheduler = EscalationScheduler(store, ResolvingSink())
    result = scheduler.sweep(now=T0 + timedelta(hours=25))

    assert result.notified_ids == []
    stored = store.get(report_id)
    assert stored.escalated is False
    assert stored.escalation_notified is False


# ---------------------------------------------------------------------------
# Overlapping sweeps
# ---------------------------------------------------------------------------

def test_overlapping_sweeps_notify_once(service, store):
    report_id = submit_high(service)
    store.mark_escalated(report_id)
    entered = threading.Event()
    release = threading.Event()

    class SlowSink(RecordingSink):
        def notify_escalation(self, report):
            entered.set()
            release.wait(timeout=5)
            return super().notify_escalation(report)

    sink = SlowSink()
    scheduler = EscalationScheduler(store, sink)
    now = T0 + timedelta(hours=1)
    first = threading.Thread(target=scheduler.sweep, kwargs={"now": now})
    first.start()
    assert entered.wait(timeout=5)

    second = scheduler.sweep(now=now)
    release.set()
    first.join(timeout=5)

    assert second.notified_ids == []
    assert sink.notified == [report_id]
    assert store.get(report_id).escalation_notified is True


def test_stale_pending_snapshot_does_not_renotify(service, scheduler, store, sink):
    report_id = submit_high(service)
    store.mark_escalated(report_id)
    now = T0 + timedelta(hours=1)
    find_pending = store.find_pending_notifications
    interleaved = []

    def snapshot_then_overlap():
        snapshot = find_pending()
        if not interleaved:
            interleaved.append(True)
            # Another sweep delivers and records the notification first.
            scheduler.sweep(now=now)
        return snapshot

    with patch.object(store, "find_pending_notifications", side_effect=snapshot_then_overlap):
        outer = scheduler.sweep(now=now)

    assert outer.notified_ids == []
    assert sink.notified == [report_id]


def test_duplicates_escalate_independently(service, scheduler, store, oracle):
    primary = submit_high(service, photo="a.jpg")
    duplicate = service.submit_report(
        12.0, 77.0, "a.jpg", triage("STREET_LIGHT", Severity.LOW), now=T0
    ).report_id
    assert store.get(duplicate).is_primary is False

    result = scheduler.sweep(now=T0 + timedelta(hours=25))

    assert result.escalated_ids == [primary]


def test_is_overdue_ignores_resolved_and_escalated(service, store):
    report_id = submit_high(service)
    report = store.get(report_id)
    later = T0 + timedelta(hours=25)

    assert EscalationScheduler.is_overdue(report, later) is True
    assert EscalationScheduler.is_overdue(report.model_copy(update={"escalated": True}), later) is False
    assert EscalationScheduler.is_overdue(report.model_copy(update={"status": "resolved"}), later) is False


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def test_start_and_stop(scheduler):
    scheduler.start(interval_minutes=60)
    assert scheduler.is_running
    scheduler.start(interval_minutes=60)
    assert scheduler.is_running

    scheduler.stop(timeout=2)
    assert not scheduler.is_running


def test_run_immediately_sweeps_on_start(service, scheduler, clock):
    report_id = submit_high(service)
    clock.advance(hours=25)

    scheduler.start(interval_minutes=60, run_immediately=True)
    deadline = time.monotonic() + 5
    while scheduler.last_result is None and time.monotonic() < deadline:
        time.sleep(0.01)
    scheduler.stop(timeout=2)

    assert scheduler.last_result is not None
    assert scheduler.last_result.escalated_ids == [report_id]


def test_start_rejects_non_positive_interval(scheduler):
    with pytest.raises(ValueError):
        scheduler.start(interval_minutes=0)


def test_stop_without_start_is_noop(scheduler):
    scheduler.stop()
    assert not scheduler.is_running
