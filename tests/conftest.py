"""Shared fixtures: in-memory store, scripted similarity oracle, recording sinks, fixed clock."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from reporthub.models.report import Report, Severity, TriageResult
from reporthub.services.container import EngineContainer
from reporthub.services.notification.base import NotificationError, NotificationSink
from reporthub.services.report_store import InMemoryReportStore
from reporthub.services.similarity.base import SimilarityOracle, SimilarityResult

T0 = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ScriptedOracle(SimilarityOracle):
    """
    Returns scores from a lookup keyed by the unordered photo pair.

    Identical photo refs score 100. Pairs not in the table score default_score.
    Exceptions queued in `errors` are raised (in order) before any score.
    """

    def __init__(self, default_score: float = 10.0):
        self.scores: Dict[frozenset, float] = {}
        self.default_score = default_score
        self.errors: List[Exception] = []
        self.missing: Set[str] = set()
        self.fallback_used = False
        self.calls: List[tuple] = []

    def set_score(self, photo_a: str, photo_b: str, score: float) -> None:
        self.scores[frozenset((photo_a, photo_b))] = score

    def is_enabled(self) -> bool:
        return True

    def get_model_info(self) -> Dict[str, str]:
        return {"name": "scripted", "version": "test"}

    def photo_exists(self, photo_ref: Optional[str]) -> bool:
        return bool(photo_ref) and photo_ref not in self.missing

    def compare(self, image_a: str, image_b: str) -> SimilarityResult:
        self.calls.append((image_a, image_b))
        if self.errors:
            raise self.errors.pop(0)
        if image_a == image_b:
            score = 100.0
        else:
            score = self.scores.get(frozenset((image_a, image_b)), self.default_score)
        return SimilarityResult(
            score=score,
            reasoning=f"scripted score {score}",
            model_name="scripted",
            fallback_used=self.fallback_used,
            ai_processed=not self.fallback_used,
        )


class RecordingSink(NotificationSink):
    def __init__(self, acknowledge: bool = True):
        self.acknowledge = acknowledge
        self.notified: List[int] = []

    def notify_escalation(self, report: Report) -> bool:
        self.notified.append(report.id)
        return self.acknowledge


class FailingSink(NotificationSink):
    def __init__(self):
        self.attempts = 0

    def notify_escalation(self, report: Report) -> bool:
        self.attempts += 1
        raise NotificationError("webhook unreachable")


def triage(category: str = "POTHOLE", severity: Severity = Severity.MEDIUM, urgency: Optional[str] = None) -> TriageResult:
    return TriageResult(category=category, severity=severity, estimated_urgency=urgency)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(store, oracle, sink, clock) -> EngineContainer:
    return EngineContainer(store=store, oracle=oracle, sink=sink, clock=clock)


@pytest.fixture
def service(engine):
    return engine.report_service


@pytest.fixture
def scheduler(engine):
    yield engine.scheduler
    engine.scheduler.stop(timeout=2)
