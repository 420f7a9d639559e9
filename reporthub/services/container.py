"""
Engine wiring.

Builds the store, oracle, resolver, resolution verifier, SLA policy,
notification sink, scheduler and report service from settings. The FastAPI app keeps one
container on app.state; tests build their own with fakes.
"""

from datetime import datetime
from typing import Callable, Optional
import logging

from fastapi import Request

from reporthub.services.duplicate_resolver import DuplicateResolver
from reporthub.services.escalation_scheduler import EscalationScheduler
from reporthub.services.geo_index import GeoIndex
from reporthub.services.notification import LogNotificationSink, NotificationSink, WebhookNotificationSink
from reporthub.services.report_service import ReportService
from reporthub.services.report_store import InMemoryReportStore, ReportStore
from reporthub.services.resolution_verifier import ResolutionVerifier, build_resolution_verifier
from reporthub.services.similarity import SimilarityOracle, build_similarity_oracle
from reporthub.services.sla_policy import SlaPolicy

logger = logging.getLogger(__name__)


class EngineContainer:

    def __init__(
        self,
        store: ReportStore,
        oracle: SimilarityOracle,
        sink: NotificationSink,
        sla_policy: Optional[SlaPolicy] = None,
        radius_meters: float = DuplicateResolver.DEFAULT_RADIUS_METERS,
        similarity_threshold: float = DuplicateResolver.DEFAULT_SIMILARITY_THRESHOLD,
        match_strategy: str = "first",
        clock: Optional[Callable[[], datetime]] = None,
        verifier: Optional[ResolutionVerifier] = None
    ):
        self.store = store
        self.oracle = oracle
        self.sink = sink
        self.verifier = verifier or ResolutionVerifier(None)
        self.sla_policy = sla_policy or SlaPolicy()
        self.geo_index = GeoIndex(store)
        self.resolver = DuplicateResolver(
            store,
            self.geo_index,
            oracle,
            radius_meters=radius_meters,
            similarity_threshold=similarity_threshold,
            strategy=match_strategy,
        )

        clock_kwargs = {"clock": clock} if clock else {}
        self.report_service = ReportService(
            store,
            self.resolver,
            self.sla_policy,
            verifier=self.verifier,
            **clock_kwargs
        )
        self.scheduler = EscalationScheduler(store, sink, **clock_kwargs)


def build_store(settings) -> ReportStore:
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        logger.info("Using in-memory report store")
        return InMemoryReportStore()
    if backend == "firestore":
        from reporthub.config.firebase import initialize_firestore
        from reporthub.services.report_store.firestore_store import FirestoreReportStore

        return FirestoreReportStore(initialize_firestore())
    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND!r}")


def build_sink(settings) -> NotificationSink:
    if settings.ESCALATION_WEBHOOK_URL:
        logger.info(f"Escalations will be POSTed to {settings.ESCALATION_WEBHOOK_URL}")
        return WebhookNotificationSink(
            settings.ESCALATION_WEBHOOK_URL,
            timeout_seconds=settings.ESCALATION_WEBHOOK_TIMEOUT_SECONDS,
        )
    logger.info("No escalation webhook configured, using log sink")
    return LogNotificationSink()


def build_engine(settings) -> EngineContainer:
    sla_policy = SlaPolicy.from_file(settings.SLA_POLICY_PATH) if settings.SLA_POLICY_PATH else SlaPolicy()
    return EngineContainer(
        store=build_store(settings),
        oracle=build_similarity_oracle(settings),
        sink=build_sink(settings),
        sla_policy=sla_policy,
        radius_meters=settings.DUPLICATE_RADIUS_METERS,
        similarity_threshold=settings.DUPLICATE_SIMILARITY_THRESHOLD,
        match_strategy=settings.DUPLICATE_MATCH_STRATEGY.lower(),
        verifier=build_resolution_verifier(settings),
    )


def get_engine(request: Request) -> EngineContainer:
    """FastAPI dependency returning the app's engine container."""
    return request.app.state.engine
