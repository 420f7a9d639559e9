from abc import ABC, abstractmethod
from typing import Dict
import logging

from reporthub.models.report import Report

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    pass


class NotificationSink(ABC):
    """
    Receives escalation events.

    Contract:
    - notify_escalation() returns True only when delivery was acknowledged.
    - False or an exception is a failure; the scheduler retries on its next sweep.
    """

    @abstractmethod
    def notify_escalation(self, report: Report) -> bool:
        raise NotImplementedError


def build_escalation_payload(report: Report) -> Dict:
    return {
        "event": "report.escalated",
        "report_id": report.id,
        "category": report.category,
        "severity": report.severity.value,
        "department": report.department,
        "status": report.status.value,
        "duplicate_count": report.duplicate_count,
        "latitude": report.latitude,
        "longitude": report.longitude,
        "sla_deadline": report.sla_deadline.isoformat(),
        "created_at": report.created_at.isoformat(),
    }
