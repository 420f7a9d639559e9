"""
Log Notification Sink - simulated escalation delivery.

Used when no webhook is configured. Every escalation is written to the
application log and kept in a bounded in-process alert log so the admin
API and tests can inspect what would have been sent.
"""

from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List
import logging

from reporthub.models.report import Report
from reporthub.services.notification.base import NotificationSink, build_escalation_payload

logger = logging.getLogger(__name__)


def generate_escalation_message(report: Report) -> str:
    """
    Two-line escalation message for the responsible department.

    Line 1: what and where. Line 2: how overdue it is.
    """
    category = report.category.replace("_", " ").title()
    cluster = f" ({report.duplicate_count} reports)" if report.duplicate_count > 1 else ""
    line1 = f"{category} report #{report.id}{cluster} for {report.department} is past its SLA."
    line2 = f"Deadline was {report.sla_deadline:%Y-%m-%d %H:%M} UTC, severity {report.severity.value}."
    return f"{line1}\n{line2}"


class LogNotificationSink(NotificationSink):

    def __init__(self, max_entries: int = 500):
        self.alert_log = deque(maxlen=max_entries)
        self.lock = Lock()

    def notify_escalation(self, report: Report) -> bool:
        message = generate_escalation_message(report)
        entry = {
            **build_escalation_payload(report),
            "message": message,
            "simulated": True,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        with self.lock:
            self.alert_log.append(entry)
        logger.warning(f"ESCALATION (simulated) report #{report.id}: {message.splitlines()[0]}")
        return True

    def get_alert_log(self, limit: int = 50) -> List[Dict]:
        """Most recent entries first."""
        with self.lock:
            return list(reversed(self.alert_log))[:limit]
