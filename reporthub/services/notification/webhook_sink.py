"""
Webhook Notification Sink - POSTs escalation events to a configured URL.

Any 2xx response is an acknowledgment. Timeouts, connection errors and
non-2xx responses are failures the scheduler retries on its next sweep.
"""

from typing import Optional
import logging

import requests

from reporthub.models.report import Report
from reporthub.services.notification.base import NotificationSink, NotificationError, build_escalation_payload
from reporthub.services.notification.log_sink import generate_escalation_message

logger = logging.getLogger(__name__)


class WebhookNotificationSink(NotificationSink):

    def __init__(self, url: str, timeout_seconds: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def notify_escalation(self, report: Report) -> bool:
        payload = build_escalation_payload(report)
        payload["message"] = generate_escalation_message(report)
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout_seconds)
        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Webhook delivery failed for report #{report.id}: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"Webhook rejected escalation for report #{report.id}: HTTP {response.status_code}")
            return False

        logger.info(f"Escalation for report #{report.id} delivered to webhook")
        return True
