"""
Escalation notification sinks.
"""

from reporthub.services.notification.base import NotificationSink, NotificationError
from reporthub.services.notification.log_sink import LogNotificationSink
from reporthub.services.notification.webhook_sink import WebhookNotificationSink

__all__ = [
    "NotificationSink",
    "NotificationError",
    "LogNotificationSink",
    "WebhookNotificationSink",
]
