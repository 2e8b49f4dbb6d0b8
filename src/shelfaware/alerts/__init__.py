"""Alert delivery sinks and the recurring check trigger."""

from .delivery import AlertSink, LoggingAlertSink, WebhookAlertSink, route_for_alert
from .scheduler import RecurringTrigger

__all__ = [
    "AlertSink",
    "LoggingAlertSink",
    "RecurringTrigger",
    "WebhookAlertSink",
    "route_for_alert",
]
