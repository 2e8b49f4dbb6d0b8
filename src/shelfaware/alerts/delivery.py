from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional

import requests

from ..errors import AlertDeliveryError
from ..logging import get_logger
from .scheduler import RecurringTrigger, TriggerCallback

LOG = get_logger("alert-delivery")

ROUTE_EXPIRED = "expired"
ROUTE_HOME = "home"

# Delivery ids remembered per sink; older ids are forgotten first
DEFAULT_MAX_REMEMBERED = 1024


def route_for_alert(delivery_id: str) -> str:
    """Screen an opened alert should lead to."""
    if (delivery_id or "").startswith("expired_"):
        return ROUTE_EXPIRED
    return ROUTE_HOME


@dataclass
class DeliveredAlert:
    delivery_id: str
    title: str
    body: str


class AlertSink:
    """Interface for alert-delivery collaborators.

    Subclasses implement :meth:`deliver_local_alert`; it must be idempotent per
    ``delivery_id``. Recurring triggers are owned by the sink so the check
    schedule lives next to the delivery mechanism.
    """

    def __init__(self) -> None:
        self._triggers: List[RecurringTrigger] = []

    async def request_permission(self) -> bool:
        return True

    async def deliver_local_alert(self, delivery_id: str, title: str, body: str) -> None:
        raise NotImplementedError

    def schedule_recurring_trigger(self, interval_ms: int, callback: TriggerCallback) -> RecurringTrigger:
        trigger = RecurringTrigger(interval_ms / 1000.0, callback, name="expiry-check")
        trigger.start()
        self._triggers.append(trigger)
        return trigger

    def get_triggers(self) -> List[RecurringTrigger]:
        return [t for t in self._triggers if t.active]

    def cancel_triggers(self) -> None:
        for trigger in self._triggers:
            trigger.cancel()
        self._triggers.clear()


class LoggingAlertSink(AlertSink):
    """Writes alerts to the log and remembers them by delivery id.

    Re-delivering an id replaces the stored alert instead of adding a second
    one, mirroring how a local notification with the same id is updated in place.
    """

    def __init__(self, *, max_remembered: int = DEFAULT_MAX_REMEMBERED) -> None:
        super().__init__()
        self.max_remembered = max(1, max_remembered)
        self.delivered: "OrderedDict[str, DeliveredAlert]" = OrderedDict()

    def _remember(self, alert: DeliveredAlert) -> None:
        self.delivered[alert.delivery_id] = alert
        self.delivered.move_to_end(alert.delivery_id)
        while len(self.delivered) > self.max_remembered:
            self.delivered.popitem(last=False)

    async def deliver_local_alert(self, delivery_id: str, title: str, body: str) -> None:
        previous = self.delivered.get(delivery_id)
        if previous is not None and previous.title == title and previous.body == body:
            LOG.debug(f"Alert {delivery_id} already delivered; skipping")
            return
        self._remember(DeliveredAlert(delivery_id, title, body))
        LOG.info(f"[ALERT] {title}: {body} (id={delivery_id})")


class WebhookAlertSink(LoggingAlertSink):
    """POSTs each alert as JSON to a webhook (ntfy, Gotify, Home Assistant, ...)."""

    def __init__(
        self,
        url: str,
        *,
        timeout: int = 15,
        token: Optional[str] = None,
        max_remembered: int = DEFAULT_MAX_REMEMBERED,
    ) -> None:
        super().__init__(max_remembered=max_remembered)
        self.url = url
        self.timeout = timeout
        self.token = token

    def _post(self, delivery_id: str, title: str, body: str) -> None:
        headers = {"X-Delivery-Id": delivery_id}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {"id": delivery_id, "title": title, "body": body, "route": route_for_alert(delivery_id)}
        try:
            r = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            raise AlertDeliveryError(f"Webhook delivery of {delivery_id} failed: {exc}") from exc
        LOG.debug(f"Webhook accepted {delivery_id} with HTTP {r.status_code}")

    async def deliver_local_alert(self, delivery_id: str, title: str, body: str) -> None:
        if delivery_id in self.delivered:
            LOG.debug(f"Alert {delivery_id} already sent to webhook; skipping")
            return
        await asyncio.to_thread(self._post, delivery_id, title, body)
        self._remember(DeliveredAlert(delivery_id, title, body))
        LOG.info(f"[ALERT] {title}: {body} (id={delivery_id}, webhook)")
