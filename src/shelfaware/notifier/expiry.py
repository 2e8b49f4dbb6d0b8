"""Expiry notification scheduling and deduplication.

Each run re-scans every product of the user. Products whose id already has a
delivered notification (any type) are skipped, as are products alerted earlier
in the same run, so a product that got a "reminder" does not get a second
"expired" alert while that reminder record exists.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Set

from ..alerts.delivery import AlertSink
from ..config import DEFAULT_ALERT_TITLE, DEFAULT_CHECK_INTERVAL_HOURS
from ..domain.expiry import days_until_expiry
from ..domain.models import (
    NOTIFICATION_EXPIRED,
    NOTIFICATION_REMINDER,
    Notification,
    Product,
    format_timestamp,
)
from ..errors import AlertDeliveryError, StoreError, StorePermissionError
from ..logging import get_logger
from ..store.db import InventoryDatabase

LOG = get_logger("expiry-notifier")

SESSION_USER_KEY = "session_user_id"


def classify(days_left: int) -> str:
    return NOTIFICATION_EXPIRED if days_left <= 0 else NOTIFICATION_REMINDER


def compose_message(name: str, kind: str, days_left: int) -> str:
    if kind == NOTIFICATION_EXPIRED:
        return f"Your {name} has expired!"
    unit = "day" if days_left == 1 else "days"
    return f"Your {name} will expire in {days_left} {unit}!"


def delivery_id_for(kind: str, product_id: str) -> str:
    return f"{kind}_{product_id}"


class ExpiryNotifier:
    def __init__(
        self,
        db: InventoryDatabase,
        sink: AlertSink,
        *,
        interval_hours: float = DEFAULT_CHECK_INTERVAL_HOURS,
        title: str = DEFAULT_ALERT_TITLE,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db = db
        self.sink = sink
        self.interval_hours = interval_hours
        self.title = title
        self.clock = clock

    # --------------- Check run ---------------
    async def check_expiring_products(self, user_id: str) -> List[Notification]:
        """Alert on every product of user_id that crossed its reminder threshold.

        Never raises: store and delivery failures abort the run and are
        logged. Returns the notifications committed by this run.
        """
        created: List[Notification] = []
        LOG.info(f"Checking expiring products for user={user_id}")
        try:
            await self._run(user_id, created)
        except StorePermissionError as exc:
            LOG.warning(f"Expiry check for user={user_id} not permitted: {exc}")
        except (StoreError, AlertDeliveryError) as exc:
            LOG.error(f"Expiry check for user={user_id} aborted: {exc}")
        except Exception:
            LOG.exception(f"Expiry check for user={user_id} failed unexpectedly")
        LOG.info(f"Expiry check for user={user_id} created {len(created)} notification(s)")
        return created

    async def _run(self, user_id: str, created: List[Notification]) -> None:
        now = self.clock()
        products = await asyncio.to_thread(self.db.query_products, user_id)
        existing = await asyncio.to_thread(self.db.query_notifications, user_id, notified=True)
        notified_ids: Set[str] = {n.product_id for n in existing}
        LOG.debug(f"{len(products)} product(s), {len(notified_ids)} already notified")

        for product in products:
            record = await self._evaluate(product, user_id, now, notified_ids)
            if record is not None:
                created.append(record)

    async def _evaluate(
        self,
        product: Product,
        user_id: str,
        now: datetime,
        notified_ids: Set[str],
    ) -> Optional[Notification]:
        if product.expiry_date is None:
            LOG.warning(f"Skipping product {product.id} ({product.name!r}): no expiry date")
            return None
        if product.reminder_days is None or product.reminder_days < 0:
            LOG.warning(f"Skipping product {product.id} ({product.name!r}): invalid reminder days")
            return None

        try:
            days_left = days_until_expiry(product.expiry_date, now)
        except (TypeError, ValueError) as exc:
            LOG.warning(f"Skipping product {product.id} ({product.name!r}): unusable expiry date: {exc}")
            return None
        if days_left > product.reminder_days or product.id in notified_ids:
            return None

        kind = classify(days_left)
        record = Notification(
            id=None,
            user_id=user_id,
            product_id=product.id,
            type=kind,
            message=compose_message(product.name, kind, days_left),
            created_at=format_timestamp(now),
            read=False,
            notified=True,
        )
        new_id = await asyncio.to_thread(self.db.create_notification_once, record)
        notified_ids.add(product.id)
        if new_id is None:
            LOG.info(f"Product {product.id} was alerted by a concurrent run; not delivering again")
            return None
        record.id = new_id

        await self.sink.deliver_local_alert(delivery_id_for(kind, product.id), self.title, record.message)
        LOG.info(f"{kind} alert for product {product.id} ({days_left} day(s) left)")
        return record

    # --------------- Session scheduling ---------------
    async def start(self, user_id: str) -> bool:
        """Start a session: schedule the recurring check and run one immediately.

        Returns False when the sink denies alert permission.
        """
        if not await self.sink.request_permission():
            LOG.warning("Alert permission not granted; expiry checks not scheduled")
            return False

        self.sink.cancel_triggers()
        try:
            await asyncio.to_thread(self.db.set_setting, SESSION_USER_KEY, user_id)
        except StoreError as exc:
            LOG.error(f"Could not store session user; background checks will use none: {exc}")
        interval_ms = int(self.interval_hours * 60 * 60 * 1000)
        self.sink.schedule_recurring_trigger(interval_ms, self.on_trigger)

        await self.check_expiring_products(user_id)
        return True

    def stop(self) -> None:
        self.sink.cancel_triggers()

    async def on_trigger(self) -> None:
        try:
            user_id = await asyncio.to_thread(self.db.get_setting, SESSION_USER_KEY)
        except StoreError as exc:
            LOG.error(f"Could not read session user: {exc}")
            return
        if not user_id:
            LOG.debug("Trigger fired without a session user; nothing to check")
            return
        await self.check_expiring_products(user_id)

    # --------------- Inbox ---------------
    async def unread_count(self, user_id: str) -> int:
        return await asyncio.to_thread(self.db.count_unread, user_id)

    async def mark_read(self, notification_id: str) -> bool:
        return await asyncio.to_thread(self.db.update_notification, notification_id, {"read": True})

    async def mark_all_read(self, user_id: str) -> int:
        return await asyncio.to_thread(self.db.mark_all_read, user_id)
