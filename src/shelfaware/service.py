from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional

from . import config
from .alerts.delivery import AlertSink, LoggingAlertSink, WebhookAlertSink
from .domain.expiry import days_until_expiry, expiry_status, start_of_day
from .domain.models import Product
from .domain.validation import validate_product
from .errors import OcrError, ProductValidationError
from .extraction.dates import CandidateDate, find_candidate_dates, pick_latest
from .extraction.ocr import recognize_text
from .logging import get_logger
from .notifier.expiry import ExpiryNotifier
from .store.db import InventoryDatabase

LOG = get_logger("inventory-service")


@dataclass
class ScanResult:
    text: str
    expiry_date: Optional[datetime]
    candidates: List[CandidateDate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "expiry_date": self.expiry_date.date().isoformat() if self.expiry_date else None,
            "candidates": [
                {
                    "date": c.value.date().isoformat(),
                    "raw": c.raw,
                    "pattern": c.pattern,
                    "labeled": c.labeled,
                }
                for c in self.candidates
            ],
        }


def coerce_expiry_date(value: Any) -> Optional[datetime]:
    """Accept datetime, date or an ISO string; return naive midnight of that day.

    An offset-aware value keeps the calendar date it was written with.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return start_of_day(value).replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return start_of_day(datetime.fromisoformat(str(value).strip())).replace(tzinfo=None)
    except ValueError:
        return None


def scan_text(text: str, *, not_before: Optional[datetime] = None) -> ScanResult:
    candidates = find_candidate_dates(text)
    if not_before is not None:
        candidates = [c for c in candidates if c.value >= not_before]
    best = pick_latest(candidates)
    return ScanResult(text=text or "", expiry_date=best.value if best else None, candidates=candidates)


def scan_image(path: str, *, future_only: bool = True, tesseract_cmd: Optional[str] = None) -> ScanResult:
    """OCR a label photo and extract its expiry date.

    With ``future_only`` dates before today are ignored, so a printed
    production date does not win over a missing expiry date.
    OCR failures degrade to an empty result.
    """
    try:
        text = recognize_text(path, tesseract_cmd=tesseract_cmd)
    except OcrError as exc:
        LOG.error(f"Failed to scan image: {exc}")
        return ScanResult(text="", expiry_date=None)
    not_before = start_of_day(datetime.now()) if future_only else None
    result = scan_text(text, not_before=not_before)
    LOG.info(f"Scanned {path}: expiry_date={result.expiry_date} candidates={len(result.candidates)}")
    return result


class InventoryService:
    """Product-facing operations used by the API and CLI."""

    def __init__(self, db: Optional[InventoryDatabase] = None, *, dotenv_dir: Optional[str] = None) -> None:
        self.db = db or InventoryDatabase()
        self.dotenv_dir = dotenv_dir

    def add_product(
        self,
        user_id: str,
        *,
        name: str,
        category: str,
        expiry_date: Any,
        reminder_days: Optional[int] = None,
        custom_category: Optional[str] = None,
    ) -> Product:
        if reminder_days is None:
            reminder_days = config.load_default_reminder_days(self.dotenv_dir)
        ok, errors = validate_product(
            {
                "name": name,
                "category": category,
                "custom_category": custom_category,
                "expiry_date": expiry_date,
                "reminder_days": reminder_days,
            }
        )
        parsed = coerce_expiry_date(expiry_date)
        if expiry_date and parsed is None:
            errors["expiry_date"] = "Invalid expiry date"
            ok = False
        if not ok:
            raise ProductValidationError(errors)

        product = Product(
            id=None,
            user_id=user_id,
            name=str(name).strip(),
            expiry_date=parsed,
            reminder_days=int(reminder_days),
            category=category,
            custom_category=str(custom_category or "").strip() or None,
        )
        product.id = self.db.add_product(product)
        LOG.info(f"Added product {product.id} ({product.name!r}) expiring {parsed.date()}")
        return product

    def list_products(self, user_id: str, *, status: Optional[str] = None, now: Optional[datetime] = None) -> List[Product]:
        """Products of a user, optionally only those with the given expiry status."""
        products = self.db.query_products(user_id)
        if not status or status == "all":
            return products
        now = now or datetime.now()
        matched: List[Product] = []
        for p in products:
            if p.expiry_date is None:
                continue
            try:
                days_left = days_until_expiry(p.expiry_date, now)
            except (TypeError, ValueError):
                LOG.warning(f"Product {p.id} has an unusable expiry date {p.expiry_date!r}; not listed")
                continue
            if expiry_status(days_left) == status:
                matched.append(p)
        return matched


def build_alert_sink(dotenv_dir: Optional[str] = None) -> AlertSink:
    url = config.load_alert_webhook(dotenv_dir)
    if url:
        LOG.info(f"Delivering alerts to webhook {url}")
        return WebhookAlertSink(url)
    return LoggingAlertSink()


def build_notifier(
    db: InventoryDatabase,
    *,
    dotenv_dir: Optional[str] = None,
    sink: Optional[AlertSink] = None,
    interval_hours: Optional[float] = None,
) -> ExpiryNotifier:
    return ExpiryNotifier(
        db,
        sink or build_alert_sink(dotenv_dir),
        interval_hours=interval_hours or config.load_check_interval_hours(dotenv_dir),
        title=config.load_alert_title(dotenv_dir),
    )
