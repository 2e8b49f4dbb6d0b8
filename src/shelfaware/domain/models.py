from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

NOTIFICATION_REMINDER = "reminder"
NOTIFICATION_EXPIRED = "expired"
NOTIFICATION_TYPES: Tuple[str, ...] = (NOTIFICATION_REMINDER, NOTIFICATION_EXPIRED)

CATEGORIES: Tuple[str, ...] = (
    "Dairy",
    "Meat",
    "Vegetables",
    "Fruits",
    "Beverages",
    "Snacks",
    "Canned Goods",
    "Other",
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored ISO timestamp; None for empty or malformed values."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None


@dataclass
class Product:
    id: Optional[str]
    user_id: str
    name: str
    expiry_date: Optional[datetime]  # midnight; time of day is not meaningful
    reminder_days: Optional[int]
    category: Optional[str] = None
    custom_category: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        return cls(
            id=str(row["product_id"]),
            user_id=row["user_id"],
            name=row["name"],
            expiry_date=parse_timestamp(row["expiry_date"]),
            reminder_days=parse_int(row["reminder_days"]),
            category=row["category"],
            custom_category=row["custom_category"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "expiry_date": self.expiry_date.date().isoformat() if self.expiry_date else None,
            "reminder_days": self.reminder_days,
            "category": self.category,
            "custom_category": self.custom_category,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Notification:
    id: Optional[str]
    user_id: str
    product_id: str
    type: str  # reminder | expired
    message: str
    created_at: Optional[str] = None
    read: bool = False
    notified: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Notification":
        return cls(
            id=str(row["notification_id"]),
            user_id=row["user_id"],
            product_id=str(row["product_id"]),
            type=row["type"],
            message=row["message"],
            created_at=row["created_at"],
            read=bool(row["read"]),
            notified=bool(row["notified"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "type": self.type,
            "message": self.message,
            "created_at": self.created_at,
            "read": self.read,
            "notified": self.notified,
        }
