import math
from datetime import datetime, timedelta

EXPIRED = "expired"
EXPIRING_SOON = "expiring_soon"
FRESH = "fresh"

# Product list highlighting threshold
EXPIRING_SOON_DAYS = 7

_ONE_DAY = timedelta(days=1)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def days_until_expiry(expiry_date: datetime, now: datetime) -> int:
    """Whole days left, rounded up: ``ceil((expiry_date - now) / 1 day)``."""
    return math.ceil((expiry_date - now) / _ONE_DAY)


def expiry_status(days_left: int, soon_days: int = EXPIRING_SOON_DAYS) -> str:
    if days_left <= 0:
        return EXPIRED
    if days_left <= soon_days:
        return EXPIRING_SOON
    return FRESH
