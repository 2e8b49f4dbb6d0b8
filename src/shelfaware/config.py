import os
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger
from .paths import find_upwards

log = get_logger("config")

DEFAULT_CHECK_INTERVAL_HOURS = 24.0
DEFAULT_ALERT_TITLE = "ShelfAware Alert"
DEFAULT_REMINDER_DAYS = 7


def _read_dotenv(dotenv_dir: Optional[str]) -> Dict[str, str]:
    """Return key/value pairs from the nearest .env above dotenv_dir.

    Does not mutate the process environment.
    """
    path = find_upwards(dotenv_dir or os.getcwd(), ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir or '.')}")
        return {}
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    env = {k: v.strip() for k, v in values.items() if k and v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(key: str, dotenv_dir: Optional[str]) -> Optional[str]:
    v = os.environ.get(key)
    if v is not None and v.strip():
        return v.strip()
    v = _read_dotenv(dotenv_dir).get(key)
    return v or None


def load_check_interval_hours(dotenv_dir: Optional[str] = None) -> float:
    raw = _lookup("SHELFAWARE_CHECK_INTERVAL_HOURS", dotenv_dir)
    if raw is None:
        return DEFAULT_CHECK_INTERVAL_HOURS
    try:
        hours = float(raw)
    except ValueError:
        log.warning(f"Invalid SHELFAWARE_CHECK_INTERVAL_HOURS={raw!r}; using {DEFAULT_CHECK_INTERVAL_HOURS}")
        return DEFAULT_CHECK_INTERVAL_HOURS
    if hours <= 0:
        log.warning("SHELFAWARE_CHECK_INTERVAL_HOURS must be positive; using default")
        return DEFAULT_CHECK_INTERVAL_HOURS
    return hours


def load_alert_title(dotenv_dir: Optional[str] = None) -> str:
    return _lookup("SHELFAWARE_ALERT_TITLE", dotenv_dir) or DEFAULT_ALERT_TITLE


def load_alert_webhook(dotenv_dir: Optional[str] = None) -> Optional[str]:
    """Return the webhook URL alerts are POSTed to, if configured."""
    return _lookup("SHELFAWARE_ALERT_WEBHOOK_URL", dotenv_dir)


def load_default_reminder_days(dotenv_dir: Optional[str] = None) -> int:
    raw = _lookup("SHELFAWARE_DEFAULT_REMINDER_DAYS", dotenv_dir)
    if raw is None:
        return DEFAULT_REMINDER_DAYS
    try:
        days = int(raw)
    except ValueError:
        log.warning(f"Invalid SHELFAWARE_DEFAULT_REMINDER_DAYS={raw!r}; using {DEFAULT_REMINDER_DAYS}")
        return DEFAULT_REMINDER_DAYS
    return max(0, days)


def load_tesseract_cmd(dotenv_dir: Optional[str] = None) -> Optional[str]:
    return _lookup("TESSERACT_CMD", dotenv_dir)
