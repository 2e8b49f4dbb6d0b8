from datetime import date, datetime

import pytest

from shelfaware import config
from shelfaware.domain.expiry import EXPIRED, EXPIRING_SOON, FRESH, days_until_expiry, expiry_status
from shelfaware.domain.validation import validate_product
from shelfaware.errors import OcrError, ProductValidationError
from shelfaware.service import InventoryService, coerce_expiry_date, scan_image, scan_text
from shelfaware.store.db import InventoryDatabase


@pytest.fixture
def service(tmp_path, monkeypatch):
    monkeypatch.delenv("SHELFAWARE_DEFAULT_REMINDER_DAYS", raising=False)
    (tmp_path / "README.md").write_text("test marker", encoding="utf-8")
    db = InventoryDatabase(db_path=str(tmp_path / "inventory.sqlite3"))
    return InventoryService(db, dotenv_dir=str(tmp_path))


def test_validate_product_messages():
    ok, errors = validate_product({})
    assert ok is False
    assert errors == {
        "category": "Please select a category",
        "name": "Please enter product name",
        "expiry_date": "Please select expiry date",
    }

    ok, errors = validate_product(
        {"name": "Milk", "category": "Dairy", "expiry_date": "2026-10-22", "reminder_days": 3}
    )
    assert ok is True and errors == {}


def test_validate_product_category_rules():
    _, errors = validate_product({"name": "Rice", "category": "Other", "expiry_date": "2026-10-22"})
    assert errors == {"custom_category": "Please enter a custom category"}

    _, errors = validate_product({"name": "Rice", "category": "Pantry", "expiry_date": "2026-10-22"})
    assert errors == {"category": "Unknown category: Pantry"}


@pytest.mark.parametrize(
    "reminder, message",
    [(-1, "Reminder days cannot be negative"), ("soon", "Reminder days must be a whole number")],
)
def test_validate_product_reminder_days(reminder, message):
    _, errors = validate_product(
        {"name": "Milk", "category": "Dairy", "expiry_date": "2026-10-22", "reminder_days": reminder}
    )
    assert errors == {"reminder_days": message}


def test_days_until_expiry_rounds_up():
    now = datetime(2026, 10, 19, 9, 0)
    assert days_until_expiry(datetime(2026, 10, 22), now) == 3
    assert days_until_expiry(datetime(2026, 10, 19), now) == 0
    assert days_until_expiry(datetime(2026, 10, 15), now) == -4


def test_expiry_status_thresholds():
    assert expiry_status(0) == EXPIRED
    assert expiry_status(-3) == EXPIRED
    assert expiry_status(7) == EXPIRING_SOON
    assert expiry_status(8) == FRESH


def test_coerce_expiry_date():
    assert coerce_expiry_date("2026-10-22") == datetime(2026, 10, 22)
    assert coerce_expiry_date("2026-10-22T15:30:00") == datetime(2026, 10, 22)
    assert coerce_expiry_date(date(2026, 10, 22)) == datetime(2026, 10, 22)
    assert coerce_expiry_date(datetime(2026, 10, 22, 18, 5)) == datetime(2026, 10, 22)
    assert coerce_expiry_date("") is None
    assert coerce_expiry_date("22.10.2026") is None
    assert coerce_expiry_date("2026-10-20T00:00:00+00:00") == datetime(2026, 10, 20)
    assert coerce_expiry_date("2026-10-20T23:30:00-05:00").tzinfo is None


def test_add_product_applies_default_reminder(service):
    product = service.add_product("alice", name="  Milk ", category="Dairy", expiry_date="2026-10-22")

    assert product.id is not None
    assert product.name == "Milk"
    assert product.reminder_days == 7
    assert product.expiry_date == datetime(2026, 10, 22)
    assert service.db.get_product(product.id).name == "Milk"


def test_add_product_rejects_unparseable_date(service):
    with pytest.raises(ProductValidationError) as excinfo:
        service.add_product("alice", name="Milk", category="Dairy", expiry_date="next tuesday")

    assert excinfo.value.errors == {"expiry_date": "Invalid expiry date"}
    assert service.db.query_products("alice") == []


def test_list_products_by_status(service):
    now = datetime(2026, 10, 19, 9, 0)
    service.add_product("alice", name="Ham", category="Meat", expiry_date="2026-10-10")
    service.add_product("alice", name="Milk", category="Dairy", expiry_date="2026-10-22")
    service.add_product("alice", name="Beans", category="Canned Goods", expiry_date="2027-06-01")

    assert [p.name for p in service.list_products("alice", status=EXPIRED, now=now)] == ["Ham"]
    assert [p.name for p in service.list_products("alice", status=EXPIRING_SOON, now=now)] == ["Milk"]
    assert len(service.list_products("alice", status="all", now=now)) == 3


def test_list_products_skips_unusable_stored_dates(service):
    now = datetime(2026, 10, 19, 9, 0)
    with service.db.connect() as conn:
        conn.execute(
            "INSERT INTO products (user_id, name, expiry_date, reminder_days) VALUES (?, ?, ?, ?);",
            ("alice", "Cheese", "2026-10-20T00:00:00+00:00", 7),
        )
        conn.commit()
    service.add_product("alice", name="Milk", category="Dairy", expiry_date="2026-10-22")

    assert [p.name for p in service.list_products("alice", status=EXPIRING_SOON, now=now)] == ["Milk"]


def test_scan_text_with_lower_bound():
    result = scan_text("MFG 01/02/2024 EXP 01/02/2026", not_before=datetime(2025, 1, 1))

    assert result.expiry_date == datetime(2026, 2, 1)
    assert [c.raw for c in result.candidates] == ["01/02/2026"]
    assert result.to_dict()["expiry_date"] == "2026-02-01"


def test_scan_image_missing_file_degrades_to_empty(tmp_path):
    result = scan_image(str(tmp_path / "missing.jpg"))

    assert result.expiry_date is None
    assert result.candidates == []


def test_scan_image_uses_recognized_text(tmp_path, monkeypatch):
    monkeypatch.setattr(
        "shelfaware.service.recognize_text",
        lambda path, tesseract_cmd=None: "BEST BEFORE 12/2099\nPKD 01/01/2020",
    )

    result = scan_image(str(tmp_path / "label.jpg"))
    assert result.expiry_date == datetime(2099, 12, 31)
    assert [c.raw for c in result.candidates] == ["12/2099"]

    result = scan_image(str(tmp_path / "label.jpg"), future_only=False)
    assert len(result.candidates) == 2


def test_scan_image_ocr_error(tmp_path, monkeypatch):
    def failing(path, tesseract_cmd=None):
        raise OcrError("tesseract is not installed")

    monkeypatch.setattr("shelfaware.service.recognize_text", failing)

    assert scan_image(str(tmp_path / "label.jpg")).expiry_date is None


def test_config_reads_env_then_dotenv(tmp_path, monkeypatch):
    for key in (
        "SHELFAWARE_CHECK_INTERVAL_HOURS",
        "SHELFAWARE_ALERT_TITLE",
        "SHELFAWARE_ALERT_WEBHOOK_URL",
        "SHELFAWARE_DEFAULT_REMINDER_DAYS",
    ):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / ".env").write_text(
        "SHELFAWARE_CHECK_INTERVAL_HOURS=6\nSHELFAWARE_ALERT_TITLE=Pantry\nSHELFAWARE_DEFAULT_REMINDER_DAYS=abc\n",
        encoding="utf-8",
    )
    root = str(tmp_path)

    assert config.load_check_interval_hours(root) == 6.0
    assert config.load_alert_title(root) == "Pantry"
    assert config.load_default_reminder_days(root) == config.DEFAULT_REMINDER_DAYS
    assert config.load_alert_webhook(root) is None

    monkeypatch.setenv("SHELFAWARE_CHECK_INTERVAL_HOURS", "-1")
    assert config.load_check_interval_hours(root) == config.DEFAULT_CHECK_INTERVAL_HOURS
    monkeypatch.setenv("SHELFAWARE_ALERT_TITLE", "From env")
    assert config.load_alert_title(root) == "From env"
