import sqlite3
from datetime import datetime

import pytest

from shelfaware.domain.models import Notification, Product
from shelfaware.errors import StoreError, StorePermissionError
from shelfaware.store import db as db_module
from shelfaware.store.db import InventoryDatabase


def _make_db(tmp_path) -> InventoryDatabase:
    return InventoryDatabase(db_path=str(tmp_path / "inventory.sqlite3"))


def _notification(product_id: str, kind: str = "reminder", user: str = "alice") -> Notification:
    return Notification(
        id=None,
        user_id=user,
        product_id=product_id,
        type=kind,
        message=f"{kind} for {product_id}",
        created_at="2026-10-19T09:00:00",
    )


def test_default_location_under_project_var(tmp_path):
    (tmp_path / "README.md").write_text("marker", encoding="utf-8")

    db = InventoryDatabase(root_dir=str(tmp_path))

    assert db.db_path == str(tmp_path / "var" / "inventory" / "inventory.sqlite3")
    assert (tmp_path / "var" / "inventory" / "inventory.sqlite3").exists()


def test_product_round_trip(tmp_path):
    db = _make_db(tmp_path)
    pid = db.add_product(
        Product(
            id=None,
            user_id="alice",
            name="Milk",
            expiry_date=datetime(2026, 10, 22),
            reminder_days=3,
            category="Dairy",
        )
    )

    product = db.get_product(pid)

    assert product.id == pid
    assert product.name == "Milk"
    assert product.expiry_date == datetime(2026, 10, 22)
    assert product.reminder_days == 3
    assert product.to_dict()["expiry_date"] == "2026-10-22"


def test_update_and_delete_product(tmp_path):
    db = _make_db(tmp_path)
    pid = db.add_product(Product(id=None, user_id="alice", name="Milk", expiry_date=None, reminder_days=7))

    assert db.update_product(pid, {"expiry_date": datetime(2026, 11, 1), "name": "Oat milk"}) is True
    product = db.get_product(pid)
    assert product.name == "Oat milk"
    assert product.expiry_date == datetime(2026, 11, 1)

    with pytest.raises(ValueError):
        db.update_product(pid, {"user_id": "mallory"})

    assert db.delete_product(pid) is True
    assert db.delete_product(pid) is False
    assert db.get_product(pid) is None


def test_query_products_orders_by_expiry_and_scopes_user(tmp_path):
    db = _make_db(tmp_path)
    db.add_product(Product(id=None, user_id="alice", name="Unknown", expiry_date=None, reminder_days=7))
    db.add_product(Product(id=None, user_id="alice", name="Late", expiry_date=datetime(2027, 1, 1), reminder_days=7))
    db.add_product(Product(id=None, user_id="alice", name="Soon", expiry_date=datetime(2026, 10, 20), reminder_days=7))
    db.add_product(Product(id=None, user_id="bob", name="Other", expiry_date=datetime(2026, 10, 1), reminder_days=7))

    assert [p.name for p in db.query_products("alice")] == ["Soon", "Late", "Unknown"]


def test_negative_reminder_days_rejected(tmp_path):
    db = _make_db(tmp_path)

    with pytest.raises(StoreError):
        db.add_product(Product(id=None, user_id="alice", name="Milk", expiry_date=None, reminder_days=-1))


def test_create_notification_once_refuses_duplicate(tmp_path):
    db = _make_db(tmp_path)

    first = db.create_notification_once(_notification("7"))
    second = db.create_notification_once(_notification("7"))
    other_type = db.create_notification_once(_notification("7", kind="expired"))

    assert first is not None
    assert second is None
    assert other_type is not None
    assert len(db.query_notifications("alice", product_id="7")) == 2


def test_unknown_notification_type_rejected(tmp_path):
    db = _make_db(tmp_path)

    with pytest.raises(StoreError):
        db.create_notification(_notification("7", kind="digest"))


def test_query_notifications_filters(tmp_path):
    db = _make_db(tmp_path)
    a = db.create_notification(_notification("1"))
    db.create_notification(_notification("2"))
    pending = _notification("3")
    pending.notified = False
    db.create_notification(pending)
    db.update_notification(a, {"read": True})

    assert len(db.query_notifications("alice")) == 3
    assert len(db.query_notifications("alice", notified=True)) == 2
    assert [n.product_id for n in db.query_notifications("alice", notified=True, read=False)] == ["2"]
    assert db.query_notifications("bob") == []


def test_unread_count_and_mark_all_read(tmp_path):
    db = _make_db(tmp_path)
    db.create_notification(_notification("1"))
    db.create_notification(_notification("2"))
    pending = _notification("3")
    pending.notified = False
    db.create_notification(pending)

    assert db.count_unread("alice") == 2
    assert db.mark_all_read("alice") == 3
    assert db.count_unread("alice") == 0


def test_get_update_delete_notification(tmp_path):
    db = _make_db(tmp_path)
    nid = db.create_notification(_notification("1"))

    record = db.get_notification(nid)
    assert record.message == "reminder for 1"
    assert record.created_at == "2026-10-19T09:00:00"

    assert db.update_notification(nid, {"message": "changed"}) is True
    assert db.get_notification(nid).message == "changed"
    with pytest.raises(ValueError):
        db.update_notification(nid, {"type": "expired"})

    assert db.delete_notification(nid) is True
    assert db.get_notification(nid) is None
    assert db.update_notification(nid, {"read": True}) is False


def test_settings(tmp_path):
    db = _make_db(tmp_path)

    assert db.get_setting("session_user_id") is None
    db.set_setting("session_user_id", "alice")
    db.set_setting("session_user_id", "bob")
    assert db.get_setting("session_user_id") == "bob"


@pytest.mark.parametrize(
    "message, expected",
    [
        ("attempt to write a readonly database", StorePermissionError),
        ("unable to open database file", StorePermissionError),
        ("database is locked", StoreError),
    ],
)
def test_sqlite_errors_are_translated(message, expected):
    translated = db_module._translate(sqlite3.OperationalError(message))

    assert type(translated) is expected
    assert message in str(translated)
