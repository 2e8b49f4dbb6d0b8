from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from ..domain.models import (
    NOTIFICATION_TYPES,
    Notification,
    Product,
    format_timestamp,
)
from ..errors import StoreError, StorePermissionError
from ..logging import get_logger
from ..paths import find_project_root, var_dir


LOG = get_logger("inventory-db")


DEFAULT_DB_FOLDER = "inventory"
DEFAULT_DB_FILENAME = "inventory.sqlite3"

NOTIFICATION_TYPE_ENUM_SQL = ", ".join(f"'{value}'" for value in NOTIFICATION_TYPES)

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS products (
  product_id       INTEGER PRIMARY KEY,
  user_id          TEXT NOT NULL,
  name             TEXT NOT NULL,
  category         TEXT,
  custom_category  TEXT,
  expiry_date      TEXT,              -- "YYYY-MM-DDT00:00:00"; NULL when unknown
  reminder_days    INTEGER CHECK (reminder_days IS NULL OR reminder_days >= 0),
  created_at       TEXT DEFAULT (datetime('now')),
  updated_at       TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS notifications (
  notification_id  INTEGER PRIMARY KEY,
  user_id          TEXT NOT NULL,
  product_id       TEXT NOT NULL,
  type             TEXT NOT NULL CHECK (type IN ({NOTIFICATION_TYPE_ENUM_SQL})),
  message          TEXT NOT NULL,
  created_at       TEXT DEFAULT (datetime('now')),
  read             INTEGER NOT NULL DEFAULT 0,
  notified         INTEGER NOT NULL DEFAULT 1
);

-- One delivered alert per (product, event type)
CREATE UNIQUE INDEX IF NOT EXISTS idx_notifications_notified_once
  ON notifications(product_id, type) WHERE notified = 1;

CREATE TABLE IF NOT EXISTS settings (
  key    TEXT PRIMARY KEY,
  value  TEXT
);

CREATE INDEX IF NOT EXISTS idx_products_user         ON products(user_id, expiry_date);
CREATE INDEX IF NOT EXISTS idx_notifications_user    ON notifications(user_id, notified, read);
"""

PRODUCT_FIELDS = ("name", "category", "custom_category", "expiry_date", "reminder_days")
NOTIFICATION_FIELDS = ("message", "read", "notified")

_PERMISSION_MARKERS = ("readonly", "read-only", "unable to open", "not authorized", "permission")


def _translate(exc: sqlite3.Error) -> StoreError:
    text = str(exc).lower()
    if any(marker in text for marker in _PERMISSION_MARKERS):
        return StorePermissionError(str(exc))
    return StoreError(str(exc))


def _db_value(field: str, value: Any) -> Any:
    if field == "expiry_date" and isinstance(value, datetime):
        return format_timestamp(value)
    if field in ("read", "notified"):
        return 1 if value else 0
    return value


class InventoryDatabase:
    """SQLite-backed product and notification store.

    - Places DB under `<repo-root>/var/inventory/inventory.sqlite3` unless
      `db_path` is given.
    - Ensures schema on first use.
    - Every method opens its own connection, so calls are safe from worker threads.
    - sqlite3 errors surface as StoreError / StorePermissionError.
    """

    def __init__(self, root_dir: Optional[str] = None, *, db_path: Optional[str] = None) -> None:
        if db_path is None:
            root = find_project_root(root_dir)
            db_folder = os.path.join(var_dir(root), DEFAULT_DB_FOLDER)
            os.makedirs(db_folder, exist_ok=True)
            db_path = os.path.join(db_folder, DEFAULT_DB_FILENAME)
        self.db_path = db_path
        LOG.info(f"Inventory DB path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise _translate(exc) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            conn.rollback()
            raise _translate(exc) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.OperationalError:
                # Non-fatal; continue with schema creation
                pass
            LOG.debug("Ensuring inventory DB schema is present")
            cur.executescript(SCHEMA_SQL)
            conn.commit()

    # --------------- Products ---------------
    def add_product(self, product: Product) -> str:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO products (
                    user_id, name, category, custom_category, expiry_date, reminder_days
                ) VALUES (?, ?, ?, ?, ?, ?)
                RETURNING product_id;
                """,
                (
                    product.user_id,
                    product.name,
                    product.category,
                    product.custom_category,
                    format_timestamp(product.expiry_date),
                    product.reminder_days,
                ),
            )
            row = cur.fetchone()
            conn.commit()
            product_id = str(row[0])
        LOG.debug(f"Inserted product_id={product_id} for user={product.user_id}")
        return product_id

    def get_product(self, product_id: str) -> Optional[Product]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM products WHERE product_id = ?;", (product_id,))
            row = cur.fetchone()
        return Product.from_row(row) if row is not None else None

    def update_product(self, product_id: str, fields: Dict[str, Any]) -> bool:
        unknown = set(fields) - set(PRODUCT_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported product field(s): {sorted(unknown)}")
        if not fields:
            return False
        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_db_value(name, value) for name, value in fields.items()]
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE products SET {assignments}, updated_at = datetime('now') WHERE product_id = ?;",
                (*params, product_id),
            )
            conn.commit()
            return cur.rowcount > 0

    def delete_product(self, product_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM products WHERE product_id = ?;", (product_id,))
            conn.commit()
            return cur.rowcount > 0

    def query_products(self, user_id: str) -> List[Product]:
        """All products of a user, soonest expiry first (unknown expiry last)."""
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT * FROM products
                WHERE user_id = ?
                ORDER BY expiry_date IS NULL, expiry_date ASC, product_id ASC;
                """,
                (user_id,),
            )
            rows = cur.fetchall()
        return [Product.from_row(row) for row in rows]

    # --------------- Notifications ---------------
    def query_notifications(
        self,
        user_id: str,
        *,
        notified: Optional[bool] = None,
        read: Optional[bool] = None,
        product_id: Optional[str] = None,
    ) -> List[Notification]:
        """Notifications of a user filtered by equality on the given fields, newest first."""
        where = ["user_id = ?"]
        params: List[Any] = [user_id]
        if notified is not None:
            where.append("notified = ?")
            params.append(1 if notified else 0)
        if read is not None:
            where.append("read = ?")
            params.append(1 if read else 0)
        if product_id is not None:
            where.append("product_id = ?")
            params.append(str(product_id))
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT * FROM notifications
                WHERE {' AND '.join(where)}
                ORDER BY created_at DESC, notification_id DESC;
                """,
                params,
            )
            rows = cur.fetchall()
        return [Notification.from_row(row) for row in rows]

    def create_notification(self, record: Notification) -> str:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO notifications (user_id, product_id, type, message, read, notified, created_at)
                VALUES (?, ?, ?, ?, ?, ?, COALESCE(?, datetime('now')))
                RETURNING notification_id;
                """,
                (
                    record.user_id,
                    str(record.product_id),
                    record.type,
                    record.message,
                    1 if record.read else 0,
                    1 if record.notified else 0,
                    record.created_at,
                ),
            )
            row = cur.fetchone()
            conn.commit()
            return str(row[0])

    def create_notification_once(self, record: Notification) -> Optional[str]:
        """Insert a notified record unless one exists for (product_id, type).

        Returns the new id, or None when another writer got there first.
        """
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO notifications (user_id, product_id, type, message, read, notified, created_at)
                VALUES (?, ?, ?, ?, ?, 1, COALESCE(?, datetime('now')))
                ON CONFLICT(product_id, type) WHERE notified = 1 DO NOTHING
                RETURNING notification_id;
                """,
                (
                    record.user_id,
                    str(record.product_id),
                    record.type,
                    record.message,
                    1 if record.read else 0,
                    record.created_at,
                ),
            )
            row = cur.fetchone()
            conn.commit()
        if row is None:
            LOG.debug(f"Notification for product={record.product_id} type={record.type} already exists")
            return None
        return str(row[0])

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM notifications WHERE notification_id = ?;", (notification_id,))
            row = cur.fetchone()
        return Notification.from_row(row) if row is not None else None

    def update_notification(self, notification_id: str, fields: Dict[str, Any]) -> bool:
        unknown = set(fields) - set(NOTIFICATION_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported notification field(s): {sorted(unknown)}")
        if not fields:
            return False
        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_db_value(name, value) for name, value in fields.items()]
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE notifications SET {assignments} WHERE notification_id = ?;",
                (*params, notification_id),
            )
            conn.commit()
            return cur.rowcount > 0

    def delete_notification(self, notification_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM notifications WHERE notification_id = ?;", (notification_id,))
            conn.commit()
            return cur.rowcount > 0

    def count_unread(self, user_id: str) -> int:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT COUNT(*) AS count FROM notifications WHERE user_id = ? AND read = 0 AND notified = 1;",
                (user_id,),
            )
            return int(cur.fetchone()["count"])

    def mark_all_read(self, user_id: str) -> int:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0;",
                (user_id,),
            )
            conn.commit()
            return cur.rowcount

    # --------------- Settings ---------------
    def get_setting(self, key: str) -> Optional[str]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT value FROM settings WHERE key = ?;", (key,))
            row = cur.fetchone()
        return row["value"] if row is not None else None

    def set_setting(self, key: str, value: Optional[str]) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                """,
                (key, value),
            )
            conn.commit()
