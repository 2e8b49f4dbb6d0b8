"""Inventory persistence: products, notifications and session settings (SQLite)."""

from .db import InventoryDatabase

__all__ = ["InventoryDatabase"]
