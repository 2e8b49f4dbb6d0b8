from __future__ import annotations

from typing import Dict, Optional


class ShelfAwareError(Exception):
    """Base class for errors raised by the shelfaware package."""


class StoreError(ShelfAwareError):
    """The inventory store could not complete a read or write."""


class StorePermissionError(StoreError):
    """The inventory store refused access (read-only or unopenable database)."""


class AlertDeliveryError(ShelfAwareError):
    """An alert sink failed to deliver an alert."""


class ProductValidationError(ShelfAwareError):
    def __init__(self, errors: Dict[str, str], message: Optional[str] = None) -> None:
        self.errors = dict(errors)
        super().__init__(message or "Invalid product: " + ", ".join(sorted(self.errors)))


class OcrError(ShelfAwareError):
    """Text recognition on a label image failed."""
