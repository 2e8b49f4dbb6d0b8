from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

from .models import CATEGORIES


def validate_product(product: Mapping[str, Any]) -> Tuple[bool, Dict[str, str]]:
    """Check the fields a product needs before it is saved.

    Returns ``(is_valid, errors)`` where errors maps field name to a message
    suitable for showing next to the input.
    """
    errors: Dict[str, str] = {}

    category = product.get("category")
    if not category:
        errors["category"] = "Please select a category"
    elif category not in CATEGORIES:
        errors["category"] = f"Unknown category: {category}"
    elif category == "Other" and not str(product.get("custom_category") or "").strip():
        errors["custom_category"] = "Please enter a custom category"

    if not str(product.get("name") or "").strip():
        errors["name"] = "Please enter product name"

    if not product.get("expiry_date"):
        errors["expiry_date"] = "Please select expiry date"

    reminder = product.get("reminder_days")
    if reminder is not None:
        try:
            if int(reminder) < 0:
                errors["reminder_days"] = "Reminder days cannot be negative"
        except (TypeError, ValueError):
            errors["reminder_days"] = "Reminder days must be a whole number"

    return len(errors) == 0, errors
