"""
ShelfAware: expiry intelligence core.

Recovers expiry dates from OCR'd product labels and raises one alert per
product once its reminder threshold is crossed.
"""

from .extraction.dates import extract_expiry_date

__all__ = [
    "config",
    "extract_expiry_date",
    "logging",
    "paths",
]
