"""Expiry-date extraction (text rules) and label OCR."""

from .dates import CandidateDate, extract_expiry_date, find_candidate_dates, pick_latest

__all__ = [
    "CandidateDate",
    "extract_expiry_date",
    "find_candidate_dates",
    "pick_latest",
]
