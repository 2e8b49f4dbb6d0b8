"""Expiry-date extraction from OCR'd label text.

Label text is noisy and uses inconsistent vocabulary ("EXP", "best before",
"use by", "BB", or nothing at all), so every rule below runs over the whole
text and all of their matches form one candidate pool. The pool is reduced to
a single date by :func:`pick_latest`.

Month-only dates (``MM/YYYY``, ``end of MM/YYYY``) resolve to the last day of
the month: the extracted point is the last safe day.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..logging import get_logger

LOG = get_logger("date-extractor")

MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "jan": 1,
        "feb": 2,
        "mar": 3,
        "apr": 4,
        "may": 5,
        "jun": 6,
        "jul": 7,
        "aug": 8,
        "sep": 9,
        "oct": 10,
        "nov": 11,
        "dec": 12,
    }
)

LABEL = (
    r"\b(?:exp(?:iry)?|best\s+before|use\s+by|valid\s+until|bb|exp\.?|use\s+before)"
    r"(?:\s*date)?[\s:.]+"
)

# Numeric shapes are fenced so a shorter shape is never read out of a longer
# one ("01/2025" inside "15/01/2025"). A trailing "-L45" lot code is allowed.
_FENCE_LEFT = r"(?<![\d/-])"
_FENCE_RIGHT = r"(?![\d/]|-\d)"

_DMY = r"(?P<d>\d{1,2})[/-](?P<m>\d{1,2})[/-](?P<y>\d{4})"
_MY = r"(?P<m>\d{1,2})[/-](?P<y>\d{4})"
_YMD = r"(?P<y>\d{4})[/-](?P<m>\d{1,2})[/-](?P<d>\d{1,2})"
_TEXT_MONTH = (
    r"(?<!\d)(?P<d>\d{1,2})[\s.-]*"
    r"(?P<mon>jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?[\s.-]*"
    r"(?P<y>\d{4})(?!\d)"
)
_END_OF = r"end\s+of\s*" + _MY + _FENCE_RIGHT


@dataclass(frozen=True)
class CandidateDate:
    value: datetime
    raw: str
    pattern: str
    labeled: bool
    start: int
    end: int


Resolver = Callable[["re.Match[str]"], datetime]


def _day_month_year(m: "re.Match[str]") -> datetime:
    return datetime(int(m.group("y")), int(m.group("m")), int(m.group("d")))


def _end_of_month(m: "re.Match[str]") -> datetime:
    year, month = int(m.group("y")), int(m.group("m"))
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, last_day)


def _text_month(m: "re.Match[str]") -> datetime:
    month = MONTHS[m.group("mon").lower()[:3]]
    return datetime(int(m.group("y")), month, int(m.group("d")))


@dataclass(frozen=True)
class DateRule:
    name: str
    regex: "re.Pattern[str]"
    resolve: Resolver
    label_required: bool

    def find(self, text: str) -> List[CandidateDate]:
        found: List[CandidateDate] = []
        for match in self.regex.finditer(text):
            try:
                value = self.resolve(match)
            except (ValueError, OverflowError):
                # Calendar-invalid (day 32, month 13, year 0000)
                LOG.debug(f"Rule {self.name} rejected {match.group('date')!r}")
                continue
            labeled = self.label_required or (
                "label" in self.regex.groupindex and match.group("label") is not None
            )
            found.append(
                CandidateDate(
                    value=value,
                    raw=match.group("date"),
                    pattern=self.name,
                    labeled=labeled,
                    start=match.start("date"),
                    end=match.end("date"),
                )
            )
        return found


def _labeled(name: str, shape: str, resolve: Resolver) -> DateRule:
    regex = re.compile(LABEL + f"(?P<date>{shape}){_FENCE_RIGHT}", re.IGNORECASE)
    return DateRule(name, regex, resolve, True)


def _unlabeled(name: str, shape: str, resolve: Resolver) -> DateRule:
    regex = re.compile(f"{_FENCE_LEFT}(?P<date>{shape}){_FENCE_RIGHT}", re.IGNORECASE)
    return DateRule(name, regex, resolve, False)


def _label_optional(name: str, shape: str, resolve: Resolver) -> DateRule:
    regex = re.compile(f"(?P<label>{LABEL})?(?P<date>{shape})", re.IGNORECASE)
    return DateRule(name, regex, resolve, False)


RULES: Tuple[DateRule, ...] = (
    _labeled("labeled-dmy", _DMY, _day_month_year),
    _labeled("labeled-my", _MY, _end_of_month),
    _labeled("labeled-ymd", _YMD, _day_month_year),
    _unlabeled("dmy", _DMY, _day_month_year),
    _unlabeled("ymd", _YMD, _day_month_year),
    _unlabeled("my", _MY, _end_of_month),
    _label_optional("text-month", _TEXT_MONTH, _text_month),
    _label_optional("end-of-month", _END_OF, _end_of_month),
)


def find_candidate_dates(text: str, rules: Sequence[DateRule] = RULES) -> List[CandidateDate]:
    """Run every rule over text and return the de-duplicated candidate pool.

    When two rules read the same span, the labeled reading is kept.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="ignore")
    if not isinstance(text, str) or not text:
        return []

    by_span: Dict[Tuple[int, int], CandidateDate] = {}
    for rule in rules:
        for cand in rule.find(text):
            key = (cand.start, cand.end)
            seen = by_span.get(key)
            if seen is None or (cand.labeled and not seen.labeled):
                by_span[key] = cand
    return sorted(by_span.values(), key=lambda c: c.start)


def pick_latest(candidates: Iterable[CandidateDate]) -> Optional[CandidateDate]:
    """Return the chronologically latest candidate, or None for an empty pool."""
    best: Optional[CandidateDate] = None
    for cand in candidates:
        if best is None or cand.value > best.value:
            best = cand
    return best


def extract_expiry_date(text: str, *, not_before: Optional[datetime] = None) -> Optional[datetime]:
    """Return the best-guess expiry date in text, or None.

    Candidates dated before ``not_before`` are discarded when it is given;
    otherwise past dates (e.g. a printed manufacture date) stay in the pool.
    """
    candidates = find_candidate_dates(text)
    if not_before is not None:
        candidates = [c for c in candidates if c.value >= not_before]
    best = pick_latest(candidates)
    if best is None:
        LOG.debug("No expiry date candidates found")
        return None
    LOG.debug(f"Picked {best.raw!r} ({best.pattern}) out of {len(candidates)} candidate(s)")
    return best.value
