"""Expiry-date classification for free-text expiry fields."""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class ExpiryTier(str, Enum):
    NONE = "none"
    SKULL = "skull"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


@dataclass(frozen=True)
class ExpiryThresholds:
    """Days-left boundaries; each boundary day belongs to the nearer tier.

    ``days_left <= 0`` is expired, ``days_left <= red_days`` is red,
    ``days_left <= yellow_days`` is yellow, anything later is green.
    """

    red_days: int = 7
    yellow_days: int = 30


DEFAULT_THRESHOLDS = ExpiryThresholds()


@dataclass(frozen=True)
class ExpiryStatus:
    tier: ExpiryTier
    expiry: Optional[date] = None
    days_left: Optional[int] = None


_ISO_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[T\s].*)?$")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2}|\d{4})$")
_MONTH_YEAR = re.compile(r"^(\d{1,2})[/.\-](\d{4})$")
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _end_of_month(year: int, month: int) -> Optional[date]:
    if not 1 <= month <= 12 or year < 1:
        return None
    return date(year, month, calendar.monthrange(year, month)[1])


def parse_expiry(text: Optional[str]) -> Optional[date]:
    """Parse the date-like formats shop staff type into expiry fields."""

    if not text:
        return None
    candidate = str(text).strip()
    if not candidate:
        return None
    match = _ISO_DATE.match(candidate)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)
    match = _DAY_FIRST.match(candidate)
    if match:
        day, month, year_raw = match.groups()
        year = int(year_raw)
        if len(year_raw) == 2:
            year += 2000
        return _safe_date(year, int(month), int(day))
    match = _MONTH_YEAR.match(candidate)
    if match:
        month, year = (int(part) for part in match.groups())
        return _end_of_month(year, month)
    match = _YEAR_MONTH.match(candidate)
    if match:
        year, month = (int(part) for part in match.groups())
        return _end_of_month(year, month)
    return None


def classify_expiry(
    text: Optional[str],
    *,
    today: Optional[date] = None,
    thresholds: Optional[ExpiryThresholds] = None,
) -> ExpiryStatus:
    """Map an expiry text to a status tier; unrecognized input is ``NONE``."""

    expiry = parse_expiry(text)
    if expiry is None:
        return ExpiryStatus(ExpiryTier.NONE)
    limits = thresholds or DEFAULT_THRESHOLDS
    reference = today or date.today()
    days_left = (expiry - reference).days
    if days_left <= 0:
        tier = ExpiryTier.SKULL
    elif days_left <= limits.red_days:
        tier = ExpiryTier.RED
    elif days_left <= limits.yellow_days:
        tier = ExpiryTier.YELLOW
    else:
        tier = ExpiryTier.GREEN
    return ExpiryStatus(tier, expiry, days_left)


__all__ = [
    "ExpiryTier",
    "ExpiryThresholds",
    "ExpiryStatus",
    "DEFAULT_THRESHOLDS",
    "parse_expiry",
    "classify_expiry",
]
