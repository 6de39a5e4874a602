"""Pseudo-dates.

Training cases use anonymized years written as ``20X2-12-31``.  Internally
the ``20X`` prefix maps to ``200`` so ordinary :class:`datetime.date`
arithmetic applies; formatting maps the year back to ``20X<digit>``.  Plain
ISO dates are accepted too, and anything derived from one stays ISO.

A pseudo-year has a single digit, so only 2000-2009 can be written back.
"""

from __future__ import annotations

import re
from datetime import date, timedelta

_PSEUDO_RE = re.compile(r"^20X(\d)-(\d{2})-(\d{2})$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

PSEUDO_YEARS = (2000, 2009)

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


def parse_pseudo_date(value: str | None) -> date | None:
    """Parse ``20Xn-MM-DD`` (or a plain ISO date); None if malformed."""
    if not value:
        return None
    text = str(value).strip()
    m = _PSEUDO_RE.match(text)
    if m:
        year = 2000 + int(m.group(1))
    else:
        m = _ISO_RE.match(text)
        if not m:
            return None
        year = int(m.group(1))
    try:
        return date(year, int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def is_iso_date(value: str | None) -> bool:
    return bool(value) and _ISO_RE.match(str(value).strip()) is not None


def _pseudo_year(year: int) -> str:
    if not PSEUDO_YEARS[0] <= year <= PSEUDO_YEARS[1]:
        raise ValueError(f"Year {year} cannot be written as a 20Xn pseudo-year")
    return f"20X{year - PSEUDO_YEARS[0]}"


def format_pseudo_date(d: date) -> str:
    return f"{_pseudo_year(d.year)}-{d.month:02d}-{d.day:02d}"


def add_days(value: str, days: int) -> str:
    """Shift a date, keeping its style; unparseable input is returned unchanged."""
    parsed = parse_pseudo_date(value)
    if parsed is None:
        return value
    shifted = parsed + timedelta(days=days)
    if is_iso_date(value):
        return shifted.isoformat()
    return format_pseudo_date(shifted)


def days_between(start: str, end: str) -> int | None:
    a = parse_pseudo_date(start)
    b = parse_pseudo_date(end)
    if a is None or b is None:
        return None
    return (b - a).days


def year_token(value: str, offset: int = 0) -> str:
    """``20X2`` for ``20X2-12-31`` (``2024`` for an ISO date); ``offset`` shifts the year."""
    parsed = parse_pseudo_date(value)
    if parsed is None:
        return str(value)[:4]
    if is_iso_date(value):
        return str(parsed.year + offset)
    return _pseudo_year(parsed.year + offset)


def long_date(value: str) -> str:
    """``December 31 20X2``."""
    parsed = parse_pseudo_date(value)
    if parsed is None:
        return str(value)
    return f"{MONTH_NAMES[parsed.month - 1]} {parsed.day} {year_token(value)}"


def sort_key(value: str | None) -> tuple[int, str]:
    """Sort parseable dates chronologically, then everything else lexically."""
    parsed = parse_pseudo_date(value)
    if parsed is None:
        return (1, str(value or ""))
    return (0, parsed.isoformat())
