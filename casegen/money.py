"""Integer-cents money helpers.

Amounts are carried as ``int`` cents everywhere inside the generator and
converted to dollars only when a draft is serialized.  Tax rates are basis
points (1/100 of a percent) so invoice arithmetic stays exact.
"""

from __future__ import annotations

import math

CENTS = 100
BASIS_POINTS = 10_000


def dollars(value: float) -> int:
    """Whole or fractional dollars to cents, rounding half up."""
    return math.floor(value * CENTS + 0.5)


def to_dollars(cents: int) -> float:
    return round(cents / CENTS, 2)


def scale(cents: int, factor: float) -> int:
    """Multiply an amount by a float factor, rounding half up to the cent."""
    return math.floor(cents * factor + 0.5)


def round_to(cents: int, unit: int) -> int:
    """Round to the nearest multiple of ``unit`` cents (half up)."""
    return ((cents + unit // 2) // unit) * unit


def floor_to(cents: int, unit: int) -> int:
    return (cents // unit) * unit


def tax_on(subtotal: int, rate_bp: int) -> int:
    """Tax in cents for a subtotal at ``rate_bp`` basis points."""
    return (subtotal * rate_bp + BASIS_POINTS // 2) // BASIS_POINTS


def rate_from_bp(rate_bp: int) -> float:
    return rate_bp / BASIS_POINTS


def format_money(cents: int) -> str:
    """``$1,234.56`` (negative amounts as ``-$1,234.56``)."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${format_money_number(abs(cents))}"


def format_money_number(cents: int) -> str:
    whole, frac = divmod(abs(cents), CENTS)
    sign = "-" if cents < 0 else ""
    return f"{sign}{whole:,}.{frac:02d}"


_ONES = [
    "",
    "One",
    "Two",
    "Three",
    "Four",
    "Five",
    "Six",
    "Seven",
    "Eight",
    "Nine",
    "Ten",
    "Eleven",
    "Twelve",
    "Thirteen",
    "Fourteen",
    "Fifteen",
    "Sixteen",
    "Seventeen",
    "Eighteen",
    "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _under_thousand(n: int) -> str:
    if n == 0:
        return ""
    if n < 20:
        return _ONES[n]
    if n < 100:
        rest = _ONES[n % 10]
        return f"{_TENS[n // 10]} {rest}" if rest else _TENS[n // 10]
    tail = _under_thousand(n % 100)
    head = f"{_ONES[n // 100]} Hundred"
    return f"{head} {tail}" if tail else head


def number_to_words(n: int) -> str:
    """Spell a whole-dollar amount for a check face (up to 999,999,999)."""
    n = abs(n)
    if n == 0:
        return "Zero"
    if n > 999_999_999:
        return str(n)
    millions, rest = divmod(n, 1_000_000)
    thousands, remainder = divmod(rest, 1_000)
    parts: list[str] = []
    if millions:
        parts.append(f"{_under_thousand(millions)} Million")
    if thousands:
        parts.append(f"{_under_thousand(thousands)} Thousand")
    if remainder:
        parts.append(_under_thousand(remainder))
    return " ".join(parts)


def amount_in_words(cents: int) -> str:
    """``Twelve Thousand Five Hundred and 07/100``."""
    whole, frac = divmod(abs(cents), CENTS)
    return f"{number_to_words(whole)} and {frac:02d}/100"
