"""Line-item solver.

Given a vendor's priced items and a target subtotal (cents), find a
quantity for each item so that ``sum(qty * unit_price) == target``.

The search is a bounded depth-first walk over the items in order.  Per-suffix
minimum/maximum subtotals prune any branch whose remaining target is out of
reach, and a global operation counter caps the work per solve.  When no exact
fit is found the caller keeps the closest random assignment instead of
failing; invoice and disbursement totals are always recomputed from the
items that were actually produced, so an approximate fit never breaks the
case's arithmetic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .money import scale, tax_on
from .rng import SeededRandom
from .vendors import PricedItem

log = logging.getLogger(__name__)

MAX_OPS = 2000
MAX_ATTEMPTS = 10
MAX_ITEMS_PER_INVOICE = 5
RANDOMIZE_RANGE_LIMIT = 100
RANDOMIZE_OPS_LIMIT = 500

SHIPPING_FLOOR = 2500
SHIPPING_CAP = 30000
SHIPPING_STEP = 500


@dataclass(frozen=True)
class LineItem:
    description: str
    qty: int
    unit_price: int

    @property
    def extended(self) -> int:
        return self.qty * self.unit_price


@dataclass(frozen=True)
class LineItemResult:
    items: tuple[LineItem, ...]
    total: int
    exact: bool


def subtotal_of(items: Sequence[LineItem]) -> int:
    return sum(i.extended for i in items)


def _quantity_options(
    lo: int, hi: int, rng: SeededRandom, randomize: bool
) -> list[int]:
    if hi - lo > RANDOMIZE_RANGE_LIMIT or not randomize:
        return list(range(hi, lo - 1, -1))
    return rng.shuffle(range(lo, hi + 1))


def solve_quantities(
    items: Sequence[PricedItem],
    target: int,
    rng: SeededRandom,
    max_ops: int = MAX_OPS,
) -> list[int] | None:
    """Exact quantity assignment hitting ``target`` cents, or None.

    Returns None immediately when the target lies outside the achievable
    range, and None when ``max_ops`` node expansions pass without a fit.
    """
    n = len(items)
    min_totals = [0] * (n + 1)
    max_totals = [0] * (n + 1)
    for i in range(n - 1, -1, -1):
        min_totals[i] = min_totals[i + 1] + items[i].min_qty * items[i].unit_price
        max_totals[i] = max_totals[i + 1] + items[i].max_qty * items[i].unit_price
    if target < min_totals[0] or target > max_totals[0]:
        return None

    ops = 0

    def solve(index: int, remaining: int) -> list[int] | None:
        nonlocal ops
        ops += 1
        if ops > max_ops:
            return None
        if index == n:
            return [] if remaining == 0 else None
        item = items[index]
        options = _quantity_options(
            item.min_qty, item.max_qty, rng, randomize=ops < RANDOMIZE_OPS_LIMIT
        )
        for qty in options:
            rest = remaining - qty * item.unit_price
            if rest < min_totals[index + 1] or rest > max_totals[index + 1]:
                continue
            found = solve(index + 1, rest)
            if found is not None:
                return [qty, *found]
            if ops > max_ops:
                return None
        return None

    return solve(0, target)


def build_line_items(
    catalog: Sequence[PricedItem],
    target: int,
    rng: SeededRandom,
    attempts: int = MAX_ATTEMPTS,
    max_ops: int = MAX_OPS,
) -> LineItemResult:
    """Choose items and quantities for one invoice subtotal.

    Each attempt draws a fresh subset (always holding a flexible item when
    the catalog has one) and runs :func:`solve_quantities`.  Failing every
    attempt, the random-quantity assignment closest to ``target`` wins.
    """
    max_items = min(MAX_ITEMS_PER_INVOICE, len(catalog))
    min_items = min(2, max_items)
    best: tuple[LineItem, ...] | None = None
    best_total = 0
    best_delta: int | None = None

    for _ in range(attempts):
        count = rng.randint(min_items, max_items)
        selection = rng.shuffle(catalog)[:count]
        if selection and not any(i.flexible for i in selection):
            flexible = next(
                (i for i in catalog if i.flexible and i not in selection), None
            )
            if flexible is not None:
                selection[0] = flexible
        if len(selection) < min_items or not selection:
            continue

        quantities = solve_quantities(selection, target, rng, max_ops=max_ops)
        if quantities is not None:
            items = tuple(
                LineItem(i.description, q, i.unit_price)
                for i, q in zip(selection, quantities)
            )
            return LineItemResult(items=items, total=target, exact=True)

        fallback = tuple(
            LineItem(i.description, rng.randint(i.min_qty, i.max_qty), i.unit_price)
            for i in selection
        )
        total = subtotal_of(fallback)
        delta = abs(total - target)
        if best_delta is None or delta < best_delta:
            best, best_total, best_delta = fallback, total, delta

    if best is not None:
        log.debug(
            "No exact line-item fit for %d cents; closest is off by %d", target, best_delta
        )
        return LineItemResult(items=best, total=best_total, exact=False)

    if catalog:
        items = tuple(
            LineItem(i.description, i.min_qty, i.unit_price) for i in catalog[:2]
        )
        return LineItemResult(items=items, total=subtotal_of(items), exact=False)
    items = (LineItem("Service line item", 1, target),)
    return LineItemResult(items=items, total=target, exact=target > 0)


def shipping_for_subtotal(subtotal: int, rng: SeededRandom) -> int:
    """Freight charge: 1%-3.5% of the subtotal, at least $25, at most $300."""
    lo_raw = max(SHIPPING_FLOOR, scale(subtotal, 0.01))
    hi_raw = max(lo_raw, scale(subtotal, 0.035))
    lo = min(lo_raw, SHIPPING_CAP)
    hi = min(max(hi_raw, lo), SHIPPING_CAP)
    return rng.random_step(lo, hi, SHIPPING_STEP)


def invoice_total(subtotal: int, tax_rate_bp: int, shipping: int) -> int:
    """Subtotal plus tax (half up to the cent) plus shipping."""
    return subtotal + tax_on(subtotal, tax_rate_bp) + shipping
