"""Invoice synthesis.

Each disbursement target expands into one or more invoices whose dates and
AP-recording flags encode the target's trap (if any).  Line items are then
solved against each invoice's amount, vendor tax and freight are applied,
and every amount is recomputed from what was actually produced, so a
payment always equals the sum of its settlement invoices.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from .context import GenerationContext
from .dates import add_days, parse_pseudo_date
from .money import scale
from .planner import DisbursementTarget
from .rng import SeededRandom
from .solver import LineItem, build_line_items, invoice_total, shipping_for_subtotal, subtotal_of

log = logging.getLogger(__name__)

FIRST_INVOICE_NUMBER = 1000
MIN_BUNDLE_INVOICES = 8
MIN_ACCRUAL_INVOICES = 2
TIMING_SERVICE_DAYS = 90


@dataclass(frozen=True)
class Invoice:
    payment_id: str
    vendor: str
    invoice_number: str
    invoice_date: str
    service_date: str | None
    shipping_date: str | None
    due_date: str
    amount: int  # cents
    is_recorded: bool
    trap_type: str | None = None
    service_period_start: str | None = None
    service_period_end: str | None = None
    is_estimate_only: bool = False
    line_items: tuple[LineItem, ...] = ()
    subtotal: int = 0
    tax_rate: int = 0  # basis points
    shipping: int = 0


def should_be_in_aging(service_date: str | None, shipping_date: str | None, year_end: str) -> bool:
    """True when the obligation existed at year end.

    False when neither date parses, or when either parseable date falls
    after year end.
    """
    ye = parse_pseudo_date(year_end)
    if ye is None:
        return False
    service = parse_pseudo_date(service_date)
    shipping = parse_pseudo_date(shipping_date)
    if service is None and shipping is None:
        return False
    if service is not None and service > ye:
        return False
    if shipping is not None and shipping > ye:
        return False
    return True


def split_amount_by_weights(total: int, count: int, rng: SeededRandom) -> list[int]:
    """Split ``total`` cents into ``count`` parts with weights in [0.6, 1.4].

    The rounding remainder lands on the first part, so the parts always sum
    to ``total``.
    """
    if total <= 0 or count <= 1:
        return [total]
    weights = [0.6 + rng.random() * 0.8 for _ in range(count)]
    weight_sum = sum(weights) or 1
    parts = [scale(total, w / weight_sum) for w in weights]
    parts[0] += total - sum(parts)
    return parts


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


def _bundle_invoices(target: DisbursementTarget, start: int, ctx: GenerationContext) -> list[Invoice]:
    rng = ctx.rng
    ye = ctx.year_end
    count = max(MIN_BUNDLE_INVOICES, target.invoice_count)
    withheld_index = rng.randint(0, count - 1)
    withheld = scale(target.amount, 0.08 + rng.random() * 0.07)
    rest = split_amount_by_weights(max(0, target.amount - withheld), count - 1, rng)

    invoices = []
    for idx in range(count):
        amount = withheld if idx == withheld_index else (rest.pop(0) if rest else 0)
        service_date = add_days(ye, -(8 + idx * 2))
        shipping_date = add_days(service_date, 2)
        in_aging = should_be_in_aging(service_date, shipping_date, ye)
        invoices.append(
            Invoice(
                payment_id=target.payment_id,
                vendor=target.payee,
                invoice_number=f"INV-{start + idx + 1}",
                invoice_date=add_days(ye, -(15 + idx)),
                service_date=service_date,
                shipping_date=shipping_date,
                due_date=add_days(target.payment_date, 20 + idx),
                amount=amount,
                is_recorded=False if idx == withheld_index else in_aging,
                trap_type=target.trap_type,
            )
        )
    return invoices


def _timing_invoices(target: DisbursementTarget, start: int, ctx: GenerationContext) -> list[Invoice]:
    ye = ctx.year_end
    period_start = add_days(ye, 1)
    return [
        Invoice(
            payment_id=target.payment_id,
            vendor=target.payee,
            invoice_number=f"INV-{start + 1}",
            invoice_date=add_days(ye, -12),
            service_date=period_start,
            shipping_date=add_days(period_start, 5),
            due_date=add_days(target.payment_date, 20),
            amount=target.amount,
            # Recorded in AP even though the service starts after year end.
            is_recorded=True,
            trap_type=target.trap_type,
            service_period_start=period_start,
            service_period_end=add_days(ye, TIMING_SERVICE_DAYS),
        )
    ]


def _accrual_invoices(target: DisbursementTarget, start: int, ctx: GenerationContext) -> list[Invoice]:
    rng = ctx.rng
    ye = ctx.year_end
    count = max(MIN_ACCRUAL_INVOICES, target.invoice_count)
    amounts = split_amount_by_weights(target.amount, count, rng)
    settlements = []
    for idx, amount in enumerate(amounts):
        service_date = add_days(ye, -(20 + idx * 3))
        settlements.append(
            Invoice(
                payment_id=target.payment_id,
                vendor=target.payee,
                invoice_number=f"INV-{start + idx + 1}",
                invoice_date=add_days(ye, 5 + idx * 2),
                service_date=service_date,
                shipping_date=add_days(service_date, 2),
                due_date=add_days(target.payment_date, 15 + idx * 3),
                amount=amount,
                is_recorded=False,
                trap_type=target.trap_type,
            )
        )
    settlement_total = sum(i.amount for i in settlements)
    estimate = Invoice(
        payment_id=target.payment_id,
        vendor=target.payee,
        invoice_number=f"ACCR-{start + count + 1}",
        invoice_date=ye,
        service_date=add_days(ye, -6),
        shipping_date=None,
        due_date=ye,
        amount=scale(settlement_total, 0.95 + rng.random() * 0.04),
        is_recorded=True,
        trap_type=target.trap_type,
        is_estimate_only=True,
    )
    return [*settlements, estimate]


def _ordinary_invoices(target: DisbursementTarget, start: int, ctx: GenerationContext) -> list[Invoice]:
    ye = ctx.year_end
    if max(1, target.invoice_count) == 1:
        amounts = [target.amount]
    else:
        primary = scale(target.amount, 0.6)
        amounts = [primary, target.amount - primary]

    invoices = []
    for idx, amount in enumerate(amounts):
        if target.service_timing == "pre":
            service_date = add_days(ye, -(12 + idx * 3))
        else:
            service_date = add_days(ye, 7 + idx * 5)
        shipping_date = add_days(service_date, 2)
        invoices.append(
            Invoice(
                payment_id=target.payment_id,
                vendor=target.payee,
                invoice_number=f"INV-{start + idx + 1}",
                invoice_date=add_days(target.payment_date, -(4 + idx)),
                service_date=service_date,
                shipping_date=shipping_date,
                due_date=add_days(target.payment_date, 26 + idx),
                amount=amount,
                is_recorded=should_be_in_aging(service_date, shipping_date, ye),
                trap_type=target.trap_type,
            )
        )
    return invoices


_EXPANDERS = {
    "bundle": _bundle_invoices,
    "timing": _timing_invoices,
    "accrual": _accrual_invoices,
}


def expand_target(target: DisbursementTarget, start: int, ctx: GenerationContext) -> list[Invoice]:
    """Invoices (amounts not yet solved) for one target, numbered after ``start``."""
    expander = _EXPANDERS.get(target.trap_type or "", _ordinary_invoices)
    return expander(target, start, ctx)


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


def _price_invoice(invoice: Invoice, ctx: GenerationContext) -> Invoice:
    if invoice.is_estimate_only:
        return replace(invoice, line_items=(), subtotal=invoice.amount, tax_rate=0, shipping=0)

    result = build_line_items(ctx.vendors.line_items(invoice.vendor), invoice.amount, ctx.rng)
    if not result.exact:
        log.warning(
            "Invoice %s: line items approximate %d cents with %d",
            invoice.invoice_number,
            invoice.amount,
            result.total,
        )
    subtotal = subtotal_of(result.items)
    tax_rate = ctx.vendors.tax_rate(invoice.vendor)
    shipping = shipping_for_subtotal(subtotal, ctx.rng)
    return replace(
        invoice,
        line_items=result.items,
        subtotal=subtotal,
        tax_rate=tax_rate,
        shipping=shipping,
        amount=invoice_total(subtotal, tax_rate, shipping),
    )


def synthesize(
    targets: list[DisbursementTarget], ctx: GenerationContext
) -> tuple[list[DisbursementTarget], list[Invoice]]:
    """Expand, price and reconcile invoices for every target.

    Returns new targets whose amounts equal their settlement-invoice sums,
    together with the priced invoice catalog.
    """
    next_number = FIRST_INVOICE_NUMBER + ctx.rng.randint(0, 99)
    drafts: list[Invoice] = []
    for target in targets:
        expanded = expand_target(target, next_number, ctx)
        next_number += len(expanded)
        drafts.extend(expanded)

    invoices = [_price_invoice(inv, ctx) for inv in drafts]

    totals: dict[str, int] = {}
    for inv in invoices:
        if not inv.is_estimate_only:
            totals[inv.payment_id] = totals.get(inv.payment_id, 0) + inv.amount
    reconciled = [
        replace(t, amount=totals[t.payment_id]) if t.payment_id in totals else t
        for t in targets
    ]
    return reconciled, invoices
