"""AP population derived from a priced invoice catalog.

Everything here is computed from targets and invoices: the corrected AP
aging (recorded invoices), the initial aging the client first hands over
(one row understated so it fails to tie), the GL lead schedule line, and
the disbursement answer keys.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from .context import GenerationContext
from .invoices import Invoice, should_be_in_aging
from .money import dollars, format_money, scale, to_dollars
from .planner import DisbursementTarget
from .rng import SeededRandom

log = logging.getLogger(__name__)

CLASSIFICATIONS = ("properlyIncluded", "properlyExcluded", "improperlyIncluded", "improperlyExcluded")
FLAGGED_CLASSIFICATIONS = ("improperlyExcluded", "improperlyIncluded")
LEAD_SCHEDULE_VENDOR = "Accounts Payable - Trade"
LEAD_SCHEDULE_REF = "GL-AP"

MISMATCH_FLOOR = dollars(5_000)
_MONEY_META_KEYS = ("accrualEstimate", "settlementTotal")


@dataclass(frozen=True)
class AgingRow:
    vendor: str
    invoice_number: str
    invoice_date: str
    due_date: str
    amount: int  # cents

    def to_dict(self) -> dict[str, Any]:
        amount = to_dollars(self.amount)
        return {
            "vendor": self.vendor,
            "invoiceNumber": self.invoice_number,
            "invoiceDate": self.invoice_date,
            "dueDate": self.due_date,
            "amount": amount,
            "buckets": {"current": amount, "days30": 0, "days60": 0, "days90": 0, "days90Plus": 0},
        }


@dataclass(frozen=True)
class AnswerKey:
    properly_included: int = 0
    properly_excluded: int = 0
    improperly_included: int = 0
    improperly_excluded: int = 0
    explanation: str = ""

    @classmethod
    def single(cls, classification: str, amount: int, explanation: str) -> "AnswerKey":
        if classification not in CLASSIFICATIONS:
            raise ValueError(f"Unknown classification {classification!r}")
        attr = {
            "properlyIncluded": "properly_included",
            "properlyExcluded": "properly_excluded",
            "improperlyIncluded": "improperly_included",
            "improperlyExcluded": "improperly_excluded",
        }[classification]
        return cls(explanation=explanation, **{attr: amount})

    @property
    def total(self) -> int:
        return (
            self.properly_included
            + self.properly_excluded
            + self.improperly_included
            + self.improperly_excluded
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "properlyIncluded": to_dollars(self.properly_included),
            "properlyExcluded": to_dollars(self.properly_excluded),
            "improperlyIncluded": to_dollars(self.improperly_included),
            "improperlyExcluded": to_dollars(self.improperly_excluded),
            "explanation": self.explanation,
            "assertion": "",
            "reason": "",
        }


@dataclass(frozen=True)
class Disbursement:
    payment_id: str
    payee: str
    amount: int  # cents
    payment_date: str
    classification: str
    answer_key: AnswerKey
    should_flag: bool
    mode: str = "single"  # "single" | "split"
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        meta = {
            k: to_dollars(v) if k in _MONEY_META_KEYS else v for k, v in self.meta.items()
        }
        return {
            "paymentId": self.payment_id,
            "payee": self.payee,
            "amount": f"{to_dollars(self.amount):.2f}",
            "paymentDate": self.payment_date,
            "answerKeyMode": self.mode,
            "answerKeySingleClassification": self.classification,
            "answerKey": self.answer_key.to_dict(),
            "shouldFlag": self.should_flag,
            "meta": meta,
        }


@dataclass(frozen=True)
class Population:
    targets: tuple[DisbursementTarget, ...]
    invoices: tuple[Invoice, ...]
    aging_corrected: tuple[AgingRow, ...]
    aging_initial: tuple[AgingRow, ...]
    lead_schedule: tuple[AgingRow, ...]
    disbursements: tuple[Disbursement, ...]

    def invoices_for(self, payment_id: str) -> list[Invoice]:
        return [i for i in self.invoices if i.payment_id == payment_id]

    @property
    def aging_total(self) -> int:
        return sum(r.amount for r in self.aging_corrected)

    @property
    def initial_aging_total(self) -> int:
        return sum(r.amount for r in self.aging_initial)


# ---------------------------------------------------------------------------
# AP aging and lead schedule
# ---------------------------------------------------------------------------


def aging_rows(invoices: list[Invoice]) -> list[AgingRow]:
    """Corrected aging: every recorded invoice, all in the current bucket."""
    return [
        AgingRow(i.vendor, i.invoice_number, i.invoice_date, i.due_date, i.amount)
        for i in invoices
        if i.is_recorded
    ]


def mismatch_aging(rows: list[AgingRow], rng: SeededRandom) -> list[AgingRow]:
    """Understate the largest row so the aging no longer ties to the GL.

    The delta is 2-8% of the aging total, clamped to
    ``[min($5,000, 5%), max(that, 15%)]`` of the total.
    """
    if not rows:
        return []
    total = sum(r.amount for r in rows)
    largest = max(range(len(rows)), key=lambda i: (rows[i].amount, -i))
    raw = scale(total, 0.02 + rng.random() * 0.06)
    lo = min(MISMATCH_FLOOR, scale(total, 0.05))
    hi = max(lo, scale(total, 0.15))
    delta = min(hi, max(lo, raw))
    return [
        replace(row, amount=max(0, row.amount - delta)) if i == largest else row
        for i, row in enumerate(rows)
    ]


def lead_schedule(rows: list[AgingRow], year_end: str) -> list[AgingRow]:
    total = sum(r.amount for r in rows)
    return [AgingRow(LEAD_SCHEDULE_VENDOR, LEAD_SCHEDULE_REF, year_end, year_end, total)]


# ---------------------------------------------------------------------------
# Answer keys
# ---------------------------------------------------------------------------


def classify(invoices: list[Invoice], year_end: str) -> str:
    """Answer-key classification of an ordinary (non-trap) disbursement."""
    prior = [i for i in invoices if should_be_in_aging(i.service_date, i.shipping_date, year_end)]
    if any(not i.is_recorded for i in prior):
        return "improperlyExcluded"
    if any(
        i.is_recorded and not should_be_in_aging(i.service_date, i.shipping_date, year_end)
        for i in invoices
    ):
        return "improperlyIncluded"
    if prior:
        return "properlyIncluded"
    return "properlyExcluded"


def _activity_date(invoice: Invoice | None) -> tuple[str, str]:
    if invoice is None:
        return "Activity date", ""
    if invoice.service_date:
        return "Service date", invoice.service_date
    if invoice.shipping_date:
        return "Shipping date", invoice.shipping_date
    return "Activity date", ""


def accrual_explanation(estimate: int, settlement_total: int) -> str:
    return (
        f"Year-end accrual of {format_money(estimate)} was recorded for this obligation. "
        f"The later invoices total {format_money(settlement_total)}, which is within a "
        "reasonable estimate range, so no adjustment is needed."
    )


def explain(
    classification: str,
    invoices: list[Invoice],
    year_end: str,
    trap_type: str | None = None,
    meta: dict[str, Any] | None = None,
) -> str:
    """Narrative explanation shown with the answer key."""
    meta = meta or {}

    def in_aging(inv: Invoice) -> bool:
        return should_be_in_aging(inv.service_date, inv.shipping_date, year_end)

    if trap_type == "bundle":
        missing = next((i for i in invoices if in_aging(i) and not i.is_recorded), None)
        label, value = _activity_date(missing)
        number = missing.invoice_number if missing else ""
        amount = missing.amount if missing else 0
        return (
            f"Bundled payment includes {len(invoices)} invoices. {label} "
            f"{value or 'before year-end'} was before {year_end}, but invoice {number} "
            f"was missing from AP aging. Accrue {format_money(amount)}."
        )
    if trap_type == "timing":
        invoice = invoices[0] if invoices else None
        if invoice and invoice.service_period_start and invoice.service_period_end:
            period = f"{invoice.service_period_start} - {invoice.service_period_end}"
        else:
            period = invoice.service_date if invoice and invoice.service_date else ""
        invoice_date = invoice.invoice_date if invoice else "before year-end"
        return (
            f"Invoice dated {invoice_date} covers {period or 'a future period'} after "
            f"{year_end}, but it was accrued. This should be excluded from year-end liabilities."
        )
    if trap_type == "accrual":
        return accrual_explanation(meta.get("accrualEstimate", 0), meta.get("settlementTotal", 0))

    predicates = {
        "improperlyExcluded": lambda i: in_aging(i) and not i.is_recorded,
        "improperlyIncluded": lambda i: not in_aging(i) and i.is_recorded,
        "properlyIncluded": lambda i: in_aging(i) and i.is_recorded,
        "properlyExcluded": lambda i: not in_aging(i) and not i.is_recorded,
    }
    picked = next(filter(predicates[classification], invoices), invoices[0] if invoices else None)
    label, value = _activity_date(picked)
    if classification == "improperlyExcluded":
        return f"{label} {value or 'before year-end'} was before {year_end}, but the invoice was missing from AP aging."
    if classification == "improperlyIncluded":
        return f"{label} {value or 'after year-end'} was after {year_end}, but the invoice was included in AP aging."
    if classification == "properlyIncluded":
        return f"{label} {value or 'before year-end'} was before {year_end}, and the invoice appears in AP aging."
    return f"{label} {value or 'after year-end'} was after {year_end}, so it was correctly excluded from AP aging."


def _bundle_disbursement(target: DisbursementTarget, invoices: list[Invoice], total: int, year_end: str) -> Disbursement:
    prior = [i for i in invoices if should_be_in_aging(i.service_date, i.shipping_date, year_end)]
    recorded = sum(i.amount for i in prior if i.is_recorded)
    missing = sum(i.amount for i in prior if not i.is_recorded)
    return Disbursement(
        payment_id=target.payment_id,
        payee=target.payee,
        amount=total,
        payment_date=target.payment_date,
        classification="improperlyExcluded",
        answer_key=AnswerKey(
            properly_included=recorded,
            improperly_excluded=missing,
            explanation=explain("improperlyExcluded", invoices, year_end, trap_type="bundle"),
        ),
        should_flag=True,
        mode="split",
        meta={"trapType": "bundle", "bundleInvoiceCount": len(invoices)},
    )


def build_disbursement(target: DisbursementTarget, invoices: list[Invoice], year_end: str) -> Disbursement:
    total = sum(i.amount for i in invoices if not i.is_estimate_only)
    if target.trap_type == "bundle":
        return _bundle_disbursement(target, invoices, total, year_end)

    meta: dict[str, Any] = {}
    if target.trap_type == "timing":
        classification = "improperlyIncluded"
        meta = {"trapType": "timing"}
    elif target.trap_type == "accrual":
        classification = "properlyIncluded"
        estimate = next((i.amount for i in invoices if i.is_estimate_only), 0)
        meta = {"trapType": "accrual", "accrualEstimate": estimate, "settlementTotal": total}
    else:
        classification = classify(invoices, year_end)

    explanation = explain(classification, invoices, year_end, target.trap_type, meta)
    return Disbursement(
        payment_id=target.payment_id,
        payee=target.payee,
        amount=total,
        payment_date=target.payment_date,
        classification=classification,
        answer_key=AnswerKey.single(classification, total, explanation),
        should_flag=classification in FLAGGED_CLASSIFICATIONS,
        meta=meta,
    )


# ---------------------------------------------------------------------------
# Population
# ---------------------------------------------------------------------------


def derive_population(
    targets: list[DisbursementTarget], invoices: list[Invoice], ctx: GenerationContext
) -> Population:
    corrected = aging_rows(invoices)
    by_payment: dict[str, list[Invoice]] = {}
    for inv in invoices:
        by_payment.setdefault(inv.payment_id, []).append(inv)
    disbursements = [
        build_disbursement(t, by_payment.get(t.payment_id, []), ctx.year_end) for t in targets
    ]
    return Population(
        targets=tuple(targets),
        invoices=tuple(invoices),
        aging_corrected=tuple(corrected),
        aging_initial=tuple(mismatch_aging(corrected, ctx.rng)),
        lead_schedule=tuple(lead_schedule(corrected, ctx.year_end)),
        disbursements=tuple(disbursements),
    )


def with_accrual_estimate(population: Population, estimate: int) -> Population:
    """Move the accrual estimate row to ``estimate`` cents.

    Both agings and the lead schedule shift by the same delta; the accrual
    disbursement's meta and explanation follow.  Returns ``population``
    unchanged when there is no estimate row or the amount already matches.
    """
    row = next((i for i in population.invoices if i.is_estimate_only), None)
    if row is None or row.amount == estimate:
        return population
    delta = estimate - row.amount
    settlement_total = sum(
        i.amount for i in population.invoices_for(row.payment_id) if not i.is_estimate_only
    )

    invoices = tuple(
        replace(i, amount=estimate, subtotal=estimate) if i is row else i
        for i in population.invoices
    )

    def shift(rows: tuple[AgingRow, ...], ref: str) -> tuple[AgingRow, ...]:
        return tuple(replace(r, amount=r.amount + delta) if r.invoice_number == ref else r for r in rows)

    disbursements = []
    for d in population.disbursements:
        if d.payment_id == row.payment_id:
            meta = {**d.meta, "trapType": "accrual", "accrualEstimate": estimate, "settlementTotal": settlement_total}
            key = replace(d.answer_key, explanation=accrual_explanation(estimate, settlement_total))
            d = replace(d, meta=meta, answer_key=key)
        disbursements.append(d)

    log.debug("Accrual estimate %s moved by %d cents", row.invoice_number, delta)
    return replace(
        population,
        invoices=invoices,
        aging_corrected=shift(population.aging_corrected, row.invoice_number),
        aging_initial=shift(population.aging_initial, row.invoice_number),
        lead_schedule=shift(population.lead_schedule, LEAD_SCHEDULE_REF),
        disbursements=tuple(disbursements),
    )
