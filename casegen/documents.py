"""Reference document assembly.

Turns an accepted population into the documents a trainee works from: the
initial and corrected AP agings, the AP lead schedule, the subsequent
disbursement listing (with a planted completeness problem), the bank
statement with canceled-check pages, check copies, and one rendered
invoice per settlement invoice.  Each document is emitted as a
``generationSpec`` (template id plus data payload) for the PDF renderer;
all money is converted to dollars here.

Statement-only details (outstanding and prior-period checks, clearing
delays, the voided check) draw from the separate ``"{seed}|statement"``
stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .context import GenerationContext
from .dates import MONTH_NAMES, add_days, long_date, parse_pseudo_date, sort_key, year_token
from .invoices import Invoice
from .money import amount_in_words, dollars, format_money_number, rate_from_bp, round_to, scale, to_dollars
from .population import AgingRow, Disbursement, Population
from .rng import SeededRandom, derive_rng, hash_seed
from .solver import invoice_total, subtotal_of
from .vendors import VENDOR_POOL

log = logging.getLogger(__name__)

COMPANY_NAME = "Team Up Promotional Products, LLC"
COMPANY_LINE1 = "123 Anywhere St."
COMPANY_LINE2 = "Fake City, WA 97650"
PAYER_ADDRESS = "2150 Riverfront Ave, Denver, CO 80202"
BANK_NAME = "Cascade National Bank"
BANK_SUBNAME = "Member FDIC"
STATEMENT_ACCOUNT = "*** 4812"
SIGNATURE_NAME = "K. Ramirez"
ROUTING_NUMBER = "102000021"
MICR_ACCOUNT = "0004812001"

AGING_TEMPLATE = "refdoc.ap-aging.v1"
LISTING_TEMPLATE = "refdoc.disbursement-listing.v1"
STATEMENT_TEMPLATE = "refdoc.bank-statement.v1"
LEAD_TEMPLATE = "refdoc.ap-leadsheet.v1"
CHECK_TEMPLATE = "refdoc.check-copy.v1"
BETA_INVOICE_TEMPLATE = "invoice.seed.beta.v1"

AGING_INITIAL_NAME = "AP Aging Summary (Initial).pdf"
AGING_CORRECTED_NAME = "AP Aging Summary (Corrected).pdf"
LEAD_NAME = "AP Lead Schedule (GL).pdf"

FIRST_CHECK_NUMBER = 10420
CHECKS_PER_PAGE = 6
LATEST_CLEARING_DAY = 28
STATEMENT_FLOOR = dollars(25_000)
STATEMENT_QUANTUM = dollars(25)
CREDIT_DESCRIPTIONS = (
    "ACH Credit - Customer Deposit",
    "Wire Received - Client Payment",
    "Remote Deposit - Checks",
    "ACH Credit - Merchant Settlement",
)

CHECK_GAP = "check-gap"
MISSING_ELECTRONIC = "missing-electronic"


@dataclass(frozen=True)
class DocumentNames:
    """File names that gates and phases refer to."""

    period_name: str

    @property
    def listing_initial(self) -> str:
        return f"{self.period_name} Disbursements Listing (Initial).pdf"

    @property
    def listing_corrected(self) -> str:
        return f"{self.period_name} Disbursements Listing (Corrected).pdf"

    @property
    def statement(self) -> str:
        return f"{self.period_name} Bank Statement.pdf"

    @property
    def step2(self) -> frozenset[str]:
        return frozenset({
            AGING_INITIAL_NAME,
            LEAD_NAME,
            AGING_CORRECTED_NAME,
            self.listing_initial,
            self.listing_corrected,
            self.statement,
        })


@dataclass
class ListingRow:
    payment_id: str
    payee: str
    payment_date: str
    amount: int
    payment_type: str  # "Check" | "ACH" | "Wire"
    check_number: str = ""

    @property
    def is_check(self) -> bool:
        return self.payment_type == "Check"

    def to_dict(self) -> dict[str, Any]:
        return {
            "payee": self.payee,
            "paymentDate": self.payment_date,
            "amount": to_dollars(self.amount),
            "paymentType": self.payment_type,
            "checkNumber": self.check_number,
        }


@dataclass(frozen=True)
class CheckCopy:
    check_number: str
    date: str
    payee: str
    amount: int
    memo: str = "A/P Disbursement"

    def to_data(self) -> dict[str, Any]:
        return {
            "payer": {"name": COMPANY_NAME, "addressLine": PAYER_ADDRESS},
            "checkNumber": self.check_number,
            "date": self.date,
            "payee": self.payee,
            "amountNumeric": format_money_number(self.amount),
            "amountWords": amount_in_words(self.amount),
            "bank": {"name": BANK_NAME, "subName": BANK_SUBNAME},
            "memo": self.memo,
            "signatureName": SIGNATURE_NAME,
            "micr": {
                "routingSymbol": "T",
                "routingNumber": ROUTING_NUMBER,
                "accountSymbol": "A",
                "accountNumber": MICR_ACCOUNT,
                "checkNumber": self.check_number,
            },
        }


@dataclass
class Listing:
    rows: list[ListingRow]
    gap_scenario: str
    first_check_number: int = FIRST_CHECK_NUMBER
    missing_check_number: str | None = None
    missing_index: int | None = None

    @property
    def initial_rows(self) -> list[ListingRow]:
        if self.missing_index is None:
            return self.rows
        return [r for i, r in enumerate(self.rows) if i != self.missing_index]

    @property
    def check_indices(self) -> list[int]:
        return [i for i, r in enumerate(self.rows) if r.is_check]


@dataclass
class Statement:
    rows: list[dict[str, Any]]
    opening_balance: int
    canceled_checks: list[CheckCopy]
    outstanding: set[int] = field(default_factory=set)

    @property
    def canceled_check_pages(self) -> list[dict[str, Any]]:
        pages = []
        for start in range(0, len(self.canceled_checks), CHECKS_PER_PAGE):
            chunk = self.canceled_checks[start : start + CHECKS_PER_PAGE]
            pages.append({"checks": [{**c.to_data(), "amount": to_dollars(c.amount)} for c in chunk]})
        return pages


@dataclass
class CaseDocuments:
    names: DocumentNames
    listing: Listing
    reference_documents: list[dict[str, Any]]
    check_copy_specs: list[dict[str, Any]]
    voided_check_name: str | None = None

    @property
    def gap_scenario(self) -> str:
        return self.listing.gap_scenario


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def document_id(seed: str, file_name: str) -> str:
    return f"doc-{hash_seed(f'{seed}|doc|{file_name}'):08x}"


def period_label(year_end: str, window_min_days: int, window_max_days: int) -> str:
    """``January 20X3``, or ``January - March 20X3`` for a multi-month window."""
    start = parse_pseudo_date(add_days(year_end, window_min_days))
    end = parse_pseudo_date(add_days(year_end, window_max_days))
    if start is None or end is None:
        return f"January {year_token(year_end, 1)}"
    token = year_token(add_days(year_end, window_min_days))
    if start.month == end.month:
        return f"{MONTH_NAMES[start.month - 1]} {token}"
    return f"{MONTH_NAMES[start.month - 1]} - {MONTH_NAMES[end.month - 1]} {token}"


def _statement_amount(rng: SeededRandom, lo: int, hi: int) -> int:
    return max(STATEMENT_QUANTUM, round_to(dollars(rng.randint(lo, hi)), STATEMENT_QUANTUM))


def _reference_document(seed: str, file_name: str, spec: dict[str, Any]) -> dict[str, Any]:
    doc_id = document_id(seed, file_name)
    return {
        "id": doc_id,
        "fileName": file_name,
        "storagePath": "",
        "downloadURL": "",
        "contentType": "",
        "generationSpecId": doc_id,
        "generationSpec": spec,
    }


# ---------------------------------------------------------------------------
# Disbursement listing
# ---------------------------------------------------------------------------


def payment_type(seed: str, payment_id: str) -> str:
    selector = hash_seed(f"{seed}|paymentType|{payment_id}") % 10
    if selector < 6:
        return "Check"
    if selector < 9:
        return "ACH"
    return "Wire"


def build_listing(disbursements: list[Disbursement], ctx: GenerationContext) -> Listing:
    """Payments by date, with check numbers and one planted completeness gap.

    ``check-gap`` skips a check number (explained later by a voided check);
    ``missing-electronic`` drops an ACH or wire payment from the initial
    listing only.
    """
    rng = ctx.rng
    ordered = sorted(disbursements, key=lambda d: sort_key(d.payment_date))
    first_check = FIRST_CHECK_NUMBER + rng.randint(8, 80)
    rows = [
        ListingRow(d.payment_id, d.payee, d.payment_date, d.amount, payment_type(ctx.seed, d.payment_id))
        for d in ordered
    ]
    if rows and all(r.is_check for r in rows):
        rows[-1].payment_type = "ACH"

    checks = [i for i, r in enumerate(rows) if r.is_check]
    electronic = [i for i, r in enumerate(rows) if not r.is_check]
    if len(checks) >= 2 and electronic:
        scenario = CHECK_GAP if rng.random() < 0.5 else MISSING_ELECTRONIC
    elif len(checks) >= 2:
        scenario = CHECK_GAP
    else:
        scenario = MISSING_ELECTRONIC

    gap_at = rng.randint(1, len(checks) - 1) if scenario == CHECK_GAP else None
    for counter, index in enumerate(checks):
        skip = 1 if gap_at is not None and counter >= gap_at else 0
        rows[index].check_number = str(first_check + counter + skip)

    missing_index = None
    if scenario == MISSING_ELECTRONIC and electronic:
        missing_index = electronic[rng.randint(0, len(electronic) - 1)]
    listing = Listing(
        rows=rows,
        gap_scenario=scenario,
        first_check_number=first_check,
        missing_check_number=str(first_check + gap_at) if gap_at is not None else None,
        missing_index=missing_index,
    )
    log.debug(
        "Listing: %d rows, %d checks, scenario %s", len(rows), len(checks), scenario
    )
    return listing


# ---------------------------------------------------------------------------
# Bank statement
# ---------------------------------------------------------------------------


def _cleared_date(payment_date: str, srng: SeededRandom) -> str:
    parsed = parse_pseudo_date(payment_date)
    if parsed is None:
        return payment_date
    delay = srng.randint(0, 6)
    if parsed.day + delay > LATEST_CLEARING_DAY:
        return payment_date
    return add_days(payment_date, delay)


def build_statement(listing: Listing, ctx: GenerationContext, srng: SeededRandom) -> Statement:
    rng = ctx.rng
    ye = ctx.year_end
    checks = listing.check_indices
    outstanding_count = 2 if len(checks) >= 4 else 1 if len(checks) >= 2 else 0
    outstanding = set(srng.shuffle(checks)[:outstanding_count])
    cleared = [r for i, r in enumerate(listing.rows) if not (r.is_check and i in outstanding)]

    # Prior-period checks clearing in the window.
    prior_count = 1 + srng.randint(0, 1)
    used = {int(r.check_number) for r in listing.rows if r.is_check and r.check_number}
    next_number = listing.first_check_number - srng.randint(25, 90)
    prior_payees = srng.shuffle(VENDOR_POOL)[:prior_count]
    prior: list[tuple[CheckCopy, str]] = []
    for idx in range(prior_count):
        while next_number in used or next_number <= 0:
            next_number -= 1
        cleared_on = add_days(ye, srng.randint(2, 27))
        written_on = add_days(ye, -srng.randint(5, 55))
        amount = _statement_amount(srng, 1_200, 45_000)
        payee = prior_payees[idx] if idx < len(prior_payees) else f"Vendor {idx + 1}"
        prior.append((CheckCopy(str(next_number), written_on, payee, amount, "Prior period check"), cleared_on))
        used.add(next_number)
        next_number -= srng.randint(1, 6)

    rows: list[dict[str, Any]] = []
    for r in cleared:
        if r.is_check:
            rows.append({
                "date": _cleared_date(r.payment_date, srng),
                "reference": r.payment_id,
                "amount": -r.amount,
                "payee": r.payee,
                "description": f"Check {r.check_number} {r.payee}",
                "checkNumber": r.check_number,
            })
        else:
            rows.append({
                "date": r.payment_date,
                "reference": r.payment_id,
                "amount": -r.amount,
                "payee": r.payee,
                "description": f"{'Wire' if r.payment_type == 'Wire' else 'ACH'} {r.payee}",
            })
    for check, cleared_on in prior:
        rows.append({
            "date": cleared_on,
            "reference": f"CHK-{check.check_number}",
            "amount": -check.amount,
            "payee": check.payee,
            "description": f"Check {check.check_number} {check.payee}",
            "checkNumber": check.check_number,
        })

    # Unrelated deposits so the statement carries credits.
    credit_count = 2 + rng.randint(0, 2)
    credit_start = rng.randint(2, 8)
    for idx in range(credit_count):
        rows.append({
            "date": add_days(ye, credit_start + idx * rng.randint(4, 9)),
            "description": CREDIT_DESCRIPTIONS[hash_seed(f"{ctx.seed}|credit|{idx}") % len(CREDIT_DESCRIPTIONS)],
            "reference": f"DEP-{rng.randint(4100, 9800)}",
            "amount": _statement_amount(rng, 18_000, 62_000),
        })
    rows.sort(key=lambda row: sort_key(row["date"]))

    debits = sum(-row["amount"] for row in rows if row["amount"] < 0)
    credits = sum(row["amount"] for row in rows if row["amount"] > 0)
    opening = max(STATEMENT_FLOOR, scale(debits - credits, 1.15 + rng.random() * 0.35))
    # Debits dated ahead of the deposits must not overdraw the account.
    running = lowest = 0
    for row in rows:
        running += row["amount"]
        lowest = min(lowest, running)
    opening = max(opening, -lowest)

    canceled = [CheckCopy(r.check_number, r.payment_date, r.payee, r.amount) for r in cleared if r.is_check]
    canceled.extend(check for check, _ in prior)
    return Statement(rows=rows, opening_balance=opening, canceled_checks=canceled, outstanding=outstanding)


def statement_data(statement: Statement, label: str) -> dict[str, Any]:
    return {
        "bankName": BANK_NAME,
        "accountName": COMPANY_NAME,
        "accountNumber": STATEMENT_ACCOUNT,
        "periodLabel": label,
        "openingBalance": to_dollars(statement.opening_balance),
        "rows": [{**row, "amount": to_dollars(row["amount"])} for row in statement.rows],
        "layout": {"txLayout": "stacked"},
        "canceledCheckPages": statement.canceled_check_pages,
    }


def voided_check(listing: Listing, ctx: GenerationContext, srng: SeededRandom) -> CheckCopy | None:
    """The canceled check that explains a check-number gap."""
    if not listing.missing_check_number:
        return None
    amount = _statement_amount(srng, 800, 24_000)
    date = add_days(ctx.year_end, srng.randint(3, 18))
    payee = srng.shuffle(VENDOR_POOL)[0]
    return CheckCopy(listing.missing_check_number, date, payee, amount, "VOID - Check canceled")


# ---------------------------------------------------------------------------
# AP reports
# ---------------------------------------------------------------------------


def aging_data(rows: Iterable[AgingRow], year_end: str) -> dict[str, Any]:
    return {
        "companyName": COMPANY_NAME,
        "asOfDate": long_date(year_end),
        "rows": [r.to_dict() for r in rows],
    }


def lead_schedule_data(population: Population, ctx: GenerationContext) -> dict[str, Any]:
    """AP lead schedule; the prior-year balance is 85-115% of the current one."""
    prior = max(0, scale(population.aging_total, 0.85 + ctx.rng.random() * 0.3))
    total = sum(r.amount for r in population.lead_schedule)
    as_of = long_date(ctx.year_end)
    prior_as_of = long_date(f"{year_token(ctx.year_end, -1)}{ctx.year_end[4:]}")
    return {
        "clientName": COMPANY_NAME,
        "workpaperTitle": "AP Lead Schedule (GL)",
        "periodEnding": as_of,
        "trialBalanceName": "Trial Balance",
        "currentDate": as_of,
        "priorDate": prior_as_of,
        "lines": [
            {
                "account": "2000",
                "description": row.vendor,
                "priorAmount": to_dollars(prior),
                "unadjAmount": to_dollars(row.amount),
                "finalAmount": to_dollars(row.amount),
            }
            for row in population.lead_schedule
        ],
        "total": {
            "prior_amount": to_dollars(prior),
            "unadj_amount": to_dollars(total),
            "final_amount": to_dollars(total),
        },
    }


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


def _service_date_value(start: str | None, ctx: GenerationContext) -> str:
    if not start:
        return ""
    if ctx.rng.random() < 0.55:
        return start
    return f"{start} - {add_days(start, ctx.rng.randint(1, 7))}"


def invoice_data(invoice: Invoice, template_id: str, ctx: GenerationContext) -> dict[str, Any]:
    """Render payload for one vendor invoice."""
    terms = "Shipping Point" if template_id == BETA_INVOICE_TEMPLATE else "FOB Shipping Point"
    if invoice.service_period_start and invoice.service_period_end:
        label = "Service Period"
        value = f"{invoice.service_period_start} - {invoice.service_period_end}"
    elif ctx.vendors.is_service_only(invoice.vendor):
        label = "Service Date"
        value = _service_date_value(
            invoice.service_date or invoice.shipping_date or invoice.invoice_date, ctx
        )
    else:
        label = ""
        value = invoice.shipping_date or ""
    total = invoice_total(subtotal_of(invoice.line_items), invoice.tax_rate, invoice.shipping)
    return {
        "brandName": invoice.vendor.upper(),
        "invoiceNumber": invoice.invoice_number,
        "invoiceDate": invoice.invoice_date,
        "dueDate": invoice.due_date or invoice.invoice_date,
        "issuedTo": {"name": COMPANY_NAME, "line1": COMPANY_LINE1, "line2": COMPANY_LINE2},
        "shippingInfo": {"dateShipped": value, "dateLabel": label, "dateValue": value, "terms": terms},
        "items": [
            {"description": i.description, "qty": i.qty, "unitPrice": to_dollars(i.unit_price)}
            for i in invoice.line_items
        ],
        "taxRate": rate_from_bp(invoice.tax_rate),
        "shipping": to_dollars(invoice.shipping),
        "showThankYou": True,
        "thankYouText": "THANK\nYOU",
        "invoiceTotal": to_dollars(total),
    }


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble_documents(population: Population, ctx: GenerationContext) -> CaseDocuments:
    seed = ctx.seed
    names = DocumentNames(ctx.profile.period_name)
    label = period_label(ctx.year_end, ctx.profile.window_min_days, ctx.profile.window_max_days)
    srng = derive_rng(seed, "statement")

    lead = lead_schedule_data(population, ctx)
    listing = build_listing(list(population.disbursements), ctx)
    statement = build_statement(listing, ctx, srng)
    voided = voided_check(listing, ctx, srng)

    docs: list[dict[str, Any]] = []
    for invoice in population.invoices:
        if invoice.is_estimate_only:
            continue
        template_id = ctx.vendors.template_id(invoice.vendor)
        data = invoice_data(invoice, template_id, ctx)
        docs.append(_reference_document(seed, f"{invoice.vendor} Invoice {invoice.invoice_number}.pdf", {
            "templateId": template_id,
            "data": data,
            "invoiceTotal": data["invoiceTotal"],
            "serviceDate": invoice.service_date,
            "shippingDate": invoice.shipping_date,
            "linkToPaymentId": invoice.payment_id,
            "isRecorded": invoice.is_recorded,
        }))

    listing_initial = {
        "companyName": COMPANY_NAME,
        "periodLabel": label,
        "rows": [r.to_dict() for r in listing.initial_rows],
    }
    docs.extend([
        _reference_document(seed, AGING_INITIAL_NAME, {
            "templateId": AGING_TEMPLATE,
            "data": aging_data(population.aging_initial, ctx.year_end),
        }),
        _reference_document(seed, names.listing_initial, {
            "templateId": LISTING_TEMPLATE,
            "data": listing_initial,
        }),
        _reference_document(seed, names.statement, {
            "templateId": STATEMENT_TEMPLATE,
            "data": statement_data(statement, label),
        }),
        _reference_document(seed, LEAD_NAME, {"templateId": LEAD_TEMPLATE, "data": lead}),
        _reference_document(seed, AGING_CORRECTED_NAME, {
            "templateId": AGING_TEMPLATE,
            "data": aging_data(population.aging_corrected, ctx.year_end),
        }),
    ])
    if listing.gap_scenario == MISSING_ELECTRONIC:
        docs.append(_reference_document(seed, names.listing_corrected, {
            "templateId": LISTING_TEMPLATE,
            "data": {**listing_initial, "rows": [r.to_dict() for r in listing.rows]},
        }))
    voided_name = None
    if voided is not None:
        voided_name = f"Voided Check {voided.check_number}.pdf"
        docs.append(_reference_document(seed, voided_name, {
            "templateId": CHECK_TEMPLATE,
            "data": voided.to_data(),
        }))

    check_specs = []
    for row in listing.rows:
        if not (row.is_check and row.check_number):
            continue
        file_name = f"Check Copy {row.check_number}.pdf"
        copy = CheckCopy(row.check_number, row.payment_date, row.payee, row.amount)
        check_specs.append({
            "id": document_id(seed, file_name),
            "fileName": file_name,
            "generationSpec": {
                "templateId": CHECK_TEMPLATE,
                "data": copy.to_data(),
                "linkToPaymentId": row.payment_id,
            },
            "linkToPaymentId": row.payment_id,
            "phaseId": "step2",
            "internalOnly": True,
        })

    log.debug("Assembled %d reference documents, %d check copies", len(docs), len(check_specs))
    return CaseDocuments(
        names=names,
        listing=listing,
        reference_documents=docs,
        check_copy_specs=check_specs,
        voided_check_name=voided_name,
    )


def reference_document_specs(documents: CaseDocuments) -> list[dict[str, Any]]:
    """Generation plan entries: every reference document plus the check copies."""
    specs = [
        {
            "id": doc["generationSpecId"],
            "fileName": doc["fileName"],
            "generationSpec": doc["generationSpec"],
            "linkToPaymentId": doc["generationSpec"].get("linkToPaymentId"),
            "phaseId": "step2" if doc["fileName"] in documents.names.step2 else "step3",
        }
        for doc in documents.reference_documents
    ]
    return [*specs, *documents.check_copy_specs]
