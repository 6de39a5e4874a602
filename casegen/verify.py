"""Consistency checks over a finished case draft.

:func:`verify` works purely from the serialized draft (dollar amounts, as
written to JSON), so it can audit a draft loaded back from disk as well as
one fresh from :func:`casegen.build`.  It returns a list of error strings;
an empty list means the draft is internally consistent.
"""

from __future__ import annotations

from typing import Any

from .dates import days_between
from .invoices import should_be_in_aging
from .money import BASIS_POINTS, dollars
from .profiles import get_profile
from .solver import invoice_total

INVOICE_TEMPLATE_PREFIX = "invoice."
AGING_TEMPLATE = "refdoc.ap-aging.v1"
CORRECTED_AGING_NAME = "AP Aging Summary (Corrected).pdf"


def _cents(value: Any) -> int:
    return dollars(float(value or 0))


def invoice_documents(draft: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        doc["generationSpec"]
        for doc in draft.get("referenceDocuments", [])
        if str(doc.get("generationSpec", {}).get("templateId", "")).startswith(INVOICE_TEMPLATE_PREFIX)
    ]


def _corrected_aging_rows(draft: dict[str, Any]) -> list[dict[str, Any]] | None:
    for doc in draft.get("referenceDocuments", []):
        if doc.get("fileName") == CORRECTED_AGING_NAME:
            return doc["generationSpec"]["data"]["rows"]
    return None


def _check_reconciliation(draft: dict[str, Any], invoices: list[dict[str, Any]]) -> list[str]:
    errors = []
    totals: dict[str, int] = {}
    for inv in invoices:
        pid = inv.get("linkToPaymentId")
        totals[pid] = totals.get(pid, 0) + _cents(inv.get("invoiceTotal"))
    for d in draft.get("disbursements", []):
        pid = d["paymentId"]
        amount = _cents(d["amount"])
        if totals.get(pid, 0) != amount:
            errors.append(f"{pid}: invoices total {totals.get(pid, 0)} cents, payment is {amount}")
        key = d.get("answerKey", {})
        if d.get("answerKeyMode") == "split":
            allocated = _cents(key.get("properlyIncluded")) + _cents(key.get("improperlyExcluded"))
            if allocated != amount:
                errors.append(f"{pid}: split answer key allocates {allocated} cents of {amount}")
    return errors


def _check_arithmetic(invoices: list[dict[str, Any]]) -> list[str]:
    errors = []
    for inv in invoices:
        data = inv.get("data", {})
        number = data.get("invoiceNumber")
        rate_bp = round(float(data.get("taxRate") or 0) * BASIS_POINTS)
        shipping = _cents(data.get("shipping"))
        subtotal = sum(int(i["qty"]) * _cents(i["unitPrice"]) for i in data.get("items", []))
        if not data.get("items"):
            errors.append(f"Invoice {number}: no line items")
        if rate_bp <= 0:
            errors.append(f"Invoice {number}: tax rate must be positive")
        if shipping <= 0:
            errors.append(f"Invoice {number}: shipping must be positive")
        expected = invoice_total(subtotal, rate_bp, shipping)
        if expected != _cents(data.get("invoiceTotal")):
            errors.append(f"Invoice {number}: total {data.get('invoiceTotal')} != {expected / 100:.2f}")
    return errors


def _check_aging(draft: dict[str, Any], invoices: list[dict[str, Any]]) -> list[str]:
    rows = _corrected_aging_rows(draft)
    if rows is None:
        return ["Corrected AP aging document is missing"]
    year_end = draft["generationPlan"]["yearEnd"]
    timing_ids = {
        d["paymentId"] for d in draft.get("disbursements", []) if d.get("meta", {}).get("trapType") == "timing"
    }
    aging = {r["invoiceNumber"]: _cents(r["amount"]) for r in rows}
    errors = []
    seen = set()
    for inv in invoices:
        number = inv["data"]["invoiceNumber"]
        seen.add(number)
        belongs = should_be_in_aging(inv.get("serviceDate"), inv.get("shippingDate"), year_end)
        listed = number in aging
        if inv.get("linkToPaymentId") in timing_ids:
            continue
        expected = belongs and bool(inv.get("isRecorded"))
        if expected and not listed:
            errors.append(f"Invoice {number} is recorded but missing from AP aging")
        elif listed and not expected:
            errors.append(f"Invoice {number} should not appear in AP aging")
        elif listed and aging[number] != _cents(inv.get("invoiceTotal")):
            errors.append(f"Invoice {number}: aging amount differs from invoice")
    for number in aging:
        if number not in seen and not number.startswith("ACCR-"):
            errors.append(f"AP aging row {number} has no invoice")
    return errors


def _check_traps(draft: dict[str, Any]) -> list[str]:
    traps = [d.get("meta", {}).get("trapType") for d in draft.get("disbursements", [])]
    return [
        f"Expected exactly one {kind} trap, found {traps.count(kind)}"
        for kind in ("bundle", "timing", "accrual")
        if traps.count(kind) != 1
    ]


def _check_bounds(draft: dict[str, Any]) -> list[str]:
    profile = get_profile(draft["generationPlan"].get("caseLevel"))
    year_end = draft["generationPlan"]["yearEnd"]
    disbursements = draft.get("disbursements", [])
    count = len(disbursements)
    floor = min(count, profile.min_variation)
    errors = []
    if not profile.min_disbursements <= count <= profile.max_disbursements:
        errors.append(
            f"{count} disbursements outside [{profile.min_disbursements}, {profile.max_disbursements}]"
        )
    if len({d["payee"] for d in disbursements}) < floor:
        errors.append("Too few distinct payees")
    if len({_cents(d["amount"]) for d in disbursements}) < floor:
        errors.append("Too few distinct amounts")
    for d in disbursements:
        if not profile.in_window(days_between(year_end, d["paymentDate"])):
            errors.append(f"{d['paymentId']}: payment date {d['paymentDate']} outside window")
    return errors


def verify(draft: dict[str, Any]) -> list[str]:
    """Check reconciliation, invoice arithmetic, aging membership, traps and bounds."""
    invoices = invoice_documents(draft)
    return [
        *_check_reconciliation(draft, invoices),
        *_check_arithmetic(invoices),
        *_check_aging(draft, invoices),
        *_check_traps(draft),
        *_check_bounds(draft),
    ]
