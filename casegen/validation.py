"""Population validation.

:func:`validate_population` checks one built attempt and returns the issues
that :func:`casegen.planner.normalize_targets` knows how to repair.  An
empty list means the attempt is accepted.
"""

from __future__ import annotations

from .dates import days_between
from .errors import ValidationIssue
from .invoices import should_be_in_aging
from .planner import DisbursementTarget
from .population import Population
from .profiles import RecipeProfile
from .solver import invoice_total, subtotal_of


def _issue(code: str, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, message=message)


def _check_population_shape(
    targets: list[DisbursementTarget], population: Population, profile: RecipeProfile, year_end: str
) -> list[ValidationIssue]:
    issues = []
    count = len(population.disbursements)
    if count < profile.min_disbursements:
        issues.append(_issue(
            "disbursement-count-low",
            f"Fewer than {profile.min_disbursements} disbursements generated.",
        ))
    if count > profile.max_disbursements:
        issues.append(_issue(
            "disbursement-count-high",
            f"More than {profile.max_disbursements} disbursements generated.",
        ))

    floor = min(len(targets), profile.min_variation)
    if len({t.payee for t in targets}) < floor:
        issues.append(_issue("payee-variation", "Insufficient payee variation."))
    if len({t.amount for t in targets}) < floor:
        issues.append(_issue("amount-variation", "Insufficient amount variation."))

    if any(not profile.in_window(days_between(year_end, t.payment_date)) for t in targets):
        issues.append(_issue("payment-date-window", profile.window_message))
    return issues


def _check_invoices(population: Population) -> list[ValidationIssue]:
    issues = []
    for d in population.disbursements:
        invoices = population.invoices_for(d.payment_id)
        if not invoices:
            issues.append(_issue("missing-invoices", f"No invoices mapped to {d.payment_id}."))
            continue
        total = sum(i.amount for i in invoices if not i.is_estimate_only)
        if total != d.amount:
            issues.append(_issue(
                "invoice-total-mismatch",
                f"Invoice totals do not match disbursement {d.payment_id}.",
            ))

    for inv in population.invoices:
        if inv.is_estimate_only:
            continue
        if not inv.line_items:
            issues.append(_issue("invoice-items-missing", f"Invoice {inv.invoice_number} has no line items."))
            continue
        if inv.tax_rate <= 0:
            issues.append(_issue("invoice-tax-missing", f"Invoice {inv.invoice_number} missing tax rate."))
        if inv.shipping <= 0:
            issues.append(_issue("invoice-shipping-missing", f"Invoice {inv.invoice_number} missing shipping amount."))
        if invoice_total(subtotal_of(inv.line_items), inv.tax_rate, inv.shipping) != inv.amount:
            issues.append(_issue(
                "invoice-charge-mismatch",
                f"Invoice totals do not match subtotal, tax, and shipping for {inv.invoice_number}.",
            ))
    return issues


def _check_aging(population: Population, year_end: str) -> list[ValidationIssue]:
    issues = []
    aging = {r.invoice_number: r for r in population.aging_corrected}
    unrecorded_prior = 0
    for inv in population.invoices:
        belongs = should_be_in_aging(inv.service_date, inv.shipping_date, year_end)
        row = aging.get(inv.invoice_number)
        if belongs and inv.is_recorded:
            if row is None:
                issues.append(_issue("aging-missing", f"Invoice {inv.invoice_number} should appear in AP aging."))
            elif row.amount != inv.amount:
                issues.append(_issue("aging-amount-mismatch", f"AP aging amount mismatch for {inv.invoice_number}."))
        elif belongs and not inv.is_recorded and row is None:
            unrecorded_prior += 1
        elif not belongs and row is not None and inv.trap_type != "timing":
            issues.append(_issue("aging-should-not-appear", f"Invoice {inv.invoice_number} should not appear in AP aging."))
    if unrecorded_prior == 0:
        issues.append(_issue("bundle-trap-missing", "No bundled unrecorded invoice found."))
    return issues


def _check_traps(targets: list[DisbursementTarget], population: Population) -> list[ValidationIssue]:
    issues = []
    traps = [t.trap_type for t in targets]
    if traps.count("bundle") != 1:
        issues.append(_issue("bundle-trap-missing", "Bundle trap is missing."))
    if traps.count("timing") != 1:
        issues.append(_issue("timing-trap-missing", "Timing misconception trap is missing."))
    if traps.count("accrual") != 1:
        issues.append(_issue("accrual-trap-missing", "Accrual settlement trap is missing."))
    if not any(d.mode == "split" and d.meta.get("trapType") == "bundle" for d in population.disbursements):
        issues.append(_issue("bundle-split-missing", "Bundled payment split was not generated."))
    if not all(i.invoice_number and i.vendor for i in population.invoices):
        issues.append(_issue("invoice-data", "Invoice data missing identifiers."))
    return issues


def _check_date_variation(targets: list[DisbursementTarget], profile: RecipeProfile) -> list[ValidationIssue]:
    dates = [t.payment_date for t in targets]
    distinct = len(set(dates)) == len(dates)
    if profile.shared_payment_dates and distinct:
        return [_issue(
            "payment-date-variation",
            "Payment dates should include multiple disbursements on the same day.",
        )]
    if not profile.shared_payment_dates and not distinct:
        return [_issue("payment-date-variation", "Payment dates are not varied.")]
    return []


def validate_population(
    targets: list[DisbursementTarget],
    population: Population,
    profile: RecipeProfile,
    year_end: str,
) -> list[ValidationIssue]:
    """All structural and arithmetic issues in one built attempt."""
    return [
        *_check_population_shape(targets, population, profile, year_end),
        *_check_invoices(population),
        *_check_aging(population, year_end),
        *_check_traps(targets, population),
        *_check_date_variation(targets, profile),
    ]
