"""Disbursement target planning, trap injection and structural repairs.

A *target* is the plan for one January disbursement: who is paid, when, how
much, and which trap (if any) it carries.  Targets are frozen records;
:func:`normalize_targets` returns a repaired copy of the list instead of
editing it.

Traps:
  bundle:  a large payment covering many invoices, one of them never
            recorded in AP (serviced before year end).
  accrual: a payment settling several unrecorded invoices that were covered
            by a year-end accrual estimate.
  timing:  a payment for services starting after year end whose invoice was
            nonetheless recorded in AP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from .context import GenerationContext
from .dates import add_days
from .errors import ValidationIssue
from .money import dollars, round_to
from .profiles import RecipeProfile
from .vendors import VENDOR_POOL

log = logging.getLogger(__name__)

TRAP_TYPES = ("bundle", "timing", "accrual")
PRE_SERVICE_PROBABILITY = 0.45
TWO_INVOICE_PROBABILITY = 0.25
BUNDLE_INVOICE_COUNT = 10
ACCRUAL_INVOICE_COUNT = 3

AMOUNT_QUANTUM = dollars(25)
TRAP_BUMP_START = dollars(12_000)
TRAP_BUMP_STEP = dollars(5_000)
PAD_AMOUNT_STEP = dollars(75)
PAD_ID_START = 120
FIRST_PAYMENT_ID = 101


@dataclass(frozen=True)
class DisbursementTarget:
    payment_id: str
    payee: str
    payment_date: str
    amount: int  # cents
    invoice_count: int
    service_timing: str  # "pre" | "post"
    trap_type: str | None = None


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _payment_offsets(ctx: GenerationContext, count: int) -> list[int]:
    """Days after year end for each payment, ascending."""
    p = ctx.profile
    rng = ctx.rng
    days = list(range(p.window_min_days, p.window_max_days + 1))

    if not p.shared_payment_dates:
        picked = rng.shuffle(days)[:count]
        while len(picked) < count:
            picked.append(rng.choice(days))
        return sorted(picked)

    if count <= 1:
        return [rng.randint(p.window_min_days, p.window_max_days)]
    all_days = rng.shuffle(days)
    max_dupes = min(3, count - 1)
    dupes = rng.randint(1, max_dupes) if max_dupes > 0 else 0
    unique = sorted(all_days[: max(1, count - dupes)])
    offsets = unique + rng.shuffle(unique)[: min(dupes, len(unique))]
    while len(offsets) < count:
        offsets.append(unique[rng.randint(0, len(unique) - 1)])
    return sorted(offsets)


def _service_timing(ctx: GenerationContext, count: int) -> list[str]:
    """Pre/post year-end service per target, with room for all three traps."""
    timing = ["pre" if ctx.rng.random() < PRE_SERVICE_PROBABILITY else "post" for _ in range(count)]
    if "pre" not in timing:
        timing[0] = "pre"
    if "post" not in timing:
        timing[-1] = "post"

    pre = [i for i, t in enumerate(timing) if t == "pre"]
    post = [i for i, t in enumerate(timing) if t == "post"]
    if len(pre) < 2 and post:
        timing[post[0]] = "pre"
    pre = [i for i, t in enumerate(timing) if t == "pre"]
    post = [i for i, t in enumerate(timing) if t == "post"]
    if not post and len(pre) > 1:
        timing[pre[-1]] = "post"
    return timing


def _assign_traps(ctx: GenerationContext, timing: list[str]) -> dict[int, str]:
    rng = ctx.rng
    pre = [i for i, t in enumerate(timing) if t == "pre"]
    post = [i for i, t in enumerate(timing) if t == "post"]

    bundle = pre[rng.randint(0, len(pre) - 1)] if pre else 0
    remaining = [i for i in pre if i != bundle]
    accrual = remaining[rng.randint(0, len(remaining) - 1)] if remaining else bundle
    if post:
        timing_idx = post[rng.randint(0, len(post) - 1)]
    else:
        timing_idx = next((i for i in pre if i not in (bundle, accrual)), bundle)

    traps: dict[int, str] = {}
    # Precedence when indices collide (tiny populations): bundle, timing, accrual.
    for idx, kind in ((accrual, "accrual"), (timing_idx, "timing"), (bundle, "bundle")):
        traps[idx] = kind
    return traps


def _draw_amount(ctx: GenerationContext, lo: int, hi: int) -> int:
    whole = ctx.rng.randint(lo // 100, hi // 100)
    return round_to(dollars(whole), AMOUNT_QUANTUM)


def plan_targets(ctx: GenerationContext) -> list[DisbursementTarget]:
    """Draw the initial disbursement population for one case."""
    rng = ctx.rng
    p = ctx.profile
    ov = ctx.overrides

    if ov.disbursement_count is not None:
        count = ov.disbursement_count
    else:
        count = rng.randint(p.min_disbursements, p.max_disbursements)
    if ov.vendor_count and ov.vendor_count > count:
        count = ov.vendor_count

    vendors = rng.shuffle(VENDOR_POOL)[: min(len(VENDOR_POOL), ov.vendor_count or count)]
    payees = rng.shuffle([vendors[i % len(vendors)] for i in range(count)])
    offsets = _payment_offsets(ctx, count)
    timing = _service_timing(ctx, count)
    traps = _assign_traps(ctx, timing)

    used: set[int] = set()
    targets: list[DisbursementTarget] = []
    for index, offset in enumerate(offsets):
        trap = traps.get(index)
        if trap:
            amount = _draw_amount(ctx, p.trap_amount_min, p.trap_amount_max)
        else:
            amount = _draw_amount(ctx, p.normal_amount_min, p.normal_amount_max)
        while amount in used:
            amount += AMOUNT_QUANTUM
        used.add(amount)

        if ov.invoices_per_vendor is not None:
            invoice_count = ov.invoices_per_vendor
        else:
            invoice_count = 2 if rng.random() < TWO_INVOICE_PROBABILITY else 1
        if trap == "bundle":
            invoice_count = BUNDLE_INVOICE_COUNT
        elif trap == "accrual":
            invoice_count = ACCRUAL_INVOICE_COUNT

        targets.append(
            DisbursementTarget(
                payment_id=f"P-{FIRST_PAYMENT_ID + index}",
                payee=payees[index],
                payment_date=add_days(ctx.year_end, offset),
                amount=amount,
                invoice_count=invoice_count,
                service_timing=timing[index],
                trap_type=trap,
            )
        )

    # Trap payments sit above every ordinary payment.
    if traps:
        bumped = round_to(max(t.amount for t in targets) + TRAP_BUMP_START, AMOUNT_QUANTUM)
        for index, target in enumerate(targets):
            if not target.trap_type:
                continue
            used.discard(target.amount)
            while bumped in used:
                bumped += AMOUNT_QUANTUM
            used.add(bumped)
            targets[index] = replace(target, amount=bumped)
            bumped += TRAP_BUMP_STEP

    trap_ids = {t.trap_type: t.payment_id for t in targets if t.trap_type}
    log.debug("Planned %d targets, traps %s", len(targets), trap_ids)
    return targets


# ---------------------------------------------------------------------------
# Repairs
# ---------------------------------------------------------------------------


def normalize_targets(
    targets: list[DisbursementTarget],
    issues: Iterable[ValidationIssue],
    profile: RecipeProfile,
    year_end: str,
) -> list[DisbursementTarget]:
    """Apply one structural repair per reported issue code.

    Pure: returns a new list and leaves ``targets`` untouched.  Codes with
    no structural repair (e.g. ``invoice-total-mismatch``) are fixed simply
    by rebuilding from the same targets.
    """
    codes = {i.code for i in issues}
    out = list(targets)

    if "disbursement-count-low" in codes and out:
        base = out[-1]
        for i in range(profile.min_disbursements - len(out)):
            out.append(
                replace(
                    base,
                    payment_id=f"P-{PAD_ID_START + i}",
                    payee=f"{base.payee} Co. {i + 1}",
                    payment_date=add_days(base.payment_date, 2 + i),
                    amount=base.amount + PAD_AMOUNT_STEP * (i + 1),
                    trap_type=None,
                )
            )

    if "disbursement-count-high" in codes:
        out = out[: profile.max_disbursements]

    if "payment-date-window" in codes:
        out = [
            replace(t, payment_date=add_days(year_end, profile.window_repair_offset + i))
            for i, t in enumerate(out)
        ]

    if "payment-date-variation" in codes:
        if profile.shared_payment_dates:
            every = max(3, len(out) // 3)
            repaired = list(out)
            for i in range(1, len(out)):
                if i % every == 0:
                    repaired[i] = replace(out[i], payment_date=out[i - 1].payment_date)
            out = repaired
        else:
            out = [replace(t, payment_date=add_days(t.payment_date, i)) for i, t in enumerate(out)]

    if "payee-variation" in codes:
        seen: dict[str, int] = {}
        repaired = []
        for t in out:
            key = t.payee.lower()
            seen[key] = seen.get(key, 0) + 1
            n = seen[key]
            repaired.append(t if n == 1 else replace(t, payee=f"{t.payee} {n}"))
        out = repaired

    if "amount-variation" in codes:
        out = [replace(t, amount=t.amount + i * AMOUNT_QUANTUM) for i, t in enumerate(out)]

    installs = (
        ("bundle-trap-missing", 0, dict(service_timing="pre", trap_type="bundle", invoice_count=BUNDLE_INVOICE_COUNT)),
        ("timing-trap-missing", 1, dict(service_timing="post", trap_type="timing")),
        ("accrual-trap-missing", 2, dict(service_timing="pre", trap_type="accrual", invoice_count=ACCRUAL_INVOICE_COUNT)),
    )
    for code, index, changes in installs:
        if code in codes and index < len(out):
            kind = changes["trap_type"]
            out = [
                replace(t, trap_type=None) if t.trap_type == kind and i != index else t
                for i, t in enumerate(out)
            ]
            out[index] = replace(out[index], **changes)

    return out
