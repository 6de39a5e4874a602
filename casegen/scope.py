"""Selection scope and accrual-estimate calibration.

The scope threshold decides which disbursements the trainee must select:
every payment at or above it.  It is placed so that 3-7 payments qualify
and never coincides with an actual payment amount, which keeps "at or
above" unambiguous.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .money import dollars, floor_to, scale
from .population import Population, with_accrual_estimate
from .rng import SeededRandom, derive_rng

log = logging.getLogger(__name__)

MIN_SCOPE_PERCENT = 0.10
MAX_SCOPE_PERCENT = 0.15
MIN_SELECTED = 3
MAX_SELECTED = 7
THRESHOLD_STEP = dollars(1_000)
FALLBACK_MATERIALITY = 0.25
ACCRUAL_TOLERANCE_RATE = 0.05
TOLERABLE_MISSTATEMENT_RATIO = 0.75


@dataclass(frozen=True)
class Scope:
    scope_percent: float
    threshold: int  # cents
    performance_materiality: int  # cents

    @property
    def accrual_tolerance(self) -> int:
        """Reasonable estimate range for the accrual trap, in cents."""
        return scale(self.performance_materiality, ACCRUAL_TOLERANCE_RATE / TOLERABLE_MISSTATEMENT_RATIO)


def compute_scope(amounts: Iterable[int], rng: SeededRandom) -> Scope:
    """Draw a scope percent and place a threshold selecting 3-7 payments."""
    amounts = list(amounts)
    scope_percent = MIN_SCOPE_PERCENT + rng.random() * (MAX_SCOPE_PERCENT - MIN_SCOPE_PERCENT)
    ranked = sorted((a for a in amounts if a > 0), reverse=True)
    wanted = min(len(ranked), max(MIN_SELECTED, rng.randint(MIN_SELECTED, MAX_SELECTED)))
    taken = set(ranked)

    def normalize(value: int) -> int:
        value = floor_to(value, THRESHOLD_STEP)
        if value <= 0:
            return 0
        while value > 0 and value in taken:
            value = floor_to(value - THRESHOLD_STEP, THRESHOLD_STEP)
        return value

    def selected(threshold: int) -> int:
        return sum(1 for a in amounts if a >= threshold)

    threshold = normalize(ranked[wanted - 1]) if wanted else 0
    if threshold <= 0 and ranked:
        threshold = normalize(ranked[0])

    count = selected(threshold)
    while count > MAX_SELECTED:
        threshold = floor_to(threshold + THRESHOLD_STEP, THRESHOLD_STEP)
        count = selected(threshold)
    while count < MIN_SELECTED and threshold > 0:
        threshold = normalize(threshold - THRESHOLD_STEP)
        count = selected(threshold)
    while threshold > 0 and threshold in taken:
        higher = floor_to(threshold + THRESHOLD_STEP, THRESHOLD_STEP)
        if selected(higher) >= MIN_SELECTED:
            threshold = higher
            continue
        lower = normalize(threshold - THRESHOLD_STEP)
        if lower <= 0:
            break
        threshold = lower

    if threshold > 0:
        materiality = scale(threshold, 1 / scope_percent)
    else:
        materiality = scale(sum(amounts), FALLBACK_MATERIALITY)
    log.debug(
        "Scope %.4f: threshold %d cents selects %d of %d",
        scope_percent,
        threshold,
        selected(threshold),
        len(amounts),
    )
    return Scope(scope_percent=scope_percent, threshold=threshold, performance_materiality=materiality)


def calibrate_accrual_estimate(population: Population, scope: Scope, seed: str) -> Population:
    """Place the accrual estimate 20-80% of the tolerance away from the settlement.

    Uses its own ``"{seed}|accrual-estimate"`` stream so the main sequence
    is unaffected.
    """
    tolerance = scope.accrual_tolerance
    row = next((i for i in population.invoices if i.is_estimate_only), None)
    if tolerance <= 0 or row is None:
        return population
    settlement = sum(
        i.amount for i in population.invoices_for(row.payment_id) if not i.is_estimate_only
    )
    rng = derive_rng(seed, "accrual-estimate")
    variance = scale(tolerance, 0.2 + rng.random() * 0.6)
    sign = -1 if rng.random() < 0.5 else 1
    estimate = settlement + sign * variance
    if estimate <= 0:
        estimate = settlement + abs(variance)
    return with_accrual_estimate(population, estimate)
