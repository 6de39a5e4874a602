"""Case generation entry point.

``build()`` runs the whole pipeline for one case:

    plan targets -> synthesize invoices -> derive population -> validate
        -> (repair targets -> rebuild)*      at most ``max_attempts`` times
    -> scope threshold -> accrual calibration -> documents -> draft

The regeneration loop either converges on a population with no validation
issues or raises :class:`GenerationExhausted`; a partially valid draft is
never returned.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .context import GenerationContext
from .documents import assemble_documents, reference_document_specs
from .errors import GenerationExhausted, ValidationIssue
from .invoices import synthesize
from .planner import DisbursementTarget, normalize_targets, plan_targets
from .population import Population, derive_population
from .profiles import RecipeProfile
from .scope import calibrate_accrual_estimate, compute_scope
from .validation import validate_population
from .workpaper import PHASES, build_instruction, build_workflow, build_workpaper

log = logging.getLogger(__name__)

NOTES = (
    "Reference documents are generated from templates; "
    "run the PDF generator to populate storagePath/downloadURL."
)


def run_regeneration_loop(
    ctx: GenerationContext, targets: list[DisbursementTarget]
) -> tuple[Population, int]:
    """Build, validate and repair until clean.

    Returns the accepted population and the number of attempts it took.
    """
    issues: list[ValidationIssue] = []
    max_attempts = ctx.profile.max_attempts
    for attempt in range(1, max_attempts + 1):
        reconciled, invoices = synthesize(targets, ctx)
        population = derive_population(reconciled, invoices, ctx)
        issues = validate_population(reconciled, population, ctx.profile, ctx.year_end)
        if not issues:
            return population, attempt
        log.debug(
            "Attempt %d/%d: %s", attempt, max_attempts, ", ".join(sorted({i.code for i in issues}))
        )
        targets = normalize_targets(reconciled, issues, ctx.profile, ctx.year_end)
    raise GenerationExhausted(max_attempts, issues)


def build(
    overrides: Mapping[str, Any] | None = None,
    *,
    seed: str | None = None,
    profile: RecipeProfile | str | None = None,
) -> dict[str, Any]:
    """Generate one SURL case draft.

    Args:
        overrides: camelCase overrides (``yearEnd``, ``caseLevel``,
            ``disbursementCount``, ``vendorCount``, ``invoicesPerVendor``).
            Counts are rounded and clamped; non-numeric values are ignored.
        seed: Fixed seed for a reproducible case.  Minted when omitted.
        profile: Recipe id, case level or :class:`RecipeProfile`; defaults
            to ``overrides["caseLevel"]`` and then the advanced recipe.

    Raises:
        ValueError: Unknown recipe or malformed ``yearEnd``.
        GenerationExhausted: No valid population within the attempt budget.
    """
    ctx = GenerationContext.create(overrides, seed=seed, profile=profile)
    log.info(
        "Generating %s case (seed %s, year end %s)", ctx.profile.case_level, ctx.seed, ctx.year_end
    )

    population, attempts = run_regeneration_loop(ctx, plan_targets(ctx))
    scope = compute_scope([d.amount for d in population.disbursements], ctx.rng)
    population = calibrate_accrual_estimate(population, scope, ctx.seed)
    documents = assemble_documents(population, ctx)

    draft = {
        "caseName": f"SURL Cutoff: {ctx.profile.period_name} Disbursements ({ctx.year_end})",
        "auditArea": "payables",
        "layoutType": "two_pane",
        "recipeId": ctx.profile.recipe_id,
        "instruction": build_instruction(ctx.profile),
        "workpaper": build_workpaper(population, documents, scope),
        "workflow": build_workflow(),
        "disbursements": [d.to_dict() for d in population.disbursements],
        "referenceDocuments": documents.reference_documents,
        "generationPlan": {
            "seed": ctx.seed,
            "yearEnd": ctx.year_end,
            "caseLevel": ctx.profile.case_level,
            "overrides": ctx.overrides.as_plan(),
            "notes": NOTES,
            "phases": [dict(p) for p in PHASES],
            "referenceDocumentSpecs": reference_document_specs(documents),
        },
    }
    log.info(
        "Generated %d disbursements, %d invoices, %d documents in %d attempt(s)",
        len(population.disbursements),
        len(population.invoices),
        len(documents.reference_documents),
        attempts,
    )
    return draft
