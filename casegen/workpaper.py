"""Instruction screen and workpaper gates for a SURL case."""

from __future__ import annotations

from typing import Any

from .documents import AGING_CORRECTED_NAME, AGING_INITIAL_NAME, CHECK_GAP, LEAD_NAME, CaseDocuments
from .money import to_dollars
from .population import Population
from .profiles import RecipeProfile
from .scope import Scope

WORKFLOW_STEPS = ["instruction", "ca_check", "ca_completeness", "selection", "testing", "results"]
PHASES = [
    {"id": "step2", "label": "C&A gates"},
    {"id": "step3", "label": "Selection + testing"},
]


def _option(opt_id: str, text: str, correct: bool, feedback: str, outcome: str | None = None) -> dict[str, Any]:
    option: dict[str, Any] = {"id": opt_id, "text": text, "correct": correct}
    if outcome is not None:
        option["outcome"] = outcome
    option["feedback"] = feedback
    return option


def build_instruction(profile: RecipeProfile) -> dict[str, Any]:
    return {
        "title": "Search for Unrecorded Liabilities",
        "moduleCode": profile.module_code,
        "version": profile.version,
        "hook": {
            "headline": "Tie-out first, then follow the scope.",
            "risk": "If the population is wrong or the scope is ignored, real liabilities stay hidden.",
            "body": "Confirm the AP reports are usable, then select every disbursement at or above the scope threshold.",
        },
        "visualAsset": {"type": "VIDEO", "source_id": "", "alt": ""},
        "heuristic": {
            "rule_text": "You can't test a broken population, and you can't eyeball scope.",
            "reminder": "Tie-out first. Then select every disbursement above the threshold.",
        },
        "gateCheck": {
            "question": (
                "A payment clears in January for work performed in December. "
                "Which period should record the expense?"
            ),
            "success_message": "Correct. The expense belongs to the year the work occurred.",
            "failure_message": "Focus on when the service happened, not when cash left.",
            "options": [
                _option("opt1", "December", True, "Match the expense to the service period."),
                _option("opt2", "January", False, "Cash timing does not control cutoff."),
            ],
        },
    }


def build_tie_out_gate(population: Population) -> dict[str, Any]:
    """AP aging vs. lead schedule; the initial aging never ties."""
    return {
        "enabled": True,
        "skillTag": "ca_tie_out",
        "stepTitle": "AP Aging C&A",
        "description": "Confirm the AP aging ties to the ledger before you evaluate the population.",
        "assessmentQuestion": "Do the AP aging and AP ledger totals tie out?",
        "assessmentOptions": [
            _option(
                "assess_yes",
                "Yes, they tie out.",
                False,
                "Double-check the totals and the report run dates before moving on.",
                outcome="match",
            ),
            _option(
                "assess_no",
                "No, they do not tie out.",
                True,
                "Good catch. Resolve the mismatch before selecting items to test.",
                outcome="mismatch",
            ),
        ],
        "actionQuestion": "You indicated the reports do not tie. What is the best next step?",
        "successMessage": "Correct. Get a corrected population before selecting items.",
        "failureMessage": "Not yet. Resolve the tie-out before you select items to test.",
        "actionOptions": [
            _option(
                "opt1",
                "Proceed with selection and note the mismatch for later.",
                False,
                "You need a corrected population before you can scope testing.",
            ),
            _option(
                "opt2",
                "Ask the client to correct the tie-out and rerun the reports.",
                True,
                "That is the right next step.",
            ),
            _option(
                "opt3",
                "Ignore the aging and test disbursements randomly.",
                False,
                "Testing off a broken population risks missing liabilities.",
            ),
        ],
        "passedMessage": "Tie-out complete. Continue to the completeness check.",
        "referenceDocNames": [AGING_INITIAL_NAME, LEAD_NAME],
        "correctedReferenceDocNames": [AGING_CORRECTED_NAME, LEAD_NAME],
        "requireOpenedDocs": True,
        "mismatch": {
            "agingTotal": to_dollars(population.initial_aging_total),
            "ledgerTotal": to_dollars(sum(r.amount for r in population.lead_schedule)),
        },
    }


_CHECK_GAP_TEXT = "There is a gap in the check sequence, and the client supported it with a voided check copy."
_MISSING_ELECTRONIC_TEXT = "The bank statement shows an ACH/wire that is missing from the listing."


def _completeness_options(check_gap: bool) -> list[dict[str, Any]]:
    if check_gap:
        return [
            _option("opt1", _CHECK_GAP_TEXT, True,
                    "Exactly. The gap is explained by a voided check, so the listing is complete."),
            _option("opt2", _MISSING_ELECTRONIC_TEXT, False,
                    "That would indicate a missing electronic payment, not a check gap."),
            _option("opt3", "The listing looks like it is filtered to checks only.", False,
                    "Possible, but the evidence here is a specific check-number gap."),
            _option("opt4", "The totals do not tie, so the listing must be incomplete.", False,
                    "Totals can tie even when the sequence shows a gap."),
        ]
    return [
        _option("opt1", _MISSING_ELECTRONIC_TEXT, True,
                "Correct. The electronic payment is on the bank statement but not on the listing."),
        _option("opt2", _CHECK_GAP_TEXT, False,
                "That would explain a check gap, not a missing electronic payment."),
        _option("opt3", "The listing includes only payments above the scope threshold.", False,
                "Scope thresholds come after completeness. The population should be full."),
        _option("opt4", "The bank statement has prior-period checks clearing in January.", False,
                "Those explain statement-only items, not a missing electronic payment."),
    ]


def build_completeness_gate(documents: CaseDocuments) -> dict[str, Any]:
    names = documents.names
    period = names.period_name
    check_gap = documents.gap_scenario == CHECK_GAP
    if check_gap:
        corrected = [documents.voided_check_name] if documents.voided_check_name else []
    else:
        corrected = [names.listing_corrected, names.statement]
    return {
        "enabled": True,
        "skillTag": "ca_completeness",
        "stepTitle": "Disbursement Listing C&A",
        "description": (
            f"Validate the {period} disbursement listing against the bank statement "
            "before you select items to test."
        ),
        "assessmentQuestion": f"Does the {period} disbursement listing appear complete?",
        "assessmentOptions": [
            _option(
                "assess_yes",
                "Yes, the listing looks complete.",
                False,
                "Look for gaps or missing activity compared to the bank statement.",
                outcome="match",
            ),
            _option(
                "assess_no",
                "No, it looks incomplete.",
                True,
                "Good catch. Identify the right response.",
                outcome="incomplete",
            ),
        ],
        "actionQuestion": "What exactly did you see that made you answer that way?",
        "successMessage": (
            "Correct. You identified the check-number gap and the supporting void evidence."
            if check_gap
            else "Correct. You spotted the missing electronic payment on the bank statement."
        ),
        "failureMessage": "Not yet. Point to the specific evidence that makes the listing incomplete.",
        "actionOptions": _completeness_options(check_gap),
        "passedMessage": (
            "Disbursement listing C&A complete. Void documentation explains the gap."
            if check_gap
            else "Disbursement listing C&A complete. Use the corrected disbursement listing for selection."
        ),
        "includeAllReferenceDocs": True,
        "referenceDocNames": [names.listing_initial, names.statement],
        "correctedReferenceDocNames": corrected,
        "requireOpenedDocs": True,
    }


def build_selection_scope(scope: Scope) -> dict[str, Any]:
    return {
        "performanceMateriality": to_dollars(scope.performance_materiality),
        "scopePercent": scope.scope_percent,
        "thresholdAmount": to_dollars(scope.threshold),
        "skillTag": "scope_threshold",
        "lockOnPass": True,
    }


def build_workpaper(population: Population, documents: CaseDocuments, scope: Scope) -> dict[str, Any]:
    return {
        "layoutType": "two_pane",
        "layoutConfig": {
            "tieOutGate": build_tie_out_gate(population),
            "completenessGate": build_completeness_gate(documents),
            "selectionScope": build_selection_scope(scope),
        },
    }


def build_workflow() -> dict[str, Any]:
    return {"steps": list(WORKFLOW_STEPS), "gateScope": "per_attempt"}
