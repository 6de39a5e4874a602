"""End-to-end tests for casegen.build(): reproducibility and draft invariants."""

import json
from dataclasses import replace

import pytest

from casegen import ADVANCED, GenerationExhausted, build, verify
from casegen.context import Overrides, normalize_override_count, resolve_year_end
from casegen.dates import days_between
from casegen.profiles import get_profile
from tests.conftest import SEED, YEAR_END, _reference_doc


class TestReproducibility:
    def test_same_seed_identical_json(self, draft):
        again = build({"yearEnd": YEAR_END}, seed=SEED)
        assert json.dumps(again, sort_keys=True) == json.dumps(draft, sort_keys=True)

    def test_different_seed_differs(self, draft):
        other = build({"yearEnd": YEAR_END}, seed=SEED + "-other")
        assert other["disbursements"] != draft["disbursements"]

    def test_minted_seed_recorded(self):
        result = build()
        seed = result["generationPlan"]["seed"]
        assert len(seed) == 32
        assert json.dumps(build(seed=seed), sort_keys=True) == json.dumps(result, sort_keys=True)


class TestDraftInvariants:
    def test_verify_clean(self, draft):
        assert verify(draft) == []

    def test_reconciliation(self, draft):
        totals: dict[str, float] = {}
        for doc in draft["referenceDocuments"]:
            spec = doc["generationSpec"]
            if spec["templateId"].startswith("invoice."):
                pid = spec["linkToPaymentId"]
                totals[pid] = totals.get(pid, 0) + round(spec["invoiceTotal"] * 100)
        for d in draft["disbursements"]:
            assert totals[d["paymentId"]] == round(float(d["amount"]) * 100)

    def test_bundle_split_sums_to_amount(self, draft):
        [bundle] = [d for d in draft["disbursements"] if d["meta"].get("trapType") == "bundle"]
        key = bundle["answerKey"]
        assert bundle["answerKeyMode"] == "split"
        assert round((key["properlyIncluded"] + key["improperlyExcluded"]) * 100) == round(float(bundle["amount"]) * 100)
        assert key["improperlyExcluded"] > 0

    def test_trap_cardinality(self, draft):
        traps = [d["meta"].get("trapType") for d in draft["disbursements"]]
        assert sorted(t for t in traps if t) == ["accrual", "bundle", "timing"]

    def test_bounds(self, draft):
        disbursements = draft["disbursements"]
        assert 10 <= len(disbursements) <= 15
        floor = min(len(disbursements), 8)
        assert len({d["payee"] for d in disbursements}) >= floor
        assert len({d["amount"] for d in disbursements}) >= floor
        for d in disbursements:
            assert 1 <= days_between(YEAR_END, d["paymentDate"]) <= 31

    def test_accrual_estimate_within_tolerance(self, draft):
        [accrual] = [d for d in draft["disbursements"] if d["meta"].get("trapType") == "accrual"]
        scope = draft["workpaper"]["layoutConfig"]["selectionScope"]
        tolerance = scope["performanceMateriality"] * 0.05 / 0.75
        gap = abs(accrual["meta"]["accrualEstimate"] - accrual["meta"]["settlementTotal"])
        assert gap <= tolerance * 0.8 + 0.02

    def test_scope_selects_three_to_seven(self, draft):
        threshold = draft["workpaper"]["layoutConfig"]["selectionScope"]["thresholdAmount"]
        amounts = [float(d["amount"]) for d in draft["disbursements"]]
        assert threshold not in amounts
        assert 3 <= sum(1 for a in amounts if a >= threshold) <= 7

    def test_draft_shape(self, draft):
        assert draft["caseName"] == f"SURL Cutoff: January Disbursements ({YEAR_END})"
        assert draft["auditArea"] == "payables"
        assert draft["layoutType"] == "two_pane"
        assert draft["recipeId"] == "case.surl.advanced.v1"
        assert draft["instruction"]["moduleCode"] == "SURL-301"
        assert draft["workflow"]["steps"][0] == "instruction"
        plan = draft["generationPlan"]
        assert plan["seed"] == SEED
        assert plan["caseLevel"] == "advanced"
        assert [p["id"] for p in plan["phases"]] == ["step2", "step3"]
        assert plan["overrides"] == {"disbursementCount": None, "vendorCount": None, "invoicesPerVendor": None}


class TestScenarios:
    def test_scenario_a_no_overrides(self):
        result = build(seed="scenario-a")
        assert result["generationPlan"]["yearEnd"] == "20X2-12-31"
        assert verify(result) == []

    def test_scenario_b_pads_small_count(self):
        result = build({"disbursementCount": 3}, seed="scenario-b")
        assert len(result["disbursements"]) == 10
        assert result["generationPlan"]["overrides"]["disbursementCount"] == 3
        assert verify(result) == []

    @pytest.mark.parametrize("seed", [f"scenario-d-{n}" for n in range(8)])
    def test_scenario_d_random_seeds(self, seed):
        assert verify(build(seed=seed)) == []

    @pytest.mark.parametrize("seed", [f"intermediate-{n}" for n in range(4)])
    def test_intermediate(self, seed):
        result = build(seed=seed, profile="intermediate")
        assert result["recipeId"] == "case.surl.intermediate.v1"
        assert result["instruction"]["moduleCode"] == "SURL-201"
        dates = [d["paymentDate"] for d in result["disbursements"]]
        assert len(set(dates)) == len(dates)
        assert all(30 <= days_between("20X2-12-31", d) <= 60 for d in dates)
        assert verify(result) == []

    def test_case_level_override_selects_profile(self):
        result = build({"caseLevel": "intermediate"}, seed="level")
        assert result["generationPlan"]["caseLevel"] == "intermediate"

    def test_overrides_clamped(self):
        result = build({"disbursementCount": 99, "vendorCount": "lots", "invoicesPerVendor": 2.4}, seed="clamp")
        assert result["generationPlan"]["overrides"] == {
            "disbursementCount": 30,
            "vendorCount": None,
            "invoicesPerVendor": 2,
        }
        assert len(result["disbursements"]) == 15

    def test_other_year_end(self):
        result = build({"yearEnd": "20X5-06-30"}, seed="june")
        assert result["caseName"].endswith("(20X5-06-30)")
        assert verify(result) == []

    def test_iso_year_end(self):
        result = build({"yearEnd": "2024-12-31"}, seed="iso")
        assert result["caseName"].endswith("(2024-12-31)")
        assert all(d["paymentDate"].startswith("2025-01-") for d in result["disbursements"])
        statement = _reference_doc(result, "January Bank Statement.pdf")["generationSpec"]["data"]
        assert statement["periodLabel"] == "January 2025"
        assert verify(result) == []


class TestErrors:
    def test_unknown_recipe(self):
        with pytest.raises(ValueError, match="Unknown recipe"):
            build(seed="x", profile="expert")

    def test_malformed_year_end(self):
        with pytest.raises(ValueError, match="Invalid yearEnd"):
            build({"yearEnd": "December 31"}, seed="x")

    @pytest.mark.parametrize("year_end", ["20X9-12-31", "20X0-12-31"])
    def test_year_end_without_neighbouring_pseudo_years(self, year_end):
        with pytest.raises(ValueError, match="20X1 through 20X8"):
            build({"yearEnd": year_end}, seed="x")

    def test_exhausted(self):
        impossible = replace(ADVANCED, min_disbursements=16, max_disbursements=15, max_attempts=2)
        with pytest.raises(GenerationExhausted):
            build(seed="x", profile=impossible)


class TestOverrides:
    def test_normalize_override_count(self):
        assert normalize_override_count(None, 1, 30) is None
        assert normalize_override_count(True, 1, 30) is None
        assert normalize_override_count("abc", 1, 30) is None
        assert normalize_override_count(float("nan"), 1, 30) is None
        assert normalize_override_count("12", 1, 30) == 12
        assert normalize_override_count(2.5, 1, 30) == 3
        assert normalize_override_count(0, 1, 30) == 1
        assert normalize_override_count(100, 1, 30) == 30

    def test_from_mapping(self):
        ov = Overrides.from_mapping({"vendorCount": 40, "invoicesPerVendor": 0})
        assert ov.vendor_count == 15
        assert ov.invoices_per_vendor == 1

    def test_resolve_year_end(self):
        assert resolve_year_end(None) == "20X2-12-31"
        assert resolve_year_end("  ") == "20X2-12-31"
        assert resolve_year_end(" 20X4-12-31 ") == "20X4-12-31"

    def test_get_profile(self):
        assert get_profile(None) is ADVANCED
        assert get_profile("ADVANCED") is ADVANCED
        assert get_profile("case.surl.intermediate.v1").case_level == "intermediate"
