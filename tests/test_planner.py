"""Tests for casegen/planner.py: target planning, traps and repairs."""

from dataclasses import replace

import pytest

from casegen.context import GenerationContext
from casegen.dates import days_between
from casegen.errors import ValidationIssue
from casegen.planner import (
    ACCRUAL_INVOICE_COUNT,
    AMOUNT_QUANTUM,
    BUNDLE_INVOICE_COUNT,
    normalize_targets,
    plan_targets,
)
from casegen.profiles import ADVANCED, INTERMEDIATE
from tests.conftest import YEAR_END, _make_target

SEEDS = ["plan-a", "plan-b", "plan-c", "plan-d", "plan-e"]


def _issues(*codes: str) -> list[ValidationIssue]:
    return [ValidationIssue(code=c, message=c) for c in codes]


def _population(n: int) -> list:
    return [
        _make_target(
            payment_id=f"P-{101 + i}",
            payee=f"Vendor {i}",
            payment_date=f"20X3-01-{10 + i:02d}",
            amount=1_000_000 + i * AMOUNT_QUANTUM,
        )
        for i in range(n)
    ]


class TestPlanTargets:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_count_and_ids(self, seed):
        ctx = GenerationContext.create({"yearEnd": YEAR_END}, seed=seed, profile=ADVANCED)
        targets = plan_targets(ctx)
        assert 10 <= len(targets) <= 15
        assert [t.payment_id for t in targets] == [f"P-{101 + i}" for i in range(len(targets))]

    @pytest.mark.parametrize("seed", SEEDS)
    def test_exactly_one_of_each_trap(self, seed):
        ctx = GenerationContext.create({}, seed=seed)
        traps = [t.trap_type for t in plan_targets(ctx)]
        for kind in ("bundle", "timing", "accrual"):
            assert traps.count(kind) == 1

    @pytest.mark.parametrize("seed", SEEDS)
    def test_trap_targets_shape(self, seed):
        ctx = GenerationContext.create({}, seed=seed)
        by_trap = {t.trap_type: t for t in plan_targets(ctx) if t.trap_type}
        assert by_trap["bundle"].service_timing == "pre"
        assert by_trap["accrual"].service_timing == "pre"
        assert by_trap["timing"].service_timing == "post"
        assert by_trap["bundle"].invoice_count == BUNDLE_INVOICE_COUNT
        assert by_trap["accrual"].invoice_count == ACCRUAL_INVOICE_COUNT

    @pytest.mark.parametrize("seed", SEEDS)
    def test_trap_amounts_exceed_ordinary(self, seed):
        ctx = GenerationContext.create({}, seed=seed)
        targets = plan_targets(ctx)
        ordinary = max(t.amount for t in targets if not t.trap_type)
        assert all(t.amount > ordinary for t in targets if t.trap_type)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_amounts_distinct_and_quantized(self, seed):
        ctx = GenerationContext.create({}, seed=seed)
        amounts = [t.amount for t in plan_targets(ctx)]
        assert len(set(amounts)) == len(amounts)
        assert all(a % AMOUNT_QUANTUM == 0 for a in amounts)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_advanced_dates_in_january_with_duplicates(self, seed):
        ctx = GenerationContext.create({"yearEnd": YEAR_END}, seed=seed, profile=ADVANCED)
        dates = [t.payment_date for t in plan_targets(ctx)]
        assert all(1 <= days_between(YEAR_END, d) <= 31 for d in dates)
        assert len(set(dates)) < len(dates)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_intermediate_dates_distinct(self, seed):
        ctx = GenerationContext.create({"yearEnd": YEAR_END}, seed=seed, profile=INTERMEDIATE)
        dates = [t.payment_date for t in plan_targets(ctx)]
        assert all(30 <= days_between(YEAR_END, d) <= 60 for d in dates)
        assert len(set(dates)) == len(dates)

    def test_count_override(self):
        ctx = GenerationContext.create({"disbursementCount": 12}, seed="override")
        assert len(plan_targets(ctx)) == 12

    def test_vendor_count_raises_count(self):
        ctx = GenerationContext.create({"disbursementCount": 11, "vendorCount": 14}, seed="override")
        targets = plan_targets(ctx)
        assert len(targets) == 14
        assert len({t.payee for t in targets}) == 14

    def test_invoices_per_vendor_override(self):
        ctx = GenerationContext.create({"invoicesPerVendor": 2}, seed="override")
        ordinary = [t for t in plan_targets(ctx) if not t.trap_type]
        assert all(t.invoice_count == 2 for t in ordinary)

    def test_deterministic(self):
        a = plan_targets(GenerationContext.create({}, seed="same"))
        b = plan_targets(GenerationContext.create({}, seed="same"))
        assert a == b


class TestNormalizeTargets:
    def test_pure(self):
        targets = _population(3)
        before = list(targets)
        normalize_targets(targets, _issues("disbursement-count-low"), ADVANCED, YEAR_END)
        assert targets == before

    def test_no_issues_no_change(self):
        targets = _population(10)
        assert normalize_targets(targets, [], ADVANCED, YEAR_END) == targets

    def test_count_low_pads_to_minimum(self):
        targets = _population(3)
        targets[-1] = replace(targets[-1], trap_type="bundle")
        out = normalize_targets(targets, _issues("disbursement-count-low"), ADVANCED, YEAR_END)
        assert len(out) == 10
        pads = out[3:]
        assert [t.payment_id for t in pads] == [f"P-{120 + i}" for i in range(7)]
        assert all(t.trap_type is None for t in pads)
        assert pads[0].payee == "Vendor 2 Co. 1"
        assert pads[0].amount == targets[-1].amount + 7_500
        assert days_between(targets[-1].payment_date, pads[0].payment_date) == 2

    def test_count_high_trims(self):
        out = normalize_targets(_population(18), _issues("disbursement-count-high"), ADVANCED, YEAR_END)
        assert len(out) == 15

    def test_window_repair(self):
        targets = [_make_target(payment_date="20X3-03-15") for _ in range(3)]
        out = normalize_targets(targets, _issues("payment-date-window"), ADVANCED, YEAR_END)
        assert [t.payment_date for t in out] == ["20X3-01-02", "20X3-01-03", "20X3-01-04"]

    def test_window_repair_intermediate(self):
        targets = [_make_target(payment_date="20X3-01-01") for _ in range(2)]
        out = normalize_targets(targets, _issues("payment-date-window"), INTERMEDIATE, YEAR_END)
        assert [days_between(YEAR_END, t.payment_date) for t in out] == [35, 36]

    def test_date_variation_advanced_shares_dates(self):
        targets = _population(9)
        out = normalize_targets(targets, _issues("payment-date-variation"), ADVANCED, YEAR_END)
        assert out[3].payment_date == out[2].payment_date
        assert out[6].payment_date == out[5].payment_date

    def test_date_variation_intermediate_spreads_dates(self):
        targets = [_make_target(payment_date="20X3-02-01") for _ in range(4)]
        out = normalize_targets(targets, _issues("payment-date-variation"), INTERMEDIATE, YEAR_END)
        assert len({t.payment_date for t in out}) == 4

    def test_payee_variation(self):
        targets = [_make_target(payee="Acme") for _ in range(3)]
        out = normalize_targets(targets, _issues("payee-variation"), ADVANCED, YEAR_END)
        assert [t.payee for t in out] == ["Acme", "Acme 2", "Acme 3"]

    def test_amount_variation(self):
        targets = [_make_target(amount=100_000) for _ in range(3)]
        out = normalize_targets(targets, _issues("amount-variation"), ADVANCED, YEAR_END)
        assert [t.amount for t in out] == [100_000, 102_500, 105_000]

    def test_trap_installs(self):
        targets = _population(4)
        codes = _issues("bundle-trap-missing", "timing-trap-missing", "accrual-trap-missing")
        out = normalize_targets(targets, codes, ADVANCED, YEAR_END)
        assert [t.trap_type for t in out] == ["bundle", "timing", "accrual", None]
        assert out[0].service_timing == "pre"
        assert out[1].service_timing == "post"
        assert out[0].invoice_count == BUNDLE_INVOICE_COUNT
        assert out[2].invoice_count == ACCRUAL_INVOICE_COUNT

    def test_trap_install_clears_duplicate(self):
        targets = _population(4)
        targets[3] = _make_target(payment_id="P-104", trap_type="bundle")
        targets.append(_make_target(payment_id="P-105", trap_type="bundle"))
        out = normalize_targets(targets, _issues("bundle-trap-missing"), ADVANCED, YEAR_END)
        assert [t.trap_type for t in out].count("bundle") == 1
        assert out[0].trap_type == "bundle"
