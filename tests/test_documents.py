"""Tests for casegen/documents.py: listing, statement and reference documents."""

import pytest

from casegen import build
from casegen.context import GenerationContext
from casegen.documents import (
    AGING_CORRECTED_NAME,
    AGING_INITIAL_NAME,
    CHECK_GAP,
    CHECKS_PER_PAGE,
    LEAD_NAME,
    MISSING_ELECTRONIC,
    CheckCopy,
    DocumentNames,
    build_listing,
    document_id,
    payment_type,
    period_label,
)
from casegen.population import AnswerKey, Disbursement
from casegen.rng import hash_seed
from tests.conftest import SEED, YEAR_END, _reference_doc


def _disbursements(n: int) -> list[Disbursement]:
    return [
        Disbursement(
            payment_id=f"P-{101 + i}",
            payee=f"Vendor {i}",
            amount=1_000_000 + i * 2_500,
            payment_date=f"20X3-01-{(i % 28) + 1:02d}",
            classification="properlyIncluded",
            answer_key=AnswerKey(),
            should_flag=False,
        )
        for i in range(n)
    ]


class TestHelpers:
    def test_document_id_is_deterministic(self):
        assert document_id("s", "a.pdf") == document_id("s", "a.pdf")
        assert document_id("s", "a.pdf") != document_id("s", "b.pdf")
        assert document_id("s", "a.pdf") == f"doc-{hash_seed('s|doc|a.pdf'):08x}"

    def test_period_label_single_month(self):
        assert period_label(YEAR_END, 1, 31) == "January 20X3"

    def test_period_label_multi_month(self):
        assert period_label(YEAR_END, 30, 60) == "January - March 20X3"

    def test_payment_type_from_hash(self):
        selector = hash_seed(f"{SEED}|paymentType|P-101") % 10
        expected = "Check" if selector < 6 else "ACH" if selector < 9 else "Wire"
        assert payment_type(SEED, "P-101") == expected

    def test_document_names(self):
        names = DocumentNames("January")
        assert names.listing_initial == "January Disbursements Listing (Initial).pdf"
        assert names.statement == "January Bank Statement.pdf"
        assert AGING_INITIAL_NAME in names.step2

    def test_check_copy_words(self):
        data = CheckCopy("10500", "20X3-01-05", "Acme", 1_250_007).to_data()
        assert data["amountNumeric"] == "12,500.07"
        assert data["amountWords"] == "Twelve Thousand Five Hundred and 07/100"
        assert data["micr"]["checkNumber"] == "10500"


class TestBuildListing:
    @pytest.mark.parametrize("seed", [f"listing-{n}" for n in range(12)])
    def test_listing_structure(self, seed):
        ctx = GenerationContext.create({}, seed=seed)
        listing = build_listing(_disbursements(12), ctx)
        dates = [r.payment_date for r in listing.rows]
        assert dates == sorted(dates)
        assert any(not r.is_check for r in listing.rows)

        numbers = [int(r.check_number) for r in listing.rows if r.is_check]
        assert numbers == sorted(numbers)
        assert len(set(numbers)) == len(numbers)

        if listing.gap_scenario == CHECK_GAP:
            missing = int(listing.missing_check_number)
            assert missing not in numbers
            assert numbers[0] < missing < numbers[-1]
            assert listing.initial_rows == listing.rows
        else:
            assert listing.gap_scenario == MISSING_ELECTRONIC
            dropped = listing.rows[listing.missing_index]
            assert not dropped.is_check
            assert len(listing.initial_rows) == len(listing.rows) - 1
            assert listing.missing_check_number is None

    def test_both_scenarios_occur(self):
        seen = set()
        for n in range(30):
            ctx = GenerationContext.create({}, seed=f"scenario-{n}")
            seen.add(build_listing(_disbursements(12), ctx).gap_scenario)
        assert seen == {CHECK_GAP, MISSING_ELECTRONIC}


class TestStatementBalance:
    @pytest.mark.parametrize("seed", [f"balance-{n}" for n in range(60)])
    def test_running_balance_never_negative(self, seed):
        draft = build(seed=seed)
        statement = _reference_doc(draft, "January Bank Statement.pdf")["generationSpec"]["data"]
        balance = round(statement["openingBalance"] * 100)
        assert balance >= 2_500_000
        for row in statement["rows"]:
            balance += round(row["amount"] * 100)
            assert balance >= 0, f"{row['date']} {row['reference']} overdraws to {balance / 100:.2f}"


class TestAssembledDocuments:
    def test_aging_pair(self, draft):
        initial = _reference_doc(draft, AGING_INITIAL_NAME)["generationSpec"]["data"]
        corrected = _reference_doc(draft, AGING_CORRECTED_NAME)["generationSpec"]["data"]
        assert initial["asOfDate"] == "December 31 20X2"
        initial_total = sum(r["amount"] for r in initial["rows"])
        corrected_total = sum(r["amount"] for r in corrected["rows"])
        assert initial_total < corrected_total
        assert len(initial["rows"]) == len(corrected["rows"])

    def test_lead_schedule_ties_to_corrected_aging(self, draft):
        lead = _reference_doc(draft, LEAD_NAME)["generationSpec"]["data"]
        corrected = _reference_doc(draft, AGING_CORRECTED_NAME)["generationSpec"]["data"]
        corrected_total = round(sum(r["amount"] for r in corrected["rows"]), 2)
        assert lead["total"]["final_amount"] == pytest.approx(corrected_total)
        assert 0.85 * corrected_total - 0.01 <= lead["total"]["prior_amount"] <= 1.15 * corrected_total + 0.01

    def test_tie_out_gate_totals(self, draft):
        gate = draft["workpaper"]["layoutConfig"]["tieOutGate"]
        initial = _reference_doc(draft, AGING_INITIAL_NAME)["generationSpec"]["data"]
        assert gate["mismatch"]["agingTotal"] == pytest.approx(sum(r["amount"] for r in initial["rows"]))
        assert gate["mismatch"]["agingTotal"] < gate["mismatch"]["ledgerTotal"]

    def test_statement(self, draft):
        statement = _reference_doc(draft, "January Bank Statement.pdf")["generationSpec"]["data"]
        assert statement["periodLabel"] == "January 20X3"
        dates = [r["date"] for r in statement["rows"]]
        assert dates == sorted(dates)
        assert statement["openingBalance"] >= 25_000
        credits = [r for r in statement["rows"] if r["amount"] > 0]
        assert 2 <= len(credits) <= 4
        prior = [r for r in statement["rows"] if str(r["reference"]).startswith("CHK-")]
        assert 1 <= len(prior) <= 2
        for page in statement["canceledCheckPages"]:
            assert 1 <= len(page["checks"]) <= CHECKS_PER_PAGE

    def test_outstanding_checks_absent_from_statement(self, draft):
        listing = _reference_doc(draft, "January Disbursements Listing (Initial).pdf")["generationSpec"]["data"]
        statement = _reference_doc(draft, "January Bank Statement.pdf")["generationSpec"]["data"]
        listed = {r["checkNumber"] for r in listing["rows"] if r["paymentType"] == "Check"}
        cleared = {r.get("checkNumber") for r in statement["rows"]}
        assert 1 <= len(listed - cleared) <= 2

    def test_completeness_evidence(self, draft):
        gate = draft["workpaper"]["layoutConfig"]["completenessGate"]
        names = {d["fileName"] for d in draft["referenceDocuments"]}
        corrected_listing = "January Disbursements Listing (Corrected).pdf"
        voided = [n for n in names if n.startswith("Voided Check")]
        if corrected_listing in names:
            assert voided == []
            assert gate["correctedReferenceDocNames"] == [corrected_listing, "January Bank Statement.pdf"]
        else:
            assert len(voided) == 1
            assert gate["correctedReferenceDocNames"] == voided

    def test_invoice_documents(self, draft):
        invoices = [
            d for d in draft["referenceDocuments"]
            if d["generationSpec"]["templateId"].startswith("invoice.")
        ]
        assert invoices
        for doc in invoices:
            spec = doc["generationSpec"]
            assert spec["linkToPaymentId"].startswith("P-")
            assert spec["data"]["issuedTo"]["name"] == "Team Up Promotional Products, LLC"
            assert not spec["data"]["invoiceNumber"].startswith("ACCR-")

    def test_ids_unique(self, draft):
        ids = [d["id"] for d in draft["referenceDocuments"]]
        assert len(set(ids)) == len(ids)

    def test_phases(self, draft):
        specs = draft["generationPlan"]["referenceDocumentSpecs"]
        by_name = {s["fileName"]: s for s in specs}
        assert by_name[AGING_INITIAL_NAME]["phaseId"] == "step2"
        checks = [s for s in specs if s["fileName"].startswith("Check Copy")]
        assert checks
        assert all(s["internalOnly"] and s["phaseId"] == "step2" for s in checks)
        invoice_specs = [s for s in specs if s["generationSpec"]["templateId"].startswith("invoice.")]
        assert all(s["phaseId"] == "step3" for s in invoice_specs)

    def test_intermediate_names(self, intermediate_draft):
        names = {d["fileName"] for d in intermediate_draft["referenceDocuments"]}
        assert "Subsequent Bank Statement.pdf" in names
        statement = _reference_doc(intermediate_draft, "Subsequent Bank Statement.pdf")
        assert statement["generationSpec"]["data"]["periodLabel"].endswith("20X3")
