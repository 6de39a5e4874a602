"""Tests for casegen/verify.py: checks over a serialized draft."""

import copy
import json

from casegen import verify
from casegen.verify import invoice_documents
from tests.conftest import _reference_doc


def _tampered(draft: dict) -> dict:
    return copy.deepcopy(draft)


class TestVerify:
    def test_clean_draft(self, draft):
        assert verify(draft) == []

    def test_survives_json_round_trip(self, draft):
        assert verify(json.loads(json.dumps(draft))) == []

    def test_disbursement_amount_changed(self, draft):
        bad = _tampered(draft)
        target = bad["disbursements"][0]
        target["amount"] = "1.00"
        errors = verify(bad)
        assert any(e.startswith(target["paymentId"]) for e in errors)

    def test_invoice_total_changed(self, draft):
        bad = _tampered(draft)
        spec = invoice_documents(bad)[0]
        spec["data"]["invoiceTotal"] = spec["data"]["invoiceTotal"] + 1
        errors = verify(bad)
        assert any(f"Invoice {spec['data']['invoiceNumber']}: total" in e for e in errors)

    def test_missing_tax_and_shipping(self, draft):
        bad = _tampered(draft)
        data = invoice_documents(bad)[0]["data"]
        data["taxRate"] = 0
        data["shipping"] = 0
        errors = verify(bad)
        assert any("tax rate must be positive" in e for e in errors)
        assert any("shipping must be positive" in e for e in errors)

    def test_trap_removed(self, draft):
        bad = _tampered(draft)
        for d in bad["disbursements"]:
            if d["meta"].get("trapType") == "accrual":
                d["meta"].pop("trapType")
        assert "Expected exactly one accrual trap, found 0" in verify(bad)

    def test_corrected_aging_missing(self, draft):
        bad = _tampered(draft)
        bad["referenceDocuments"] = [
            d for d in bad["referenceDocuments"] if d["fileName"] != "AP Aging Summary (Corrected).pdf"
        ]
        assert "Corrected AP aging document is missing" in verify(bad)

    def test_unrecorded_invoice_listed_in_aging(self, draft):
        bad = _tampered(draft)
        [bundle] = [d for d in bad["disbursements"] if d["meta"].get("trapType") == "bundle"]
        withheld = next(
            s for s in invoice_documents(bad)
            if s["linkToPaymentId"] == bundle["paymentId"] and not s["isRecorded"]
        )
        aging = _reference_doc(bad, "AP Aging Summary (Corrected).pdf")["generationSpec"]["data"]
        aging["rows"].append({
            "vendor": bundle["payee"],
            "invoiceNumber": withheld["data"]["invoiceNumber"],
            "invoiceDate": withheld["data"]["invoiceDate"],
            "dueDate": withheld["data"]["dueDate"],
            "amount": withheld["invoiceTotal"],
        })
        errors = verify(bad)
        assert f"Invoice {withheld['data']['invoiceNumber']} should not appear in AP aging" in errors

    def test_payment_outside_window(self, draft):
        bad = _tampered(draft)
        bad["disbursements"][0]["paymentDate"] = "20X3-04-01"
        errors = verify(bad)
        assert any("outside window" in e for e in errors)

    def test_does_not_mutate(self, draft):
        before = json.dumps(draft, sort_keys=True)
        verify(draft)
        assert json.dumps(draft, sort_keys=True) == before
