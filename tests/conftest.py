"""Shared fixtures and helpers for the casegen test suite."""

import duckdb
import pytest

from casegen import build
from casegen.context import GenerationContext
from casegen.invoices import Invoice
from casegen.planner import DisbursementTarget
from casegen.solver import LineItem, invoice_total

SEED = "casegen-test-seed"
YEAR_END = "20X2-12-31"


@pytest.fixture
def conn():
    """In-memory DuckDB connection for each test."""
    c = duckdb.connect(":memory:")
    yield c
    c.close()


@pytest.fixture
def ctx() -> GenerationContext:
    """Advanced-recipe context with a fixed seed."""
    return GenerationContext.create({"yearEnd": YEAR_END}, seed=SEED, profile="advanced")


@pytest.fixture
def intermediate_ctx() -> GenerationContext:
    return GenerationContext.create({"yearEnd": YEAR_END}, seed=SEED, profile="intermediate")


@pytest.fixture(scope="session")
def draft() -> dict:
    """One advanced draft, built once per session."""
    return build({"yearEnd": YEAR_END}, seed=SEED)


@pytest.fixture(scope="session")
def intermediate_draft() -> dict:
    return build({"yearEnd": YEAR_END}, seed=SEED, profile="intermediate")


def _make_target(**kwargs) -> DisbursementTarget:
    """Helper to create a DisbursementTarget with defaults."""
    defaults = {
        "payment_id": "P-101",
        "payee": "Pinnacle Penworks",
        "payment_date": "20X3-01-10",
        "amount": 2_500_000,
        "invoice_count": 1,
        "service_timing": "pre",
        "trap_type": None,
    }
    defaults.update(kwargs)
    return DisbursementTarget(**defaults)


def _make_invoice(**kwargs) -> Invoice:
    """Helper to create a priced Invoice whose amount matches its charges."""
    items = kwargs.pop("line_items", (LineItem("Setup charge for pad print", 2, 10_000),))
    tax_rate = kwargs.pop("tax_rate", 500)
    shipping = kwargs.pop("shipping", 2_500)
    subtotal = sum(i.extended for i in items)
    defaults = {
        "payment_id": "P-101",
        "vendor": "Pinnacle Penworks",
        "invoice_number": "INV-1001",
        "invoice_date": "20X2-12-15",
        "service_date": "20X2-12-10",
        "shipping_date": "20X2-12-12",
        "due_date": "20X3-01-30",
        "amount": invoice_total(subtotal, tax_rate, shipping),
        "is_recorded": True,
        "line_items": items,
        "subtotal": subtotal,
        "tax_rate": tax_rate,
        "shipping": shipping,
    }
    defaults.update(kwargs)
    return Invoice(**defaults)


def _reference_doc(draft: dict, file_name: str) -> dict:
    """Return the reference document with ``file_name``."""
    for doc in draft["referenceDocuments"]:
        if doc["fileName"] == file_name:
            return doc
    raise KeyError(file_name)
