"""Tabular export of a case draft into DuckDB.

A draft is flattened into one Polars DataFrame per document population and
written to DuckDB, each table with a leading ``_row_id INTEGER`` column.
A ``_case_meta`` key/value table records where the case came from.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import duckdb
import polars as pl

from .verify import invoice_documents

log = logging.getLogger(__name__)

# Type alias for anything coerce_to_dataframe accepts
TableData = Any  # pl.DataFrame | list[dict] | dict[str, list]

META_TABLE = "_case_meta"
TABLE_NAMES = (
    "disbursements",
    "invoices",
    "ap_aging_initial",
    "ap_aging_corrected",
    "disbursement_listing",
    "bank_statement",
    "reference_documents",
)


# ---------------------------------------------------------------------------
# DuckDB helpers
# ---------------------------------------------------------------------------


def quote_ident(name: str) -> str:
    """Quote an identifier for DuckDB SQL."""
    return '"' + name.replace('"', '""') + '"'


def coerce_to_dataframe(data: TableData) -> pl.DataFrame:
    """Convert a DataFrame, list[dict] or dict[str, list] to a DataFrame.

    Raises TypeError for anything else.
    """
    if isinstance(data, pl.DataFrame):
        return data
    if isinstance(data, (list, dict)):
        return pl.DataFrame(data)
    raise TypeError(
        f"Unsupported data type: {type(data).__name__}. "
        f"Expected DataFrame, list[dict], or dict[str, list]."
    )


def write_table(conn: duckdb.DuckDBPyConnection, data: TableData, table_name: str) -> None:
    """Replace ``table_name`` with ``data``, prefixed by a ``_row_id`` column."""
    df = coerce_to_dataframe(data)
    conn.execute(f"DROP TABLE IF EXISTS {quote_ident(table_name)}")
    conn.register("_df", df)
    try:
        conn.execute(
            f"CREATE TABLE {quote_ident(table_name)} AS "
            'SELECT CAST(row_number() OVER () AS INTEGER) AS "_row_id", * '
            "FROM _df"
        )
    finally:
        conn.unregister("_df")


def list_tables(conn: duckdb.DuckDBPyConnection, *, include_meta: bool = False) -> list[str]:
    """User table names, sorted; ``_``-prefixed tables only on request."""
    rows = conn.execute(
        "SELECT table_name FROM duckdb_tables() WHERE internal = false ORDER BY table_name"
    ).fetchall()
    names = [r[0] for r in rows]
    if not include_meta:
        names = [n for n in names if not n.startswith("_")]
    return names


def count_rows(conn: duckdb.DuckDBPyConnection, table_name: str) -> int | None:
    """COUNT(*) for a table, or None when it cannot be queried."""
    try:
        row = conn.execute(f"SELECT COUNT(*) FROM {quote_ident(table_name)}").fetchone()
    except duckdb.Error:
        return None
    return int(row[0]) if row else 0


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------


def _doc_data(draft: dict[str, Any], file_names: Iterable[str]) -> dict[str, Any] | None:
    wanted = list(file_names)
    by_name = {d.get("fileName"): d for d in draft.get("referenceDocuments", [])}
    for name in wanted:
        if name in by_name:
            return by_name[name]["generationSpec"]["data"]
    return None


def _template_data(draft: dict[str, Any], template_id: str, suffix: str) -> dict[str, Any] | None:
    for doc in draft.get("referenceDocuments", []):
        spec = doc.get("generationSpec", {})
        if spec.get("templateId") == template_id and doc.get("fileName", "").endswith(suffix):
            return spec["data"]
    return None


def _disbursement_rows(draft: dict[str, Any]) -> list[dict[str, Any]]:
    rows = []
    for d in draft.get("disbursements", []):
        key = d.get("answerKey", {})
        rows.append({
            "payment_id": d["paymentId"],
            "payee": d["payee"],
            "payment_date": d["paymentDate"],
            "amount": float(d["amount"]),
            "answer_key_mode": d.get("answerKeyMode"),
            "classification": d.get("answerKeySingleClassification"),
            "should_flag": bool(d.get("shouldFlag")),
            "trap_type": d.get("meta", {}).get("trapType"),
            "properly_included": float(key.get("properlyIncluded", 0)),
            "properly_excluded": float(key.get("properlyExcluded", 0)),
            "improperly_included": float(key.get("improperlyIncluded", 0)),
            "improperly_excluded": float(key.get("improperlyExcluded", 0)),
            "explanation": key.get("explanation", ""),
        })
    return rows


def _invoice_rows(draft: dict[str, Any]) -> list[dict[str, Any]]:
    payees = {d["paymentId"]: d["payee"] for d in draft.get("disbursements", [])}
    rows = []
    for spec in invoice_documents(draft):
        data = spec["data"]
        subtotal = sum(i["qty"] * i["unitPrice"] for i in data.get("items", []))
        rows.append({
            "invoice_number": data["invoiceNumber"],
            "payment_id": spec.get("linkToPaymentId"),
            "vendor": payees.get(spec.get("linkToPaymentId"), data.get("brandName")),
            "template_id": spec.get("templateId"),
            "invoice_date": data.get("invoiceDate"),
            "due_date": data.get("dueDate"),
            "service_date": spec.get("serviceDate"),
            "shipping_date": spec.get("shippingDate"),
            "line_items": len(data.get("items", [])),
            "subtotal": round(subtotal, 2),
            "tax_rate": float(data.get("taxRate", 0)),
            "shipping": float(data.get("shipping", 0)),
            "invoice_total": float(data.get("invoiceTotal", 0)),
            "is_recorded": bool(spec.get("isRecorded")),
        })
    return rows


def _aging_rows(data: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not data:
        return []
    return [
        {
            "vendor": r["vendor"],
            "invoice_number": r["invoiceNumber"],
            "invoice_date": r["invoiceDate"],
            "due_date": r["dueDate"],
            "amount": float(r["amount"]),
        }
        for r in data.get("rows", [])
    ]


def _listing_rows(draft: dict[str, Any]) -> list[dict[str, Any]]:
    corrected = _template_data(draft, "refdoc.disbursement-listing.v1", "(Corrected).pdf")
    data = corrected or _template_data(draft, "refdoc.disbursement-listing.v1", "(Initial).pdf")
    if not data:
        return []
    return [
        {
            "payee": r["payee"],
            "payment_date": r["paymentDate"],
            "amount": float(r["amount"]),
            "payment_type": r["paymentType"],
            "check_number": r.get("checkNumber") or None,
        }
        for r in data.get("rows", [])
    ]


def _statement_rows(draft: dict[str, Any]) -> list[dict[str, Any]]:
    data = _template_data(draft, "refdoc.bank-statement.v1", ".pdf")
    if not data:
        return []
    return [
        {
            "date": r["date"],
            "description": r["description"],
            "reference": r["reference"],
            "amount": float(r["amount"]),
            "check_number": r.get("checkNumber"),
        }
        for r in data.get("rows", [])
    ]


def _reference_rows(draft: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            "id": s["id"],
            "file_name": s["fileName"],
            "template_id": s["generationSpec"]["templateId"],
            "phase_id": s.get("phaseId"),
            "link_to_payment_id": s.get("linkToPaymentId"),
            "internal_only": bool(s.get("internalOnly", False)),
        }
        for s in draft.get("generationPlan", {}).get("referenceDocumentSpecs", [])
    ]


def draft_tables(draft: dict[str, Any]) -> dict[str, pl.DataFrame]:
    """Flatten a draft into named DataFrames; empty populations are omitted."""
    raw = {
        "disbursements": _disbursement_rows(draft),
        "invoices": _invoice_rows(draft),
        "ap_aging_initial": _aging_rows(_doc_data(draft, ["AP Aging Summary (Initial).pdf"])),
        "ap_aging_corrected": _aging_rows(_doc_data(draft, ["AP Aging Summary (Corrected).pdf"])),
        "disbursement_listing": _listing_rows(draft),
        "bank_statement": _statement_rows(draft),
        "reference_documents": _reference_rows(draft),
    }
    return {name: coerce_to_dataframe(rows) for name, rows in raw.items() if rows}


def _meta_rows(draft: dict[str, Any]) -> list[dict[str, str]]:
    plan = draft.get("generationPlan", {})
    scope = draft.get("workpaper", {}).get("layoutConfig", {}).get("selectionScope", {})
    values = {
        "case_name": draft.get("caseName"),
        "recipe_id": draft.get("recipeId"),
        "seed": plan.get("seed"),
        "year_end": plan.get("yearEnd"),
        "case_level": plan.get("caseLevel"),
        "threshold_amount": scope.get("thresholdAmount"),
        "performance_materiality": scope.get("performanceMateriality"),
        "scope_percent": scope.get("scopePercent"),
    }
    return [{"key": k, "value": "" if v is None else str(v)} for k, v in values.items()]


def export_draft(conn: duckdb.DuckDBPyConnection, draft: dict[str, Any]) -> dict[str, int]:
    """Write every draft table plus ``_case_meta``; returns row counts by table."""
    written: dict[str, int] = {}
    for name, df in draft_tables(draft).items():
        write_table(conn, df, name)
        written[name] = df.height
        log.debug("Wrote %s (%d rows)", name, df.height)
    write_table(conn, _meta_rows(draft), META_TABLE)
    log.info("Exported %d tables", len(written))
    return written
