from __future__ import annotations

import app.database.models  # noqa: F401
from app.database.db import Base


def test_model_metadata_contains_billing_tables():
    expected = {
        "suppliers",
        "billing_ledger",
        "billing_ledger_status_audit",
        "invoices",
        "disputes",
        "dispute_notes",
    }
    assert expected == set(Base.metadata.tables.keys())


def test_ledger_amount_columns_are_fixed_point():
    ledger = Base.metadata.tables["billing_ledger"]
    for name in ("effective_value", "fee_amount"):
        column_type = ledger.c[name].type
        assert (column_type.precision, column_type.scale) == (12, 2)
    assert ledger.c["fee_percentage"].type.scale == 2
    assert ledger.c["version"].nullable is False


def test_one_invoice_per_supplier_period():
    invoices = Base.metadata.tables["invoices"]
    unique_sets = {
        tuple(column.name for column in constraint.columns)
        for constraint in invoices.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    }
    assert ("supplier_id", "period_start") in unique_sets
