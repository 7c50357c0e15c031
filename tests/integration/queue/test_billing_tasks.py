from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from app.core.enums import InvoiceStatus
from app.core.exceptions import InvalidInputError
from app.database.models import Invoice, Supplier
from app.services.ledger_store import LedgerStore, OrderCompletion
from app.tasks.billing_tasks import daily_tick_task, mark_overdue_task, run_invoice_cycle_task
from app.tasks.celery_app import celery_app


def _seed_january(session_factory) -> int:
    session = session_factory()
    try:
        supplier = Supplier(name="Tbilisi Concrete Works", active=True)
        session.add(supplier)
        session.commit()
        store = LedgerStore(db=session, default_fee_percentage=Decimal("5.00"))
        for index, value in enumerate(("1000", "600", "400"), start=1):
            store.create_entry(
                OrderCompletion(
                    supplier_id=supplier.id,
                    order_id=f"ord-{index}",
                    order_type="material",
                    effective_value=value,
                    completed_at=datetime(2024, 1, index * 5),
                )
            )
        return supplier.id
    finally:
        session.close()


def _invoice_status(session_factory, supplier_id: int) -> InvoiceStatus:
    session = session_factory()
    try:
        return session.query(Invoice).filter(Invoice.supplier_id == supplier_id).one().status
    finally:
        session.close()


def test_daily_tick_is_scheduled():
    schedule = celery_app.conf.beat_schedule["billing-daily-tick"]
    assert schedule["task"] == "billing.daily_tick"
    assert "billing.daily_tick" in celery_app.tasks


def test_daily_tick_on_first_of_month_invoices_previous_month(patched_sessions):
    supplier_id = _seed_january(patched_sessions)

    result = daily_tick_task("2024-02-01")

    assert result["date"] == "2024-02-01"
    assert result["cycle"]["period"] == "2024-01"
    assert result["cycle"]["invoiced"][0]["supplier_id"] == supplier_id
    assert result["cycle"]["invoiced"][0]["total_fees"] == "100.00"
    assert result["overdue_invoice_ids"] == []


def test_daily_tick_mid_month_only_marks_overdue(patched_sessions):
    supplier_id = _seed_january(patched_sessions)
    run_invoice_cycle_task("2024-01")

    quiet = daily_tick_task("2024-02-15")
    assert quiet["cycle"] is None
    assert quiet["overdue_invoice_ids"] == []

    late = daily_tick_task("2024-02-16")
    assert len(late["overdue_invoice_ids"]) == 1
    assert _invoice_status(patched_sessions, supplier_id) == InvoiceStatus.OVERDUE


def test_run_invoice_cycle_task_is_idempotent(patched_sessions):
    _seed_january(patched_sessions)

    first = run_invoice_cycle_task("2024-01")
    second = run_invoice_cycle_task("2024-01")

    assert len(first["invoiced"]) == 1
    assert second["invoiced"] == []
    assert second["failed"] == []


def test_mark_overdue_task_reports_ids(patched_sessions):
    supplier_id = _seed_january(patched_sessions)
    run_invoice_cycle_task("2024-01")

    result = mark_overdue_task("2024-03-01")

    assert result["date"] == "2024-03-01"
    assert len(result["overdue_invoice_ids"]) == 1
    assert _invoice_status(patched_sessions, supplier_id) == InvoiceStatus.OVERDUE


def test_bad_task_arguments_raise(patched_sessions):
    with pytest.raises(InvalidInputError):
        run_invoice_cycle_task("2024-13")
    with pytest.raises(ValueError):
        mark_overdue_task("yesterday")
