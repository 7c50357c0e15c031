from __future__ import annotations

import csv
import dataclasses
import io
from datetime import date, datetime
from decimal import Decimal

import pytest

from app.core.enums import BalanceStatus, InvoiceStatus, LedgerSortKey, SortDirection
from app.core.exceptions import InvalidInputError
from app.database.models import Invoice
from app.services.ledger_query import CSV_COLUMNS, LedgerQueryEngine, QuerySpec
from app.services.ledger_store import LedgerStore


@pytest.fixture
def engine(db_session, locks):
    return LedgerQueryEngine(db=db_session, locks=locks)


@pytest.fixture
def ledger(db_session, locks):
    return LedgerStore(db=db_session, locks=locks, default_fee_percentage=Decimal("5.00"))


def _invoice(db_session, supplier_id, *, status=InvoiceStatus.OPEN, due=date(2024, 2, 15), period=date(2024, 1, 1)):
    invoice = Invoice(
        invoice_number=f"INV-{supplier_id}-{period:%Y%m}",
        supplier_id=supplier_id,
        period_start=period,
        period_end=period.replace(day=28),
        total_fees=Decimal("0.00"),
        due_date=due,
        status=status,
    )
    db_session.add(invoice)
    db_session.commit()
    return invoice


def _mark_paid(ledger, entry, invoice):
    ledger.transition(entry.id, "pending", "invoiced", invoice_id=invoice.id)
    ledger.transition(entry.id, "invoiced", "paid")


def test_filter_paid_rentals_sorted_by_fee_desc(db_session, engine, ledger, make_supplier, record_order):
    supplier = make_supplier()
    invoice = _invoice(db_session, supplier.id)
    small = record_order(supplier.id, "200", datetime(2024, 1, 2), order_type="rental")
    large = record_order(supplier.id, "2000", datetime(2024, 1, 3), order_type="rental")
    material = record_order(supplier.id, "5000", datetime(2024, 1, 4), order_type="material")
    record_order(supplier.id, "9000", datetime(2024, 1, 5), order_type="rental")
    for entry in (small, large, material):
        _mark_paid(ledger, entry, invoice)

    spec = QuerySpec.from_params(
        supplier_id=supplier.id, order_type="rental", status="paid", sort_key="fee_amount", sort_direction="desc"
    )

    assert [entry.id for entry in engine.query(spec)] == [large.id, small.id]
    assert engine.count(spec) == 2


def test_paid_rentals_default_to_newest_first(db_session, engine, ledger, make_supplier, record_order):
    supplier = make_supplier()
    invoice = _invoice(db_session, supplier.id)
    oldest = record_order(supplier.id, "2000", datetime(2024, 1, 2), order_type="rental")
    newest = record_order(supplier.id, "200", datetime(2024, 1, 20), order_type="rental")
    middle = record_order(supplier.id, "900", datetime(2024, 1, 9), order_type="rental")
    material = record_order(supplier.id, "5000", datetime(2024, 1, 25), order_type="material")
    record_order(supplier.id, "9000", datetime(2024, 1, 30), order_type="rental")
    for entry in (oldest, newest, middle, material):
        _mark_paid(ledger, entry, invoice)

    spec = QuerySpec.from_params(supplier_id=supplier.id, order_type="rental", status="paid")

    assert spec.sort_key == LedgerSortKey.COMPLETED_AT
    assert spec.sort_direction == SortDirection.DESC
    assert [entry.id for entry in engine.query(spec)] == [newest.id, middle.id, oldest.id]


def test_equal_sort_keys_fall_back_to_id(engine, make_supplier, record_order):
    supplier = make_supplier()
    same_time = datetime(2024, 1, 10, 8, 0)
    first = record_order(supplier.id, "100", same_time)
    second = record_order(supplier.id, "100", same_time)
    third = record_order(supplier.id, "100", same_time)

    for direction in ("asc", "desc"):
        spec = QuerySpec.from_params(supplier_id=supplier.id, sort_direction=direction)
        assert [e.id for e in engine.query(spec)] == [first.id, second.id, third.id]


def test_date_filters_cover_whole_days(engine, make_supplier, record_order):
    supplier = make_supplier()
    record_order(supplier.id, "1", datetime(2023, 12, 31, 23, 59, 59))
    start_edge = record_order(supplier.id, "1", datetime(2024, 1, 1, 0, 0))
    end_edge = record_order(supplier.id, "1", datetime(2024, 1, 31, 23, 59, 59))
    record_order(supplier.id, "1", datetime(2024, 2, 1, 0, 0))

    spec = QuerySpec(
        supplier_id=supplier.id,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
        sort_direction=SortDirection.ASC,
    )

    assert [e.id for e in engine.query(spec)] == [start_edge.id, end_edge.id]


def test_pagination_and_total(engine, make_supplier, record_order):
    supplier = make_supplier()
    entries = [record_order(supplier.id, str(10 * n), datetime(2024, 1, n)) for n in range(1, 6)]

    spec = QuerySpec(
        supplier_id=supplier.id,
        sort_key=LedgerSortKey.COMPLETED_AT,
        sort_direction=SortDirection.ASC,
        limit=2,
        offset=2,
    )

    assert [e.id for e in engine.query(spec)] == [entries[2].id, entries[3].id]
    assert engine.count(spec) == 5


def test_query_scopes_to_supplier(engine, make_supplier, record_order):
    mine = make_supplier("Mine")
    theirs = make_supplier("Theirs")
    record_order(mine.id, "100", datetime(2024, 1, 2))
    record_order(theirs.id, "100", datetime(2024, 1, 2))

    assert {e.supplier_id for e in engine.query(QuerySpec(supplier_id=mine.id))} == {mine.id}
    assert engine.count(QuerySpec()) == 2


def test_csv_export_with_no_matches_has_only_header(engine, make_supplier):
    supplier = make_supplier()
    assert engine.export_csv(QuerySpec(supplier_id=supplier.id)) == ",".join(CSV_COLUMNS) + "\n"


def test_csv_export_round_trips_rows(engine, ledger, db_session, make_supplier, record_order):
    supplier = make_supplier()
    invoice = _invoice(db_session, supplier.id)
    invoiced = record_order(supplier.id, "1250", datetime(2024, 1, 5, 14, 30, 0), order_id="ord-1")
    ledger.transition(invoiced.id, "pending", "invoiced", invoice_id=invoice.id)
    record_order(
        supplier.id, "450", datetime(2024, 1, 6, 9, 0, 0), order_type="rental", notes='Excavator, "3 days"'
    )

    text = engine.export_csv(QuerySpec(supplier_id=supplier.id, sort_direction=SortDirection.ASC, limit=1))
    rows = list(csv.DictReader(io.StringIO(text)))

    assert len(rows) == 2
    assert rows[0] == {
        "date": "2024-01-05 14:30:00",
        "order_id": "ord-1",
        "order_type": "material",
        "effective_value": "1250.00",
        "fee_percentage": "5.00",
        "fee_amount": "62.50",
        "status": "invoiced",
        "invoice_id": str(invoice.id),
        "notes": "",
    }
    assert rows[1]["order_id"] == ""
    assert rows[1]["invoice_id"] == ""
    assert rows[1]["notes"] == 'Excavator, "3 days"'
    assert rows[1]["fee_amount"] == "22.50"


def test_query_spec_is_immutable_and_validated():
    spec = QuerySpec.from_params(status="all", order_type="")
    assert spec.status is None
    assert spec.order_type is None
    assert spec.sort_key == LedgerSortKey.COMPLETED_AT
    assert spec.sort_direction == SortDirection.DESC
    with pytest.raises(dataclasses.FrozenInstanceError):
        spec.limit = 10

    with pytest.raises(InvalidInputError):
        QuerySpec(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))
    with pytest.raises(InvalidInputError):
        QuerySpec(limit=0)
    with pytest.raises(InvalidInputError):
        QuerySpec(limit=501)
    with pytest.raises(InvalidInputError):
        QuerySpec(offset=-1)
    with pytest.raises(InvalidInputError):
        QuerySpec.from_params(status="refunded")


def test_summary_for_empty_supplier_uses_defaults(engine, make_supplier):
    supplier = make_supplier()
    summary = engine.summarize(supplier.id, date(2024, 1, 15))

    assert summary.current_balance.outstanding_fees == Decimal("0.00")
    assert summary.current_balance.pending_fees == Decimal("0.00")
    assert summary.current_balance.status == BalanceStatus.CURRENT
    assert summary.current_balance.next_billing_date == date(2024, 2, 1)
    assert summary.month_summary.completed_orders == 0
    assert summary.month_summary.fees_owed == Decimal("0.00")
    assert summary.month_summary.avg_fee_rate == Decimal("5.00")


def test_summary_totals_and_month_figures(db_session, engine, ledger, make_supplier, record_order):
    supplier = make_supplier()
    invoice = _invoice(db_session, supplier.id, due=date(2024, 3, 15), period=date(2024, 1, 1))
    january = record_order(supplier.id, "1000", datetime(2024, 1, 20))
    ledger.transition(january.id, "pending", "invoiced", invoice_id=invoice.id)
    record_order(supplier.id, "600", datetime(2024, 2, 3))
    record_order(supplier.id, "400", datetime(2024, 2, 10))

    summary = engine.summarize(supplier.id, date(2024, 2, 12))

    assert summary.current_balance.outstanding_fees == Decimal("50.00")
    assert summary.current_balance.pending_fees == Decimal("50.00")
    assert summary.current_balance.status == BalanceStatus.CURRENT
    assert summary.current_balance.next_billing_date == date(2024, 3, 1)
    assert summary.month_summary.completed_orders == 2
    assert summary.month_summary.total_effective_value == Decimal("1000.00")
    assert summary.month_summary.fees_owed == Decimal("50.00")


@pytest.mark.parametrize(
    ("status", "due", "today", "expected"),
    [
        (InvoiceStatus.OPEN, date(2024, 2, 15), date(2024, 2, 16), BalanceStatus.OVERDUE),
        (InvoiceStatus.OVERDUE, date(2024, 2, 15), date(2024, 2, 1), BalanceStatus.OVERDUE),
        (InvoiceStatus.OPEN, date(2024, 2, 15), date(2024, 2, 10), BalanceStatus.DUE_SOON),
        (InvoiceStatus.OPEN, date(2024, 2, 15), date(2024, 2, 1), BalanceStatus.CURRENT),
        (InvoiceStatus.PAID, date(2024, 2, 15), date(2024, 3, 1), BalanceStatus.CURRENT),
    ],
)
def test_balance_status(db_session, engine, make_supplier, status, due, today, expected):
    supplier = make_supplier()
    _invoice(db_session, supplier.id, status=status, due=due)
    assert engine.summarize(supplier.id, today).current_balance.status == expected
