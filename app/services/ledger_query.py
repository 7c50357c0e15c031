"""Read-only filtering, sorting, CSV export and summaries over the ledger."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Query, Session

from app.core.config import get_config
from app.core.enums import BalanceStatus, InvoiceStatus, LedgerSortKey, LedgerStatus, OrderType, SortDirection
from app.core.exceptions import InvalidInputError
from app.database.models import Invoice, LedgerEntry
from app.services.base_service import BaseService
from app.services.fee_calculator import quantize_money
from app.services.invoice_cycle import billing_period_for
from app.services.locks import SupplierLockRegistry

CSV_COLUMNS = (
    "date",
    "order_id",
    "order_type",
    "effective_value",
    "fee_percentage",
    "fee_amount",
    "status",
    "invoice_id",
    "notes",
)
CSV_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_PAGE_SIZE = 500


def _parse_enum(enum_cls, value, field: str):
    if value is None or value == "" or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown {field}: {value}") from exc


@dataclass(frozen=True)
class QuerySpec:
    """Immutable ledger filter. Date bounds are inclusive whole days."""

    supplier_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    order_type: OrderType | None = None
    status: LedgerStatus | None = None
    sort_key: LedgerSortKey = LedgerSortKey.COMPLETED_AT
    sort_direction: SortDirection = SortDirection.DESC
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidInputError("start_date must not be after end_date")
        if self.limit is not None and not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if self.offset < 0:
            raise InvalidInputError("offset cannot be negative")

    @classmethod
    def from_params(
        cls,
        supplier_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        order_type: str | None = None,
        status: str | None = None,
        sort_key: str | None = None,
        sort_direction: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> "QuerySpec":
        return cls(
            supplier_id=supplier_id,
            start_date=start_date,
            end_date=end_date,
            order_type=_parse_enum(OrderType, order_type, "order_type"),
            status=_parse_enum(LedgerStatus, status, "status"),
            sort_key=_parse_enum(LedgerSortKey, sort_key, "sort_key") or LedgerSortKey.COMPLETED_AT,
            sort_direction=_parse_enum(SortDirection, sort_direction, "sort_direction") or SortDirection.DESC,
            limit=limit,
            offset=offset or 0,
        )

    def unpaged(self) -> "QuerySpec":
        return replace(self, limit=None, offset=0)


@dataclass(frozen=True)
class BalanceSummary:
    outstanding_fees: Decimal
    pending_fees: Decimal
    status: BalanceStatus
    next_billing_date: date


@dataclass(frozen=True)
class MonthSummary:
    completed_orders: int
    total_effective_value: Decimal
    avg_fee_rate: Decimal
    fees_owed: Decimal


@dataclass(frozen=True)
class BillingSummary:
    current_balance: BalanceSummary
    month_summary: MonthSummary


_SORT_COLUMNS = {
    LedgerSortKey.COMPLETED_AT: LedgerEntry.completed_at,
    LedgerSortKey.EFFECTIVE_VALUE: LedgerEntry.effective_value,
    LedgerSortKey.FEE_AMOUNT: LedgerEntry.fee_amount,
}


def _money(value) -> Decimal:
    return quantize_money(Decimal(str(value or 0)))


def _csv_cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(CSV_DATE_FORMAT)
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return getattr(value, "value", value)


class LedgerQueryEngine(BaseService):
    """Stateless query surface; never writes to the session."""

    def __init__(self, db: Session | None = None, locks: SupplierLockRegistry | None = None) -> None:
        super().__init__(db=db, locks=locks)

    def _filtered(self, spec: QuerySpec) -> Query:
        rows = self.db.query(LedgerEntry)
        if spec.supplier_id is not None:
            rows = rows.filter(LedgerEntry.supplier_id == spec.supplier_id)
        if spec.start_date is not None:
            rows = rows.filter(LedgerEntry.completed_at >= datetime.combine(spec.start_date, datetime.min.time()))
        if spec.end_date is not None:
            day_after = datetime.combine(spec.end_date + timedelta(days=1), datetime.min.time())
            rows = rows.filter(LedgerEntry.completed_at < day_after)
        if spec.order_type is not None:
            rows = rows.filter(LedgerEntry.order_type == spec.order_type)
        if spec.status is not None:
            rows = rows.filter(LedgerEntry.status == spec.status)
        return rows

    def query(self, spec: QuerySpec) -> list[LedgerEntry]:
        column = _SORT_COLUMNS[spec.sort_key]
        ordering = column.asc() if spec.sort_direction == SortDirection.ASC else column.desc()
        rows = self._filtered(spec).order_by(ordering, LedgerEntry.id.asc())
        if spec.offset:
            rows = rows.offset(spec.offset)
        if spec.limit is not None:
            rows = rows.limit(spec.limit)
        return rows.all()

    def count(self, spec: QuerySpec) -> int:
        return self._filtered(spec).count()

    def export_csv(self, spec: QuerySpec) -> str:
        """Render every matching row, ignoring pagination, as CSV text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for entry in self.query(spec.unpaged()):
            writer.writerow(
                [
                    _csv_cell(entry.completed_at),
                    _csv_cell(entry.order_id),
                    _csv_cell(entry.order_type),
                    _csv_cell(entry.effective_value),
                    _csv_cell(entry.fee_percentage),
                    _csv_cell(entry.fee_amount),
                    _csv_cell(entry.status),
                    _csv_cell(entry.invoice_id),
                    _csv_cell(entry.notes),
                ]
            )
        return buffer.getvalue()

    def _fee_total(self, supplier_id: int, status: LedgerStatus) -> Decimal:
        amounts = (
            self.db.query(LedgerEntry.fee_amount)
            .filter(LedgerEntry.supplier_id == supplier_id, LedgerEntry.status == status)
            .all()
        )
        return _money(sum((Decimal(row.fee_amount) for row in amounts), Decimal("0")))

    def _balance_status(self, supplier_id: int, today: date, due_soon_days: int) -> BalanceStatus:
        unpaid = (
            self.db.query(Invoice)
            .filter(
                Invoice.supplier_id == supplier_id,
                Invoice.status.in_([InvoiceStatus.OPEN, InvoiceStatus.OVERDUE]),
            )
            .all()
        )
        if any(inv.status == InvoiceStatus.OVERDUE or inv.due_date < today for inv in unpaid):
            return BalanceStatus.OVERDUE
        horizon = today + timedelta(days=due_soon_days)
        if any(inv.due_date <= horizon for inv in unpaid):
            return BalanceStatus.DUE_SOON
        return BalanceStatus.CURRENT

    def summarize(self, supplier_id: int, today: date) -> BillingSummary:
        config = get_config()
        period = billing_period_for(today)
        month_entries = (
            self.db.query(LedgerEntry)
            .filter(
                LedgerEntry.supplier_id == supplier_id,
                LedgerEntry.completed_at >= period.starts_at,
                LedgerEntry.completed_at < period.ends_before,
            )
            .all()
        )
        if month_entries:
            rate_total = sum((Decimal(entry.fee_percentage) for entry in month_entries), Decimal("0"))
            avg_rate = _money(rate_total / len(month_entries))
        else:
            avg_rate = _money(config.DEFAULT_FEE_PERCENTAGE)

        return BillingSummary(
            current_balance=BalanceSummary(
                outstanding_fees=self._fee_total(supplier_id, LedgerStatus.INVOICED),
                pending_fees=self._fee_total(supplier_id, LedgerStatus.PENDING),
                status=self._balance_status(supplier_id, today, config.DUE_SOON_DAYS),
                next_billing_date=period.end + timedelta(days=1),
            ),
            month_summary=MonthSummary(
                completed_orders=len(month_entries),
                total_effective_value=_money(sum((Decimal(e.effective_value) for e in month_entries), Decimal("0"))),
                avg_fee_rate=avg_rate,
                fees_owed=_money(sum((Decimal(e.fee_amount) for e in month_entries), Decimal("0"))),
            ),
        )
