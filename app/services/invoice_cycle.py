"""Monthly batching of pending ledger entries into supplier invoices."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_config
from app.core.enums import InvoiceStatus, LedgerStatus
from app.core.exceptions import InvalidInputError, LockTimeoutError, NoEligibleEntriesError
from app.core.logging import LogContext, build_log_event
from app.database.models import Invoice, LedgerEntry, utcnow_naive
from app.orchestration.state_machine import INVOICE_STATE_MACHINE
from app.services.base_service import BaseService
from app.services.ledger_store import LedgerStore
from app.services.locks import SupplierLockRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BillingPeriod:
    """A calendar month; both bounds inclusive."""

    start: date
    end: date

    @property
    def label(self) -> str:
        return f"{self.start:%Y-%m}"

    @property
    def starts_at(self) -> datetime:
        return datetime(self.start.year, self.start.month, 1)

    @property
    def ends_before(self) -> datetime:
        following = self.end + timedelta(days=1)
        return datetime(following.year, following.month, following.day)

    def contains(self, moment: datetime) -> bool:
        return self.starts_at <= moment < self.ends_before

    @classmethod
    def parse(cls, label: str) -> "BillingPeriod":
        try:
            parsed = datetime.strptime(label.strip(), "%Y-%m")
        except (AttributeError, ValueError) as exc:
            raise InvalidInputError(f"Billing period must be YYYY-MM, got {label!r}") from exc
        return billing_period_for(parsed.date())


def billing_period_for(day: date | datetime) -> BillingPeriod:
    if isinstance(day, datetime):
        day = day.date()
    start = day.replace(day=1)
    if start.month == 12:
        following = start.replace(year=start.year + 1, month=1)
    else:
        following = start.replace(month=start.month + 1)
    return BillingPeriod(start=start, end=following - timedelta(days=1))


def previous_period(day: date | datetime) -> BillingPeriod:
    current = billing_period_for(day)
    return billing_period_for(current.start - timedelta(days=1))


def invoice_number_for(supplier_id: int, period: BillingPeriod) -> str:
    return f"INV-{supplier_id}-{period.start:%Y%m}"


@dataclass
class BatchResult:
    supplier_id: int
    invoice_id: int
    invoice_number: str
    created: bool
    entry_ids: list[int] = field(default_factory=list)
    skipped_entry_ids: list[int] = field(default_factory=list)
    total_fees: Decimal = Decimal("0.00")


@dataclass
class CycleReport:
    period: str
    invoiced: list[BatchResult] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        invoiced = []
        for result in self.invoiced:
            row = asdict(result)
            row["total_fees"] = str(result.total_fees)
            invoiced.append(row)
        return {
            "period": self.period,
            "invoiced": invoiced,
            "skipped": list(self.skipped),
            "failed": list(self.failed),
        }


@dataclass
class OverdueReport:
    marked: list[int] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)


class InvoiceCycle(BaseService):
    """Idempotent monthly invoice run."""

    def __init__(
        self,
        db: Session | None = None,
        locks: SupplierLockRegistry | None = None,
        ledger: LedgerStore | None = None,
        *,
        due_days: int | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(db=db, locks=locks)
        config = get_config()
        self.ledger = ledger or LedgerStore(db=self.db, locks=self.locks)
        self.due_days = config.INVOICE_DUE_DAYS if due_days is None else due_days
        self.max_retries = config.CYCLE_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = config.CYCLE_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self._sleep = sleep

    def find_invoice(self, supplier_id: int, period: BillingPeriod) -> Invoice | None:
        return (
            self.db.query(Invoice)
            .filter(Invoice.supplier_id == supplier_id, Invoice.period_start == period.start)
            .first()
        )

    def get_invoice(self, invoice_id: int) -> Invoice:
        return self.ledger.get_invoice(invoice_id)

    def list_invoices(self, supplier_id: int) -> list[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.supplier_id == supplier_id)
            .order_by(Invoice.period_start.desc(), Invoice.id.desc())
            .all()
        )

    def line_items(self, invoice_id: int) -> list[LedgerEntry]:
        invoice = self.get_invoice(invoice_id)
        return self.ledger.entries_for_invoice(invoice.id)

    def _pending_entries(self, supplier_id: int, period: BillingPeriod) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.supplier_id == supplier_id,
                LedgerEntry.status == LedgerStatus.PENDING,
                LedgerEntry.completed_at >= period.starts_at,
                LedgerEntry.completed_at < period.ends_before,
            )
            .order_by(LedgerEntry.completed_at.asc(), LedgerEntry.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def suppliers_with_pending(self, period: BillingPeriod) -> list[int]:
        stmt = (
            select(LedgerEntry.supplier_id)
            .where(
                LedgerEntry.status == LedgerStatus.PENDING,
                LedgerEntry.completed_at >= period.starts_at,
                LedgerEntry.completed_at < period.ends_before,
            )
            .distinct()
            .order_by(LedgerEntry.supplier_id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def run_for_supplier(self, supplier_id: int, period: BillingPeriod, *, actor: str = "system") -> BatchResult:
        """Batch one supplier's pending entries for a period into its invoice.

        Raises NoEligibleEntriesError when nothing is pending, which also makes
        a rerun of an already invoiced period a no-op.
        """
        with self.supplier_mutation(supplier_id):
            entries = self._pending_entries(supplier_id, period)
            if not entries:
                raise NoEligibleEntriesError(
                    f"Supplier {supplier_id} has no pending entries for {period.label}"
                )

            invoice = self.find_invoice(supplier_id, period)
            if invoice is not None and invoice.status != InvoiceStatus.OPEN:
                logger.info(
                    "invoice_cycle.period_finalized",
                    extra=build_log_event(
                        "invoice_cycle.period_finalized",
                        LogContext(supplier_id=supplier_id, invoice_id=invoice.id, actor=actor),
                        period=period.label,
                        status=invoice.status.value,
                        skipped_entry_ids=[entry.id for entry in entries],
                    ),
                )
                return BatchResult(
                    supplier_id=supplier_id,
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    created=False,
                    skipped_entry_ids=[entry.id for entry in entries],
                    total_fees=invoice.total_fees,
                )

            created = invoice is None
            if created:
                now = utcnow_naive()
                invoice = Invoice(
                    invoice_number=invoice_number_for(supplier_id, period),
                    supplier_id=supplier_id,
                    period_start=period.start,
                    period_end=period.end,
                    total_fees=Decimal("0.00"),
                    due_date=period.end + timedelta(days=self.due_days),
                    status=InvoiceStatus.OPEN,
                    issued_at=now,
                    updated_at=now,
                )
                self.db.add(invoice)
                self.db.flush()

            for entry in entries:
                self.ledger.apply_transition(
                    entry,
                    LedgerStatus.PENDING,
                    LedgerStatus.INVOICED,
                    actor=actor,
                    reason=f"batched into {invoice.invoice_number}",
                    invoice_id=invoice.id,
                )
            total = self.ledger.reconcile_invoice_total(invoice.id)

        logger.info(
            "invoice_cycle.supplier_invoiced",
            extra=build_log_event(
                "invoice_cycle.supplier_invoiced",
                LogContext(supplier_id=supplier_id, invoice_id=invoice.id, actor=actor),
                period=period.label,
                invoice_created=created,
                entry_count=len(entries),
                total_fees=str(total),
            ),
        )
        return BatchResult(
            supplier_id=supplier_id,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            created=created,
            entry_ids=[entry.id for entry in entries],
            total_fees=total,
        )

    def run_cycle(self, period: BillingPeriod, *, actor: str = "system") -> CycleReport:
        """Invoice every supplier with pending entries in ``period``.

        Suppliers are independent: one supplier's failure never stops the run.
        """
        trace_id = uuid.uuid4().hex
        report = CycleReport(period=period.label)
        supplier_ids = self.suppliers_with_pending(period)
        logger.info(
            "invoice_cycle.start",
            extra=build_log_event(
                "invoice_cycle.start",
                LogContext(actor=actor, trace_id=trace_id),
                period=period.label,
                supplier_count=len(supplier_ids),
            ),
        )

        for supplier_id in supplier_ids:
            context = LogContext(supplier_id=supplier_id, actor=actor, trace_id=trace_id)
            for attempt in range(self.max_retries + 1):
                try:
                    result = self.run_for_supplier(supplier_id, period, actor=actor)
                except NoEligibleEntriesError as exc:
                    logger.info(
                        "invoice_cycle.no_eligible_entries",
                        extra=build_log_event("invoice_cycle.no_eligible_entries", context, period=period.label),
                    )
                    report.skipped.append({"supplier_id": supplier_id, "reason": str(exc)})
                    break
                except LockTimeoutError as exc:
                    if attempt < self.max_retries:
                        delay = max(0.0, self.backoff_seconds) * (2**attempt)
                        logger.warning(
                            "invoice_cycle.lock_retry",
                            extra=build_log_event(
                                "invoice_cycle.lock_retry", context, attempt=attempt + 1, delay_seconds=delay
                            ),
                        )
                        if delay > 0:
                            self._sleep(delay)
                        continue
                    logger.error(
                        "invoice_cycle.supplier_failed",
                        extra=build_log_event("invoice_cycle.supplier_failed", context, error=str(exc)),
                    )
                    report.failed.append(
                        {"supplier_id": supplier_id, "error": exc.__class__.__name__, "message": str(exc)}
                    )
                    break
                except Exception as exc:
                    logger.exception(
                        "invoice_cycle.supplier_failed",
                        extra=build_log_event("invoice_cycle.supplier_failed", context, error=str(exc)),
                    )
                    report.failed.append(
                        {"supplier_id": supplier_id, "error": exc.__class__.__name__, "message": str(exc)}
                    )
                    break
                else:
                    if result.entry_ids:
                        report.invoiced.append(result)
                    else:
                        report.skipped.append(
                            {
                                "supplier_id": supplier_id,
                                "reason": f"invoice {result.invoice_number} is finalised",
                                "entry_ids": result.skipped_entry_ids,
                            }
                        )
                    break

        logger.info(
            "invoice_cycle.finish",
            extra=build_log_event(
                "invoice_cycle.finish",
                LogContext(actor=actor, trace_id=trace_id),
                period=period.label,
                invoiced=len(report.invoiced),
                skipped=len(report.skipped),
                failed=len(report.failed),
            ),
        )
        return report

    def _with_lock_retries(self, work: Callable[[], Any], context: LogContext, event: str) -> Any:
        """Call ``work``, retrying lock timeouts with exponential backoff."""
        for attempt in range(self.max_retries + 1):
            try:
                return work()
            except LockTimeoutError:
                if attempt >= self.max_retries:
                    raise
                delay = max(0.0, self.backoff_seconds) * (2**attempt)
                logger.warning(event, extra=build_log_event(event, context, attempt=attempt + 1, delay_seconds=delay))
                if delay > 0:
                    self._sleep(delay)
        return None

    def _mark_invoice_overdue(self, invoice: Invoice) -> bool:
        with self.supplier_mutation(invoice.supplier_id):
            self.db.refresh(invoice)
            if invoice.status != InvoiceStatus.OPEN:
                return False
            INVOICE_STATE_MACHINE.assert_transition(invoice.status, InvoiceStatus.OVERDUE)
            invoice.status = InvoiceStatus.OVERDUE
            invoice.updated_at = utcnow_naive()
        return True

    def mark_overdue(self, today: date, *, actor: str = "system") -> OverdueReport:
        """Move open invoices whose due date has passed to overdue.

        A failing invoice is reported and the remaining invoices are still marked.
        """
        candidates = (
            self.db.query(Invoice)
            .filter(Invoice.status == InvoiceStatus.OPEN, Invoice.due_date < today)
            .order_by(Invoice.id.asc())
            .all()
        )
        report = OverdueReport()
        for invoice in candidates:
            invoice_id, supplier_id = invoice.id, invoice.supplier_id
            context = LogContext(supplier_id=supplier_id, invoice_id=invoice_id, actor=actor)
            try:
                marked = self._with_lock_retries(
                    lambda: self._mark_invoice_overdue(invoice), context, "invoice.overdue_retry"
                )
            except Exception as exc:
                logger.error(
                    "invoice.overdue_failed",
                    extra=build_log_event("invoice.overdue_failed", context, error=str(exc)),
                    exc_info=not isinstance(exc, LockTimeoutError),
                )
                report.failed.append(
                    {
                        "invoice_id": invoice_id,
                        "supplier_id": supplier_id,
                        "error": exc.__class__.__name__,
                        "message": str(exc),
                    }
                )
                continue
            if not marked:
                continue
            report.marked.append(invoice_id)
            logger.info(
                "invoice.overdue",
                extra=build_log_event("invoice.overdue", context, due_date=invoice.due_date.isoformat()),
            )
        return report

    def daily_tick(self, today: date, *, actor: str = "scheduler") -> dict[str, Any]:
        cycle = None
        if today.day == 1:
            cycle = self.run_cycle(previous_period(today), actor=actor).to_dict()
        overdue = self.mark_overdue(today, actor=actor)
        return {
            "date": today.isoformat(),
            "cycle": cycle,
            "overdue_invoice_ids": overdue.marked,
            "overdue_failed": overdue.failed,
        }
