"""Authoritative store of per-order fee obligations and their status transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.config import get_config
from app.core.enums import InvoiceStatus, LedgerStatus, OrderType
from app.core.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    StaleStateError,
)
from app.core.logging import LogContext, build_log_event
from app.database.models import Invoice, LedgerEntry, LedgerStatusAudit, Supplier, utcnow_naive
from app.orchestration.state_machine import INVOICE_STATE_MACHINE, LEDGER_STATE_MACHINE
from app.services.base_service import BaseService
from app.services.fee_calculator import (
    calculate_fee,
    quantize_money,
    resolve_fee_percentage,
    validate_effective_value,
)
from app.services.locks import SupplierLockRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderCompletion:
    """Order-completion event; the only way a ledger entry comes into existence."""

    supplier_id: int
    order_type: OrderType | str
    effective_value: Decimal | int | float | str
    completed_at: datetime
    order_id: str | None = None
    notes: str | None = None


def parse_ledger_status(value: LedgerStatus | str) -> LedgerStatus:
    try:
        return LedgerStatus(value)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown ledger status: {value}") from exc


def parse_order_type(value: OrderType | str) -> OrderType:
    try:
        return OrderType(value)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown order type: {value}") from exc


def to_naive_utc(value: datetime) -> datetime:
    if not isinstance(value, datetime):
        raise InvalidInputError("completed_at must be a datetime")
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class LedgerStore(BaseService):
    """Append-only ledger with optimistic, lock-serialized status transitions."""

    def __init__(
        self,
        db: Session | None = None,
        locks: SupplierLockRegistry | None = None,
        default_fee_percentage: Decimal | None = None,
    ) -> None:
        super().__init__(db=db, locks=locks)
        self.default_fee_percentage = (
            default_fee_percentage if default_fee_percentage is not None else get_config().DEFAULT_FEE_PERCENTAGE
        )

    # reads

    def get_entry(self, entry_id: int) -> LedgerEntry:
        entry = self.db.get(LedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry {entry_id} not found")
        return entry

    def get_by_order(self, order_id: str) -> LedgerEntry | None:
        return self.db.execute(select(LedgerEntry).where(LedgerEntry.order_id == order_id)).scalars().first()

    def list_for_supplier(
        self,
        supplier_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[LedgerEntry]:
        stmt = select(LedgerEntry).where(LedgerEntry.supplier_id == supplier_id)
        if start is not None:
            stmt = stmt.where(LedgerEntry.completed_at >= start)
        if end is not None:
            stmt = stmt.where(LedgerEntry.completed_at <= end)
        stmt = stmt.order_by(LedgerEntry.completed_at.asc(), LedgerEntry.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def entries_for_invoice(self, invoice_id: int) -> list[LedgerEntry]:
        return list(
            self.db.execute(
                select(LedgerEntry)
                .where(LedgerEntry.invoice_id == invoice_id)
                .order_by(LedgerEntry.completed_at.asc(), LedgerEntry.id.asc())
            )
            .scalars()
            .all()
        )

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    def _get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return supplier

    # writes

    def create_entry(self, completion: OrderCompletion, actor: str = "system") -> LedgerEntry:
        """Record a completed order as a pending fee obligation.

        Replaying a completion for an order that already has an entry returns
        the existing entry unchanged.
        """
        supplier = self._get_supplier(completion.supplier_id)
        order_type = parse_order_type(completion.order_type)
        effective_value = validate_effective_value(completion.effective_value)
        completed_at = to_naive_utc(completion.completed_at)
        order_id = (completion.order_id or "").strip() or None

        with self.supplier_mutation(supplier.id):
            if order_id is not None:
                existing = self.get_by_order(order_id)
                if existing is not None:
                    if existing.supplier_id != supplier.id:
                        raise InvalidInputError(f"Order {order_id} is already billed to another supplier")
                    logger.info(
                        "ledger.entry.duplicate_completion",
                        extra=build_log_event(
                            "ledger.entry.duplicate_completion",
                            LogContext(supplier_id=supplier.id, entry_id=existing.id, actor=actor),
                            order_id=order_id,
                        ),
                    )
                    return existing

            rate = resolve_fee_percentage(supplier.fee_percentage, self.default_fee_percentage)
            now = utcnow_naive()
            entry = LedgerEntry(
                supplier_id=supplier.id,
                order_id=order_id,
                order_type=order_type,
                effective_value=effective_value,
                fee_percentage=rate,
                fee_amount=calculate_fee(effective_value, rate),
                status=LedgerStatus.PENDING,
                completed_at=completed_at,
                notes=completion.notes,
                version=1,
                created_at=now,
                updated_at=now,
            )
            self.db.add(entry)
            self.db.flush()
            self._audit(entry.id, None, LedgerStatus.PENDING, actor=actor, reason="order completed")

        logger.info(
            "ledger.entry.created",
            extra=build_log_event(
                "ledger.entry.created",
                LogContext(supplier_id=supplier.id, entry_id=entry.id, actor=actor),
                fee_amount=str(entry.fee_amount),
            ),
        )
        return entry

    def transition(
        self,
        entry_id: int,
        from_status: LedgerStatus | str,
        to_status: LedgerStatus | str,
        *,
        actor: str = "system",
        reason: str | None = None,
        invoice_id: int | None = None,
    ) -> LedgerEntry:
        """Move an entry between statuses if it is still in ``from_status``."""
        source = parse_ledger_status(from_status)
        target = parse_ledger_status(to_status)
        LEDGER_STATE_MACHINE.assert_transition(source, target)

        entry = self.get_entry(entry_id)
        with self.supplier_mutation(entry.supplier_id):
            self.apply_transition(entry, source, target, actor=actor, reason=reason, invoice_id=invoice_id)
        return entry

    def apply_transition(
        self,
        entry: LedgerEntry,
        source: LedgerStatus,
        target: LedgerStatus,
        *,
        actor: str,
        reason: str | None = None,
        invoice_id: int | None = None,
    ) -> None:
        """Transition body; callers must already hold the supplier's write unit."""
        LEDGER_STATE_MACHINE.assert_transition(source, target)
        self.db.refresh(entry)
        if entry.status != source:
            raise StaleStateError(
                f"Ledger entry {entry.id} is {entry.status.value}, expected {source.value}; re-read and retry"
            )

        now = utcnow_naive()
        values: dict = {"status": target, "version": entry.version + 1, "updated_at": now}
        if source == LedgerStatus.PENDING and target == LedgerStatus.INVOICED:
            if invoice_id is None:
                raise InvalidInputError("invoice_id is required to invoice an entry")
            values["invoice_id"] = invoice_id
            values["invoiced_at"] = now
        if target == LedgerStatus.DISPUTED:
            values["status_before_dispute"] = source
        if source == LedgerStatus.DISPUTED:
            if target != entry.status_before_dispute:
                prior = entry.status_before_dispute.value if entry.status_before_dispute else "unknown"
                raise InvalidTransitionError(
                    f"Disputed entry {entry.id} can only revert to its prior status ({prior})"
                )
            values["status_before_dispute"] = None
        if source == LedgerStatus.INVOICED and target == LedgerStatus.PAID:
            values["paid_at"] = now

        result = self.db.execute(
            update(LedgerEntry)
            .where(
                LedgerEntry.id == entry.id,
                LedgerEntry.status == source,
                LedgerEntry.version == entry.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleStateError(f"Ledger entry {entry.id} changed concurrently; re-read and retry")

        self.db.refresh(entry)
        self._audit(entry.id, source, target, actor=actor, reason=reason)
        if entry.invoice_id is not None:
            self.reconcile_invoice_total(entry.invoice_id)

        logger.info(
            "ledger.entry.transitioned",
            extra=build_log_event(
                "ledger.entry.transitioned",
                LogContext(supplier_id=entry.supplier_id, entry_id=entry.id, invoice_id=entry.invoice_id, actor=actor),
                old_status=source.value,
                new_status=target.value,
            ),
        )

    def adjust_effective_value(
        self,
        entry_id: int,
        new_value: Decimal | int | float | str,
        *,
        actor: str = "system",
        reason: str | None = None,
    ) -> LedgerEntry:
        """Re-price an entry at its frozen rate after a post-completion adjustment."""
        value = validate_effective_value(new_value)
        entry = self.get_entry(entry_id)
        with self.supplier_mutation(entry.supplier_id):
            self.apply_adjustment(entry, value, actor=actor, reason=reason)
        return entry

    def apply_adjustment(self, entry: LedgerEntry, value: Decimal, *, actor: str, reason: str | None = None) -> None:
        self.db.refresh(entry)
        repriceable = entry.status == LedgerStatus.PENDING or (
            entry.status == LedgerStatus.DISPUTED and entry.status_before_dispute != LedgerStatus.PAID
        )
        if not repriceable:
            raise InvalidTransitionError(
                f"Ledger entry {entry.id} cannot be re-priced while {entry.status.value}"
                + (" (paid before dispute)" if entry.status == LedgerStatus.DISPUTED else "")
            )

        old_value = entry.effective_value
        fee_amount = calculate_fee(value, entry.fee_percentage)
        note = f"effective_value adjusted {old_value} -> {value}"
        if reason:
            note = f"{note}: {reason}"
        notes = f"{entry.notes}\n{note}" if entry.notes else note

        result = self.db.execute(
            update(LedgerEntry)
            .where(LedgerEntry.id == entry.id, LedgerEntry.version == entry.version)
            .values(
                effective_value=value,
                fee_amount=fee_amount,
                notes=notes,
                version=entry.version + 1,
                updated_at=utcnow_naive(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleStateError(f"Ledger entry {entry.id} changed concurrently; re-read and retry")

        self.db.refresh(entry)
        self._audit(entry.id, entry.status, entry.status, actor=actor, reason=note)
        if entry.invoice_id is not None:
            self.reconcile_invoice_total(entry.invoice_id)

        logger.info(
            "ledger.entry.repriced",
            extra=build_log_event(
                "ledger.entry.repriced",
                LogContext(supplier_id=entry.supplier_id, entry_id=entry.id, invoice_id=entry.invoice_id, actor=actor),
                old_value=str(old_value),
                new_value=str(value),
                fee_amount=str(fee_amount),
            ),
        )

    def confirm_invoice_payment(
        self,
        invoice_id: int,
        payment_reference: str | None = None,
        *,
        actor: str = "system",
    ) -> Invoice:
        """Apply an external payment confirmation to an invoice and its entries."""
        invoice = self.get_invoice(invoice_id)
        with self.supplier_mutation(invoice.supplier_id):
            self.db.refresh(invoice)
            INVOICE_STATE_MACHINE.assert_transition(invoice.status, InvoiceStatus.PAID)
            entries = self.entries_for_invoice(invoice.id)
            disputed = [entry.id for entry in entries if entry.status == LedgerStatus.DISPUTED]
            if disputed:
                raise InvalidTransitionError(
                    f"Invoice {invoice.id} has disputed entries {disputed}; resolve them before confirming payment"
                )
            for entry in entries:
                if entry.status == LedgerStatus.INVOICED:
                    self.apply_transition(
                        entry,
                        LedgerStatus.INVOICED,
                        LedgerStatus.PAID,
                        actor=actor,
                        reason=f"payment confirmed {payment_reference or ''}".strip(),
                    )
            now = utcnow_naive()
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = now
            invoice.payment_reference = payment_reference
            invoice.updated_at = now
            self.reconcile_invoice_total(invoice.id)

        logger.info(
            "invoice.paid",
            extra=build_log_event(
                "invoice.paid",
                LogContext(supplier_id=invoice.supplier_id, invoice_id=invoice.id, actor=actor),
                total_fees=str(invoice.total_fees),
            ),
        )
        return invoice

    # invariants

    def invoice_fee_sum(self, invoice_id: int) -> Decimal:
        self.db.flush()
        amounts = self.db.execute(
            select(LedgerEntry.fee_amount).where(LedgerEntry.invoice_id == invoice_id)
        ).scalars().all()
        return quantize_money(sum((Decimal(amount) for amount in amounts), Decimal("0")))

    def reconcile_invoice_total(self, invoice_id: int) -> Decimal:
        """Recompute an invoice's total from its entries; the entries are the source of truth."""
        total = self.invoice_fee_sum(invoice_id)
        invoice = self.get_invoice(invoice_id)
        if invoice.total_fees is None or Decimal(invoice.total_fees) != total:
            invoice.total_fees = total
            invoice.updated_at = utcnow_naive()
            self.db.flush()
        return total

    def invoice_total_matches(self, invoice_id: int) -> bool:
        invoice = self.get_invoice(invoice_id)
        return Decimal(invoice.total_fees) == self.invoice_fee_sum(invoice_id)

    def _audit(
        self,
        entry_id: int,
        old_status: LedgerStatus | None,
        new_status: LedgerStatus,
        *,
        actor: str,
        reason: str | None,
    ) -> None:
        self.db.add(
            LedgerStatusAudit(
                entry_id=entry_id,
                old_status=old_status.value if old_status else None,
                new_status=new_status.value,
                actor=actor,
                reason=reason,
            )
        )
