from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.enums import (
    BuyerType,
    DisputeResolution,
    DisputeStatus,
    InvoiceStatus,
    IssueCategory,
    LedgerStatus,
    OrderType,
)

from .db import Base


def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_column(enum_cls, name: str, **kwargs) -> Column:
    return Column(
        SQLEnum(
            enum_cls,
            name=name,
            native_enum=False,
            length=32,
            values_callable=lambda members: [member.value for member in members],
            validate_strings=True,
        ),
        **kwargs,
    )


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = (
        CheckConstraint(
            "fee_percentage IS NULL OR (fee_percentage >= 0 AND fee_percentage <= 100)",
            name="ck_suppliers_fee_percentage",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    # Null means the configured default rate applies.
    fee_percentage = Column(Numeric(5, 2))
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow_naive, nullable=False)

    entries = relationship("LedgerEntry", back_populates="supplier")
    invoices = relationship("Invoice", back_populates="supplier")


class LedgerEntry(Base):
    __tablename__ = "billing_ledger"
    __table_args__ = (
        Index("idx_billing_ledger_supplier_status", "supplier_id", "status"),
        Index("idx_billing_ledger_completed_at", "completed_at"),
        Index("idx_billing_ledger_invoice", "invoice_id"),
        UniqueConstraint("order_id", name="uq_billing_ledger_order_id"),
        CheckConstraint(
            "effective_value >= 0 AND fee_percentage >= 0 AND fee_percentage <= 100 AND fee_amount >= 0",
            name="ck_billing_ledger_amounts",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    order_id = Column(String(64))
    order_type = _enum_column(OrderType, "ledger_order_type", nullable=False)
    effective_value = Column(Numeric(12, 2), nullable=False)
    fee_percentage = Column(Numeric(5, 2), nullable=False)
    fee_amount = Column(Numeric(12, 2), nullable=False)
    status = _enum_column(LedgerStatus, "ledger_status", nullable=False, default=LedgerStatus.PENDING)
    status_before_dispute = _enum_column(LedgerStatus, "ledger_prior_status", nullable=True)
    completed_at = Column(DateTime, nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"))
    invoiced_at = Column(DateTime)
    paid_at = Column(DateTime)
    notes = Column(Text)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow_naive, nullable=False)
    updated_at = Column(DateTime, default=utcnow_naive, nullable=False)

    supplier = relationship("Supplier", back_populates="entries")
    invoice = relationship("Invoice", back_populates="entries")


class LedgerStatusAudit(Base):
    __tablename__ = "billing_ledger_status_audit"
    __table_args__ = (Index("idx_ledger_audit_entry", "entry_id"),)

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(Integer, ForeignKey("billing_ledger.id"), nullable=False)
    old_status = Column(String(32))
    new_status = Column(String(32), nullable=False)
    actor = Column(String, nullable=False, default="system")
    reason = Column(Text)
    created_at = Column(DateTime, default=utcnow_naive, nullable=False)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_due_date", "due_date"),
        UniqueConstraint("supplier_id", "period_start", name="uq_invoices_supplier_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    total_fees = Column(Numeric(12, 2), nullable=False, default=0)
    due_date = Column(Date, nullable=False)
    status = _enum_column(InvoiceStatus, "invoice_status", nullable=False, default=InvoiceStatus.OPEN)
    issued_at = Column(DateTime, default=utcnow_naive, nullable=False)
    paid_at = Column(DateTime)
    payment_reference = Column(String(255))
    updated_at = Column(DateTime, default=utcnow_naive, nullable=False)

    supplier = relationship("Supplier", back_populates="invoices")
    entries = relationship("LedgerEntry", back_populates="invoice")


class Dispute(Base):
    __tablename__ = "disputes"
    __table_args__ = (
        Index("idx_disputes_status", "status"),
        Index("idx_disputes_order", "order_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    buyer_type = _enum_column(BuyerType, "dispute_buyer_type", nullable=False)
    issue_category = _enum_column(IssueCategory, "dispute_issue_category", nullable=False)
    description = Column(Text)
    status = _enum_column(DisputeStatus, "dispute_status", nullable=False, default=DisputeStatus.OPEN)
    supplier_response = Column(Text)
    outcome = Column(Text)
    resolution = _enum_column(DisputeResolution, "dispute_resolution", nullable=True)
    reported_at = Column(DateTime, default=utcnow_naive, nullable=False)
    resolved_at = Column(DateTime)

    supplier = relationship("Supplier")
    notes = relationship("DisputeNote", back_populates="dispute", order_by="DisputeNote.id")


class DisputeNote(Base):
    __tablename__ = "dispute_notes"
    __table_args__ = (Index("idx_dispute_notes_dispute", "dispute_id"),)

    id = Column(Integer, primary_key=True, index=True)
    dispute_id = Column(Integer, ForeignKey("disputes.id"), nullable=False)
    note = Column(Text, nullable=False)
    author = Column(String, nullable=False, default="admin")
    created_at = Column(DateTime, default=utcnow_naive, nullable=False)

    dispute = relationship("Dispute", back_populates="notes")
