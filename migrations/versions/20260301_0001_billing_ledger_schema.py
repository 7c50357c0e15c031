"""billing ledger, invoices and disputes

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None

LEDGER_STATUSES = ("pending", "invoiced", "paid", "disputed")


def _status(name: str, values: tuple[str, ...], nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Enum(*values, name=f"{name}_enum", native_enum=False, length=32, create_constraint=True),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("fee_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.CheckConstraint(
            "fee_percentage IS NULL OR (fee_percentage >= 0 AND fee_percentage <= 100)",
            name="ck_suppliers_fee_percentage",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_suppliers_id", "suppliers", ["id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=50), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("total_fees", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("due_date", sa.Date(), nullable=False),
        _status("status", ("open", "paid", "overdue")),
        sa.Column("issued_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sa.UniqueConstraint("supplier_id", "period_start", name="uq_invoices_supplier_period"),
    )
    op.create_index("ix_invoices_id", "invoices", ["id"])
    op.create_index("idx_invoices_status", "invoices", ["status"])
    op.create_index("idx_invoices_due_date", "invoices", ["due_date"])

    op.create_table(
        "billing_ledger",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=True),
        _status("order_type", ("material", "rental")),
        sa.Column("effective_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("fee_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("fee_amount", sa.Numeric(12, 2), nullable=False),
        _status("status", LEDGER_STATUSES),
        _status("status_before_dispute", LEDGER_STATUSES, nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("invoiced_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.CheckConstraint(
            "effective_value >= 0 AND fee_percentage >= 0 AND fee_percentage <= 100 AND fee_amount >= 0",
            name="ck_billing_ledger_amounts",
        ),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", name="uq_billing_ledger_order_id"),
    )
    op.create_index("ix_billing_ledger_id", "billing_ledger", ["id"])
    op.create_index("idx_billing_ledger_supplier_status", "billing_ledger", ["supplier_id", "status"])
    op.create_index("idx_billing_ledger_completed_at", "billing_ledger", ["completed_at"])
    op.create_index("idx_billing_ledger_invoice", "billing_ledger", ["invoice_id"])

    op.create_table(
        "billing_ledger_status_audit",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entry_id", sa.Integer(), nullable=False),
        sa.Column("old_status", sa.String(length=32), nullable=True),
        sa.Column("new_status", sa.String(length=32), nullable=False),
        sa.Column("actor", sa.String(), nullable=False, server_default="system"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["entry_id"], ["billing_ledger.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_billing_ledger_status_audit_id", "billing_ledger_status_audit", ["id"])
    op.create_index("idx_ledger_audit_entry", "billing_ledger_status_audit", ["entry_id"])

    op.create_table(
        "disputes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        _status("buyer_type", ("homeowner", "contractor")),
        _status(
            "issue_category",
            ("spec_mismatch", "quantity_short", "quality_issue", "late_delivery", "other"),
        ),
        sa.Column("description", sa.Text(), nullable=True),
        _status("status", ("open", "supplier_responded", "resolved")),
        sa.Column("supplier_response", sa.Text(), nullable=True),
        sa.Column("outcome", sa.Text(), nullable=True),
        _status("resolution", ("denied", "upheld", "adjusted"), nullable=True),
        sa.Column("reported_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_disputes_id", "disputes", ["id"])
    op.create_index("idx_disputes_status", "disputes", ["status"])
    op.create_index("idx_disputes_order", "disputes", ["order_id"])

    op.create_table(
        "dispute_notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dispute_id", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("author", sa.String(), nullable=False, server_default="admin"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["dispute_id"], ["disputes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dispute_notes_id", "dispute_notes", ["id"])
    op.create_index("idx_dispute_notes_dispute", "dispute_notes", ["dispute_id"])


def downgrade() -> None:
    op.drop_index("idx_dispute_notes_dispute", table_name="dispute_notes")
    op.drop_index("ix_dispute_notes_id", table_name="dispute_notes")
    op.drop_table("dispute_notes")

    op.drop_index("idx_disputes_order", table_name="disputes")
    op.drop_index("idx_disputes_status", table_name="disputes")
    op.drop_index("ix_disputes_id", table_name="disputes")
    op.drop_table("disputes")

    op.drop_index("idx_ledger_audit_entry", table_name="billing_ledger_status_audit")
    op.drop_index("ix_billing_ledger_status_audit_id", table_name="billing_ledger_status_audit")
    op.drop_table("billing_ledger_status_audit")

    op.drop_index("idx_billing_ledger_invoice", table_name="billing_ledger")
    op.drop_index("idx_billing_ledger_completed_at", table_name="billing_ledger")
    op.drop_index("idx_billing_ledger_supplier_status", table_name="billing_ledger")
    op.drop_index("ix_billing_ledger_id", table_name="billing_ledger")
    op.drop_table("billing_ledger")

    op.drop_index("idx_invoices_due_date", table_name="invoices")
    op.drop_index("idx_invoices_status", table_name="invoices")
    op.drop_index("ix_invoices_id", table_name="invoices")
    op.drop_table("invoices")

    op.drop_index("ix_suppliers_id", table_name="suppliers")
    op.drop_table("suppliers")
