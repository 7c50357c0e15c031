"""Invoice request/response schemas for API contracts."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import InvoiceStatus
from app.schemas.common import CamelModel, Money
from app.schemas.ledger import LedgerEntryResponse


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    supplier_id: int
    period_start: date
    period_end: date
    total_fees: Money
    due_date: date
    status: InvoiceStatus
    issued_at: datetime
    paid_at: datetime | None = None
    payment_reference: str | None = None


class InvoiceDetailResponse(InvoiceResponse):
    line_items: list[LedgerEntryResponse] = Field(default_factory=list)


class InvoiceCycleRequest(BaseModel):
    period: str | None = Field(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")


class PaymentConfirmationRequest(CamelModel):
    payment_reference: str | None = Field(default=None, max_length=255)


class BatchResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    supplier_id: int
    invoice_id: int
    invoice_number: str
    created: bool
    entry_ids: list[int]
    skipped_entry_ids: list[int]
    total_fees: Money


class CycleReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period: str
    invoiced: list[BatchResultResponse]
    skipped: list[dict[str, Any]]
    failed: list[dict[str, Any]]
