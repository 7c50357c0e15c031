"""Ledger entry request/response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import LedgerStatus, OrderType
from app.schemas.common import CamelModel, Money


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: int
    order_id: str | None = None
    order_type: OrderType
    effective_value: Money
    fee_percentage: Money
    fee_amount: Money
    status: LedgerStatus
    status_before_dispute: LedgerStatus | None = None
    completed_at: datetime
    invoice_id: int | None = None
    invoiced_at: datetime | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    version: int


class LedgerPage(BaseModel):
    entries: list[LedgerEntryResponse]
    total: int


class OrderCompletedRequest(BaseModel):
    supplier_id: int = Field(ge=1)
    order_id: str | None = Field(default=None, max_length=64)
    order_type: OrderType
    effective_value: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    completed_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)


class LedgerTransitionRequest(CamelModel):
    from_status: LedgerStatus
    to_status: LedgerStatus
    reason: str | None = Field(default=None, max_length=2000)
