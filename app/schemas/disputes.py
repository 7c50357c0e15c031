"""Dispute queue and workflow schemas (camelCase REST contract)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from app.core.enums import BuyerType, DisputeResolution, DisputeStatus, IssueCategory
from app.database.models import Dispute
from app.schemas.common import CamelModel


class DisputeCreateRequest(CamelModel):
    order_id: str = Field(min_length=1, max_length=64)
    supplier_id: int | None = Field(default=None, ge=1)
    buyer_type: BuyerType
    issue_category: IssueCategory
    description: str | None = Field(default=None, max_length=5000)


class SupplierResponseRequest(CamelModel):
    response: str = Field(min_length=1, max_length=5000)


class DisputeNoteRequest(CamelModel):
    note: str = Field(min_length=1, max_length=5000)


class DisputeResolveRequest(CamelModel):
    outcome: str = Field(min_length=1, max_length=5000)
    resolution: DisputeResolution = DisputeResolution.DENIED
    adjusted_effective_value: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class DisputeNoteResponse(CamelModel):
    id: int
    note: str
    author: str
    created_at: datetime


class DisputeQueueItem(CamelModel):
    id: int
    order_id: str
    supplier_name: str
    buyer_type: BuyerType
    issue_category: IssueCategory
    reported_at: datetime
    status: DisputeStatus
    outcome: str | None = None

    @classmethod
    def from_dispute(cls, dispute: Dispute) -> "DisputeQueueItem":
        return cls(
            id=dispute.id,
            order_id=dispute.order_id,
            supplier_name=dispute.supplier.name,
            buyer_type=dispute.buyer_type,
            issue_category=dispute.issue_category,
            reported_at=dispute.reported_at,
            status=dispute.status,
            outcome=dispute.outcome,
        )


class DisputeResponse(DisputeQueueItem):
    supplier_id: int
    description: str | None = None
    supplier_response: str | None = None
    resolution: DisputeResolution | None = None
    resolved_at: datetime | None = None
    admin_notes: list[DisputeNoteResponse] = Field(default_factory=list)

    @classmethod
    def from_dispute(cls, dispute: Dispute) -> "DisputeResponse":
        return cls(
            id=dispute.id,
            order_id=dispute.order_id,
            supplier_id=dispute.supplier_id,
            supplier_name=dispute.supplier.name,
            buyer_type=dispute.buyer_type,
            issue_category=dispute.issue_category,
            reported_at=dispute.reported_at,
            status=dispute.status,
            outcome=dispute.outcome,
            description=dispute.description,
            supplier_response=dispute.supplier_response,
            resolution=dispute.resolution,
            resolved_at=dispute.resolved_at,
            admin_notes=[DisputeNoteResponse.model_validate(note) for note in dispute.notes],
        )
