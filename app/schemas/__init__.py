"""Pydantic schema package for API contracts."""

from app.schemas.billing import BillingSummaryResponse, CurrentBalance, MonthSummary
from app.schemas.common import CamelModel, Money
from app.schemas.disputes import (
    DisputeCreateRequest,
    DisputeNoteRequest,
    DisputeNoteResponse,
    DisputeQueueItem,
    DisputeResolveRequest,
    DisputeResponse,
    SupplierResponseRequest,
)
from app.schemas.invoices import (
    BatchResultResponse,
    CycleReportResponse,
    InvoiceCycleRequest,
    InvoiceDetailResponse,
    InvoiceResponse,
    PaymentConfirmationRequest,
)
from app.schemas.ledger import LedgerEntryResponse, LedgerPage, LedgerTransitionRequest, OrderCompletedRequest

__all__ = [
    "BatchResultResponse",
    "BillingSummaryResponse",
    "CamelModel",
    "CurrentBalance",
    "CycleReportResponse",
    "DisputeCreateRequest",
    "DisputeNoteRequest",
    "DisputeNoteResponse",
    "DisputeQueueItem",
    "DisputeResolveRequest",
    "DisputeResponse",
    "InvoiceCycleRequest",
    "InvoiceDetailResponse",
    "InvoiceResponse",
    "LedgerEntryResponse",
    "LedgerPage",
    "LedgerTransitionRequest",
    "Money",
    "MonthSummary",
    "OrderCompletedRequest",
    "PaymentConfirmationRequest",
    "SupplierResponseRequest",
]
