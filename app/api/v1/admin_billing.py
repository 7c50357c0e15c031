"""Admin billing endpoints: order completion, manual transitions, cycle runs and payments."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Header, HTTPException, Query, Response, status

from app.api.v1._authz import authorize, domain_http_error, map_auth_error
from app.api.v1.billing import build_query_spec, csv_response, ledger_page
from app.auth.rbac import BILLING_EXPORT, BILLING_READ, BILLING_WRITE, INVOICES_RUN
from app.core.exceptions import LedgerServiceError
from app.database.db import get_db_session
from app.database.models import utcnow_naive
from app.schemas.invoices import CycleReportResponse, InvoiceCycleRequest, InvoiceResponse, PaymentConfirmationRequest
from app.schemas.ledger import LedgerEntryResponse, LedgerPage, LedgerTransitionRequest, OrderCompletedRequest
from app.services.invoice_cycle import BillingPeriod, InvoiceCycle, previous_period
from app.services.ledger_store import LedgerStore, OrderCompletion

router = APIRouter(prefix="/admin/billing", tags=["admin-billing"])


def _authorize(authorization: str | None, scopes: list[str]):
    try:
        return authorize(authorization=authorization, scopes=scopes)
    except Exception as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc


@router.post("/orders/completed", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
def record_order_completed(
    payload: OrderCompletedRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> LedgerEntryResponse:
    user = _authorize(authorization, scopes=[BILLING_WRITE])
    completion = OrderCompletion(
        supplier_id=payload.supplier_id,
        order_id=payload.order_id,
        order_type=payload.order_type,
        effective_value=payload.effective_value,
        completed_at=payload.completed_at or utcnow_naive(),
        notes=payload.notes,
    )
    with get_db_session() as session:
        try:
            entry = LedgerStore(db=session).create_entry(completion, actor=user.subject)
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return LedgerEntryResponse.model_validate(entry)


@router.post("/ledger/{entry_id}/transition", response_model=LedgerEntryResponse)
def transition_entry(
    entry_id: int,
    payload: LedgerTransitionRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> LedgerEntryResponse:
    user = _authorize(authorization, scopes=[BILLING_WRITE])
    with get_db_session() as session:
        try:
            entry = LedgerStore(db=session).transition(
                entry_id,
                payload.from_status,
                payload.to_status,
                actor=user.subject,
                reason=payload.reason,
            )
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return LedgerEntryResponse.model_validate(entry)


@router.post("/invoice-cycle", response_model=CycleReportResponse)
def run_invoice_cycle(
    payload: InvoiceCycleRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> CycleReportResponse:
    user = _authorize(authorization, scopes=[INVOICES_RUN])
    try:
        period = BillingPeriod.parse(payload.period) if payload.period else previous_period(utcnow_naive().date())
    except LedgerServiceError as exc:
        raise domain_http_error(exc) from exc
    with get_db_session() as session:
        report = InvoiceCycle(db=session).run_cycle(period, actor=user.subject)
    return CycleReportResponse.model_validate(report)


@router.post("/invoices/{invoice_id}/payment", response_model=InvoiceResponse)
def confirm_invoice_payment(
    invoice_id: int,
    payload: PaymentConfirmationRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> InvoiceResponse:
    user = _authorize(authorization, scopes=[BILLING_WRITE])
    with get_db_session() as session:
        try:
            invoice = LedgerStore(db=session).confirm_invoice_payment(
                invoice_id, payload.payment_reference, actor=user.subject
            )
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return InvoiceResponse.model_validate(invoice)


@router.get("/ledger", response_model=LedgerPage)
def admin_ledger(
    supplier_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    order_type: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    sort_key: str | None = Query(default=None),
    sort_direction: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> LedgerPage:
    _authorize(authorization, scopes=[BILLING_READ, BILLING_WRITE])
    spec = build_query_spec(
        supplier_id, start_date, end_date, order_type, status_filter, sort_key, sort_direction, limit, offset
    )
    return ledger_page(spec)


@router.get("/export")
def admin_export(
    supplier_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    order_type: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    sort_key: str | None = Query(default=None),
    sort_direction: str | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Response:
    _authorize(authorization, scopes=[BILLING_EXPORT, BILLING_WRITE])
    spec = build_query_spec(supplier_id, start_date, end_date, order_type, status_filter, sort_key, sort_direction)
    return csv_response(spec)
