"""Supplier-facing billing endpoints: summary, ledger, CSV export and invoices."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Header, HTTPException, Query, Response, status

from app.api.v1._authz import authorize, domain_http_error, map_auth_error, scope_supplier
from app.auth.rbac import BILLING_EXPORT, BILLING_READ
from app.core.exceptions import LedgerServiceError
from app.database.db import get_db_session
from app.database.models import utcnow_naive
from app.schemas.billing import BillingSummaryResponse
from app.schemas.invoices import InvoiceDetailResponse, InvoiceResponse
from app.schemas.ledger import LedgerEntryResponse, LedgerPage
from app.services.invoice_cycle import InvoiceCycle
from app.services.ledger_query import LedgerQueryEngine, QuerySpec

router = APIRouter(prefix="/suppliers/billing", tags=["billing"])


def _authorize(authorization: str | None, scopes: list[str]):
    try:
        return authorize(authorization=authorization, scopes=scopes)
    except Exception as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc


def build_query_spec(
    supplier_id: int | None,
    start_date: date | None,
    end_date: date | None,
    order_type: str | None,
    status_filter: str | None,
    sort_key: str | None,
    sort_direction: str | None,
    limit: int | None = None,
    offset: int = 0,
) -> QuerySpec:
    try:
        return QuerySpec.from_params(
            supplier_id=supplier_id,
            start_date=start_date,
            end_date=end_date,
            order_type=order_type,
            status=status_filter,
            sort_key=sort_key,
            sort_direction=sort_direction,
            limit=limit,
            offset=offset,
        )
    except LedgerServiceError as exc:
        raise domain_http_error(exc) from exc


def ledger_page(spec: QuerySpec) -> LedgerPage:
    with get_db_session() as session:
        engine = LedgerQueryEngine(db=session)
        rows = engine.query(spec)
        return LedgerPage(
            entries=[LedgerEntryResponse.model_validate(row) for row in rows],
            total=engine.count(spec),
        )


def csv_response(spec: QuerySpec) -> Response:
    with get_db_session() as session:
        body = LedgerQueryEngine(db=session).export_csv(spec)
    filename = f"billing-ledger-{utcnow_naive().date().isoformat()}.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/summary", response_model=BillingSummaryResponse)
def billing_summary(
    supplier_id: int | None = Query(default=None, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> BillingSummaryResponse:
    user = _authorize(authorization, scopes=[BILLING_READ])
    scoped = scope_supplier(user, supplier_id)
    with get_db_session() as session:
        summary = LedgerQueryEngine(db=session).summarize(scoped, today=utcnow_naive().date())
    return BillingSummaryResponse.from_summary(summary)


@router.get("/ledger", response_model=LedgerPage)
def supplier_ledger(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    order_type: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    sort_key: str | None = Query(default=None),
    sort_direction: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    supplier_id: int | None = Query(default=None, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> LedgerPage:
    user = _authorize(authorization, scopes=[BILLING_READ])
    scoped = scope_supplier(user, supplier_id)
    spec = build_query_spec(
        scoped, start_date, end_date, order_type, status_filter, sort_key, sort_direction, limit, offset
    )
    return ledger_page(spec)


@router.get("/export")
def supplier_export(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    order_type: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    sort_key: str | None = Query(default=None),
    sort_direction: str | None = Query(default=None),
    supplier_id: int | None = Query(default=None, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Response:
    user = _authorize(authorization, scopes=[BILLING_EXPORT])
    scoped = scope_supplier(user, supplier_id)
    spec = build_query_spec(scoped, start_date, end_date, order_type, status_filter, sort_key, sort_direction)
    return csv_response(spec)


@router.get("/invoices", response_model=list[InvoiceResponse])
def supplier_invoices(
    supplier_id: int | None = Query(default=None, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[InvoiceResponse]:
    user = _authorize(authorization, scopes=[BILLING_READ])
    scoped = scope_supplier(user, supplier_id)
    with get_db_session() as session:
        invoices = InvoiceCycle(db=session).list_invoices(scoped)
        return [InvoiceResponse.model_validate(invoice) for invoice in invoices]


@router.get("/invoices/{invoice_id}", response_model=InvoiceDetailResponse)
def supplier_invoice_detail(
    invoice_id: int,
    supplier_id: int | None = Query(default=None, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> InvoiceDetailResponse:
    user = _authorize(authorization, scopes=[BILLING_READ])
    scoped = scope_supplier(user, supplier_id)
    with get_db_session() as session:
        cycle = InvoiceCycle(db=session)
        try:
            invoice = cycle.get_invoice(invoice_id)
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        if invoice.supplier_id != scoped:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invoice {invoice_id} not found")
        detail = InvoiceDetailResponse.model_validate(invoice)
        detail.line_items = [LedgerEntryResponse.model_validate(entry) for entry in cycle.line_items(invoice.id)]
        return detail
