"""Admin dispute queue endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, Query, status

from app.api.v1._authz import authorize, domain_http_error, map_auth_error
from app.auth.rbac import DISPUTES_READ, DISPUTES_WRITE
from app.core.exceptions import LedgerServiceError
from app.database.db import get_db_session
from app.schemas.disputes import (
    DisputeCreateRequest,
    DisputeNoteRequest,
    DisputeQueueItem,
    DisputeResolveRequest,
    DisputeResponse,
    SupplierResponseRequest,
)
from app.services.dispute_workflow import DisputeQuery, DisputeWorkflow

router = APIRouter(prefix="/admin/disputes", tags=["disputes"])


def _authorize(authorization: str | None, scopes: list[str]):
    try:
        return authorize(authorization=authorization, scopes=scopes)
    except Exception as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc


@router.get("", response_model=list[DisputeQueueItem])
def list_disputes(
    status_filter: str = Query(default="all", alias="status"),
    issue_category: str = Query(default="all", alias="issueCategory"),
    buyer_type: str = Query(default="all", alias="buyerType"),
    sort_key: str = Query(default="reportedAt", alias="sortKey"),
    sort_direction: str = Query(default="desc", alias="sortDirection"),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[DisputeQueueItem]:
    _authorize(authorization, scopes=[DISPUTES_READ])
    try:
        query = DisputeQuery.from_params(
            status=status_filter,
            issue_category=issue_category,
            buyer_type=buyer_type,
            sort_key=sort_key,
            sort_direction=sort_direction,
        )
    except LedgerServiceError as exc:
        raise domain_http_error(exc) from exc
    with get_db_session() as session:
        return [DisputeQueueItem.from_dispute(row) for row in DisputeWorkflow(db=session).list_queue(query)]


@router.post("", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
def open_dispute(
    payload: DisputeCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> DisputeResponse:
    user = _authorize(authorization, scopes=[DISPUTES_WRITE])
    with get_db_session() as session:
        try:
            dispute = DisputeWorkflow(db=session).open_dispute(
                order_id=payload.order_id,
                buyer_type=payload.buyer_type,
                issue_category=payload.issue_category,
                description=payload.description,
                supplier_id=payload.supplier_id,
                actor=user.subject,
            )
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return DisputeResponse.from_dispute(dispute)


@router.get("/{dispute_id}", response_model=DisputeResponse)
def get_dispute(
    dispute_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> DisputeResponse:
    _authorize(authorization, scopes=[DISPUTES_READ])
    with get_db_session() as session:
        try:
            dispute = DisputeWorkflow(db=session).get_dispute(dispute_id)
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return DisputeResponse.from_dispute(dispute)


@router.post("/{dispute_id}/response", response_model=DisputeResponse)
def record_supplier_response(
    dispute_id: int,
    payload: SupplierResponseRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> DisputeResponse:
    user = _authorize(authorization, scopes=[DISPUTES_WRITE])
    with get_db_session() as session:
        try:
            dispute = DisputeWorkflow(db=session).record_supplier_response(
                dispute_id, payload.response, actor=user.subject
            )
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return DisputeResponse.from_dispute(dispute)


@router.post("/{dispute_id}/note", response_model=DisputeResponse)
def add_dispute_note(
    dispute_id: int,
    payload: DisputeNoteRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> DisputeResponse:
    user = _authorize(authorization, scopes=[DISPUTES_WRITE])
    with get_db_session() as session:
        workflow = DisputeWorkflow(db=session)
        try:
            workflow.add_note(dispute_id, payload.note, author=user.subject)
            dispute = workflow.get_dispute(dispute_id)
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return DisputeResponse.from_dispute(dispute)


@router.patch("/{dispute_id}/resolve", response_model=DisputeResponse)
def resolve_dispute(
    dispute_id: int,
    payload: DisputeResolveRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> DisputeResponse:
    user = _authorize(authorization, scopes=[DISPUTES_WRITE])
    with get_db_session() as session:
        try:
            dispute = DisputeWorkflow(db=session).resolve(
                dispute_id,
                payload.outcome,
                resolution=payload.resolution,
                adjusted_effective_value=payload.adjusted_effective_value,
                actor=user.subject,
            )
        except LedgerServiceError as exc:
            raise domain_http_error(exc) from exc
        return DisputeResponse.from_dispute(dispute)
