from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.api.v1.disputes import (
    add_dispute_note,
    get_dispute,
    list_disputes,
    open_dispute,
    record_supplier_response,
    resolve_dispute,
)
from app.database.models import LedgerEntry, Supplier
from app.schemas.disputes import (
    DisputeCreateRequest,
    DisputeNoteRequest,
    DisputeResolveRequest,
    SupplierResponseRequest,
)
from app.services.ledger_store import LedgerStore, OrderCompletion


def _seed(session_factory, name: str, order_id: str | None = None, value: str = "1000") -> int:
    session = session_factory()
    try:
        supplier = Supplier(name=name, active=True)
        session.add(supplier)
        session.commit()
        if order_id is not None:
            LedgerStore(db=session, default_fee_percentage=Decimal("5.00")).create_entry(
                OrderCompletion(
                    supplier_id=supplier.id,
                    order_id=order_id,
                    order_type="material",
                    effective_value=value,
                    completed_at=datetime(2024, 1, 5),
                )
            )
        return supplier.id
    finally:
        session.close()


def _queue(header: str, **overrides):
    params = {
        "status_filter": "all",
        "issue_category": "all",
        "buyer_type": "all",
        "sort_key": "reportedAt",
        "sort_direction": "desc",
        "authorization": header,
    }
    params.update(overrides)
    return list_disputes(**params)


def _open(order_id: str, header: str, **fields):
    payload = {"orderId": order_id, "buyerType": "contractor", "issueCategory": "quantity_short"}
    payload.update(fields)
    return open_dispute(DisputeCreateRequest(**payload), authorization=header)


def _entry_status(session_factory, order_id: str) -> str:
    session = session_factory()
    try:
        return session.query(LedgerEntry).filter(LedgerEntry.order_id == order_id).one().status.value
    finally:
        session.close()


def test_dispute_lifecycle_through_routes(patched_sessions, auth_header):
    _seed(patched_sessions, "Tbilisi Concrete Works", order_id="ord-1")
    admin = auth_header("admin", subject="ops-1")

    created = _open("ord-1", admin, description="Two pallets short")
    assert created.status.value == "open"
    assert created.supplier_name == "Tbilisi Concrete Works"
    assert _entry_status(patched_sessions, "ord-1") == "disputed"

    responded = record_supplier_response(
        created.id, SupplierResponseRequest(response="Delivery note attached"), authorization=admin
    )
    assert responded.status.value == "supplier_responded"

    noted = add_dispute_note(created.id, DisputeNoteRequest(note="Checked photos"), authorization=admin)
    assert [(n.note, n.author) for n in noted.admin_notes] == [("Checked photos", "ops-1")]

    resolved = resolve_dispute(
        created.id,
        DisputeResolveRequest(outcome="Short by 200", resolution="adjusted", adjustedEffectiveValue=Decimal("800")),
        authorization=admin,
    )
    assert resolved.status.value == "resolved"
    assert resolved.resolution.value == "adjusted"
    assert _entry_status(patched_sessions, "ord-1") == "pending"

    with pytest.raises(HTTPException) as again:
        resolve_dispute(created.id, DisputeResolveRequest(outcome="again"), authorization=admin)
    assert again.value.status_code == 409

    fetched = get_dispute(created.id, authorization=admin)
    body = fetched.model_dump(mode="json", by_alias=True)
    assert body["orderId"] == "ord-1"
    assert body["supplierResponse"] == "Delivery note attached"
    assert body["adminNotes"][0]["note"] == "Checked photos"


def test_duplicate_open_dispute_is_422(patched_sessions, auth_header):
    _seed(patched_sessions, "Tbilisi Concrete Works", order_id="ord-1")
    admin = auth_header("admin")
    _open("ord-1", admin)

    with pytest.raises(HTTPException) as exc_info:
        _open("ord-1", admin, issueCategory="other")
    assert exc_info.value.status_code == 422


def test_dispute_routes_are_admin_only(patched_sessions, auth_header):
    supplier_id = _seed(patched_sessions, "Tbilisi Concrete Works", order_id="ord-1")
    supplier_header = auth_header("supplier", supplier_id=supplier_id)

    with pytest.raises(HTTPException) as listing:
        _queue(supplier_header)
    assert listing.value.status_code == 403

    with pytest.raises(HTTPException) as opening:
        _open("ord-1", supplier_header)
    assert opening.value.status_code == 403

    with pytest.raises(HTTPException) as anonymous:
        _queue("Token abc")
    assert anonymous.value.status_code == 401


def test_queue_filters_and_unknown_values(patched_sessions, auth_header):
    _seed(patched_sessions, "Alpha Aggregates", order_id="a-1")
    _seed(patched_sessions, "Zeta Rentals", order_id="z-1")
    admin = auth_header("admin")
    _open("a-1", admin, buyerType="homeowner", issueCategory="quality_issue")
    _open("z-1", admin)

    by_name = _queue(admin, sort_key="supplierName", sort_direction="asc")
    assert [item.supplier_name for item in by_name] == ["Alpha Aggregates", "Zeta Rentals"]

    homeowners = _queue(admin, buyer_type="homeowner")
    assert [item.order_id for item in homeowners] == ["a-1"]

    with pytest.raises(HTTPException) as exc_info:
        _queue(admin, issue_category="pricing")
    assert exc_info.value.status_code == 422


def test_missing_dispute_is_404(patched_sessions, auth_header):
    admin = auth_header("admin")
    with pytest.raises(HTTPException) as fetch:
        get_dispute(777, authorization=admin)
    assert fetch.value.status_code == 404

    with pytest.raises(HTTPException) as note:
        add_dispute_note(777, DisputeNoteRequest(note="hello"), authorization=admin)
    assert note.value.status_code == 404
