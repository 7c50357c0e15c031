from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.jwt import create_access_token
from app.core.config import get_config
from app.database.models import Base, Supplier
from app.services.ledger_store import LedgerStore, OrderCompletion
from app.services.locks import SupplierLockRegistry


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def locks():
    return SupplierLockRegistry(timeout_seconds=1)


@pytest.fixture
def make_supplier(db_session):
    def _make(name: str = "Tbilisi Concrete Works", fee_percentage: Decimal | None = None) -> Supplier:
        supplier = Supplier(name=name, fee_percentage=fee_percentage, active=True)
        db_session.add(supplier)
        db_session.commit()
        db_session.refresh(supplier)
        return supplier

    return _make


@pytest.fixture
def record_order(db_session, locks):
    store = LedgerStore(db=db_session, locks=locks, default_fee_percentage=Decimal("5.00"))

    def _record(
        supplier_id: int,
        effective_value: str,
        completed_at: datetime,
        order_id: str | None = None,
        order_type: str = "material",
        notes: str | None = None,
    ):
        return store.create_entry(
            OrderCompletion(
                supplier_id=supplier_id,
                order_id=order_id,
                order_type=order_type,
                effective_value=effective_value,
                completed_at=completed_at,
                notes=notes,
            )
        )

    return _record


@pytest.fixture
def patched_sessions(monkeypatch, session_factory):
    """Point route and task modules at the in-memory database."""
    import app.api.v1.admin_billing as admin_billing
    import app.api.v1.billing as billing
    import app.api.v1.disputes as disputes
    import app.tasks.billing_tasks as billing_tasks

    @contextmanager
    def _get_db_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    for module in (billing, admin_billing, disputes, billing_tasks):
        monkeypatch.setattr(module, "get_db_session", _get_db_session)
    return session_factory


@pytest.fixture
def auth_header():
    def _header(role: str = "admin", supplier_id: int | None = None, subject: str = "tester") -> str:
        token = create_access_token(subject, role, get_config().JWT_SECRET, supplier_id=supplier_id)
        return f"Bearer {token}"

    return _header
