"""Shared service base with session lifecycle and supplier-scoped write units."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.database import db as db_module
from app.services.locks import SupplierLockRegistry, default_lock_registry

_DEPTH_KEY = "supplier_mutation_depth"


class BaseService:
    """Base class for services that operate on a SQLAlchemy session."""

    def __init__(self, db: Session | None = None, locks: SupplierLockRegistry | None = None) -> None:
        self.db = db or db_module.SessionLocal()
        self.locks = locks or default_lock_registry

    def commit(self) -> None:
        """Commit current transaction and rollback on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def close(self) -> None:
        self.db.close()

    @contextmanager
    def supplier_mutation(self, supplier_id: int) -> Generator[None, None, None]:
        """Hold the supplier lock and commit the enclosed writes as one unit.

        Nested units on the same session join the outermost one; only the
        outermost commits, and any failure rolls the whole unit back.
        """
        with self.locks.hold(supplier_id):
            depth = self.db.info.get(_DEPTH_KEY, 0)
            self.db.info[_DEPTH_KEY] = depth + 1
            try:
                yield
                if depth == 0:
                    self.commit()
            except Exception:
                if depth == 0:
                    self.rollback()
                raise
            finally:
                self.db.info[_DEPTH_KEY] = depth

    def __enter__(self) -> "BaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        self.close()
