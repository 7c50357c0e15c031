"""Per-supplier write serialization with bounded waits."""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager

from app.core.config import get_config
from app.core.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class SupplierLockRegistry:
    """Process-wide registry of re-entrant locks keyed by supplier id.

    Mutations for one supplier run one at a time; different suppliers never
    contend. A thread already holding a supplier's lock may re-enter it, which
    lets a dispute resolution drive ledger transitions for the same supplier.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout_seconds = timeout_seconds
        self._locks: dict[int, threading.RLock] = {}
        self._guard = threading.Lock()

    @property
    def timeout_seconds(self) -> float:
        if self._timeout_seconds is not None:
            return self._timeout_seconds
        return get_config().LOCK_TIMEOUT_SECONDS

    def _lock_for(self, supplier_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(supplier_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[supplier_id] = lock
            return lock

    @contextmanager
    def hold(self, supplier_id: int, timeout: float | None = None) -> Generator[None, None, None]:
        wait = self.timeout_seconds if timeout is None else timeout
        lock = self._lock_for(int(supplier_id))
        if not lock.acquire(timeout=wait):
            logger.warning(
                "ledger.lock.timeout",
                extra={"event": "ledger.lock.timeout", "supplier_id": supplier_id},
            )
            raise LockTimeoutError(
                f"Supplier {supplier_id} is busy; lock not acquired within {wait:g}s. Retry the operation."
            )
        try:
            yield
        finally:
            lock.release()


default_lock_registry = SupplierLockRegistry()
