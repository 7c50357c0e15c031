"""Structured logging helpers for billing events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Normalized context fields expected in structured logs."""

    supplier_id: int | None = None
    invoice_id: int | None = None
    entry_id: int | None = None
    actor: str | None = None
    trace_id: str | None = None


def build_log_event(event: str, context: LogContext, **fields: Any) -> dict[str, Any]:
    """Build a normalized structured log payload."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "supplier_id": context.supplier_id,
        "invoice_id": context.invoice_id,
        "entry_id": context.entry_id,
        "actor": context.actor,
        "trace_id": context.trace_id,
    }
    payload.update(fields)
    return payload
