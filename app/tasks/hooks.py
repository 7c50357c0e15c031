"""Lifecycle hooks for queue task execution."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from app.core.logging import LogContext, build_log_event


def _context(context: dict[str, Any]) -> LogContext:
    return LogContext(actor=context.get("actor"), trace_id=context.get("trace_id"))


def before_task(task_key: str, context: dict[str, Any]) -> dict[str, Any]:
    """Build pre-task log payload."""
    return build_log_event(
        event="task.start",
        context=_context(context),
        task_key=task_key,
        task_args=context.get("args") or {},
    )


def after_task(task_key: str, context: dict[str, Any], status: str, **fields: Any) -> dict[str, Any]:
    """Build post-task log payload."""
    return build_log_event(
        event="task.finish",
        context=_context(context),
        task_key=task_key,
        status=status,
        finished_at=datetime.now(timezone.utc).isoformat(),
        **fields,
    )
