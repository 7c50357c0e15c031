"""Scheduled billing jobs: daily tick, invoice cycle and overdue marking."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import date
from typing import Any

from app.database.db import get_db_session
from app.database.models import utcnow_naive
from app.services.invoice_cycle import BillingPeriod, InvoiceCycle, OverdueReport, previous_period
from app.tasks.celery_app import celery_app
from app.tasks.hooks import after_task, before_task

logger = logging.getLogger(__name__)

ACTOR = "scheduler"


def _parse_day(value: str | None) -> date:
    if not value:
        return utcnow_naive().date()
    return date.fromisoformat(value)


def _run(task_key: str, args: dict[str, Any], body: Callable[[InvoiceCycle], dict[str, Any]]) -> dict[str, Any]:
    context = {"actor": ACTOR, "trace_id": uuid.uuid4().hex, "args": args}
    logger.info("task.start", extra=before_task(task_key=task_key, context=context))
    try:
        with get_db_session() as session:
            result = body(InvoiceCycle(db=session))
    except Exception:
        logger.exception("task.failed", extra=after_task(task_key=task_key, context=context, status="failed"))
        raise
    logger.info("task.finish", extra=after_task(task_key=task_key, context=context, status="succeeded"))
    return result


@celery_app.task(name="billing.daily_tick")
def daily_tick_task(today: str | None = None) -> dict[str, Any]:
    """Run the monthly cycle on the 1st and mark overdue invoices every day."""
    day = _parse_day(today)
    return _run("billing.daily_tick", {"today": day.isoformat()}, lambda cycle: cycle.daily_tick(day, actor=ACTOR))


@celery_app.task(name="billing.run_invoice_cycle")
def run_invoice_cycle_task(period: str | None = None) -> dict[str, Any]:
    target = BillingPeriod.parse(period) if period else previous_period(utcnow_naive().date())
    return _run(
        "billing.run_invoice_cycle",
        {"period": target.label},
        lambda cycle: cycle.run_cycle(target, actor=ACTOR).to_dict(),
    )


def _overdue_result(day: date, report: OverdueReport) -> dict[str, Any]:
    return {"date": day.isoformat(), "overdue_invoice_ids": report.marked, "overdue_failed": report.failed}


@celery_app.task(name="billing.mark_overdue")
def mark_overdue_task(today: str | None = None) -> dict[str, Any]:
    day = _parse_day(today)
    return _run(
        "billing.mark_overdue",
        {"today": day.isoformat()},
        lambda cycle: _overdue_result(day, cycle.mark_overdue(day, actor=ACTOR)),
    )
