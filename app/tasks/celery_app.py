"""Celery application bootstrap."""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from app.core.config import get_config

config = get_config()

celery_app = Celery(
    "fee_ledger",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["app.tasks.billing_tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    beat_schedule={
        "billing-daily-tick": {
            "task": "billing.daily_tick",
            "schedule": crontab(minute=0, hour=config.BILLING_TICK_HOUR),
        },
    },
)

# Local/dev convenience: run tasks synchronously when requested.
if config.CELERY_TASK_ALWAYS_EAGER:
    celery_app.conf.task_always_eager = True
