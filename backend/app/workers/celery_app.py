# backend/app/workers/celery_app.py
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from ..config import settings

BROKER = settings.celery_broker_url or "redis://localhost:6379/0"
BACKEND = settings.celery_result_backend or "redis://localhost:6379/1"

celery_app = Celery(
    "rentledger",
    broker=BROKER,
    backend=BACKEND,
    include=["app.workers.billing_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.task_routes = {
    "app.workers.billing_tasks.*": {"queue": "billing"},
}

# Rent for the new month is billed shortly after midnight UTC on the 1st
celery_app.conf.beat_schedule = {
    "generate-monthly-rent-invoices": {
        "task": "app.workers.billing_tasks.generate_monthly_rent_invoices",
        "schedule": crontab(minute=5, hour=0, day_of_month=1),
    },
}
