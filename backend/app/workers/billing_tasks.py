# backend/app/workers/billing_tasks.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import OperationalError

from ..db import SessionLocal
from ..domain.periods import parse_date
from ..services.rent_invoices import generate_monthly_invoices
from .celery_app import celery_app

log = logging.getLogger("rentledger.workers")


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    name="app.workers.billing_tasks.generate_monthly_rent_invoices",
)
def generate_monthly_rent_invoices(self, target_month: Optional[str] = None, org_id: Optional[int] = None) -> dict:
    """
    Bills the month for every active lease.

    Safe to retry or run twice: each invoice goes through ensure_invoice, so
    a second run only reports existing invoices. Only a database outage is
    retried; per-lease failures are returned in the report.
    """
    db = SessionLocal()
    try:
        report = generate_monthly_invoices(db, target_month=parse_date(target_month), organization_id=org_id)
        return report.to_dict()
    except OperationalError as e:
        db.rollback()
        log.warning("monthly invoice run hit a database error; retrying", exc_info=True)
        raise self.retry(exc=e)
    finally:
        db.close()
