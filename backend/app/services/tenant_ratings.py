# backend/app/services/tenant_ratings.py
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.billing_cursor import lease_eligible_start
from ..domain.invoice_state import InvoiceState, classify_invoice
from ..domain.periods import utc_today
from ..domain.ratings import TenantRating, TenantScoreSheet, aggregate_ratings
from ..domain.scoring import is_past_penalty_date, score_payment
from ..models import Invoice, Lease, Payment, UserProfile

log = logging.getLogger("rentledger.ratings")


def tenant_ratings(
    db: Session,
    *,
    org_id: int,
    order: str = "desc",
    limit: Optional[int] = None,
    today: Optional[date] = None,
) -> list[TenantRating]:
    """
    On-time rate per tenant.

    Each verified payment contributes its timeliness score; each unpaid
    invoice past the penalty day contributes one penalty score. Rows that
    cannot be scored are skipped, never fatal.
    """
    today = today or utc_today()
    sheets: dict[str, TenantScoreSheet] = {}

    def sheet(tenant_id: str) -> TenantScoreSheet:
        if tenant_id not in sheets:
            sheets[tenant_id] = TenantScoreSheet(tenant_id=tenant_id)
        return sheets[tenant_id]

    paid_rows = db.execute(
        select(Payment, Invoice.due_date)
        .outerjoin(Invoice, Invoice.id == Payment.invoice_id)
        .where(
            Payment.organization_id == org_id,
            Payment.verified.is_(True),
            Payment.tenant_user_id.is_not(None),
        )
    ).all()
    for payment, due_date in paid_rows:
        try:
            score = score_payment(due_date, payment.payment_date or payment.created_at)
            sheet(payment.tenant_user_id).add_payment(score)
        except (TypeError, ValueError):
            log.warning("skipping unscoreable payment", extra={"payment_id": payment.id})
            continue

    open_rows = db.execute(
        select(Invoice, Lease)
        .join(Lease, Lease.id == Invoice.lease_id)
        .where(
            Invoice.organization_id == org_id,
            Invoice.status.is_(False),
            Lease.tenant_user_id.is_not(None),
        )
    ).all()
    for invoice, lease in open_rows:
        try:
            state = classify_invoice(
                invoice,
                rent_paid_until=lease.rent_paid_until,
                eligible_start=lease_eligible_start(lease.start_date),
            ).state
            if state != InvoiceState.UNPAID:
                continue
            if is_past_penalty_date(invoice.due_date, today, settings.penalty_day):
                sheet(lease.tenant_user_id).add_penalty(settings.penalty_score)
        except (TypeError, ValueError):
            log.warning("skipping unscoreable invoice", extra={"invoice_id": invoice.id})
            continue

    if sheets:
        names = db.execute(
            select(UserProfile.id, UserProfile.full_name).where(UserProfile.id.in_(list(sheets.keys())))
        ).all()
        for tenant_id, full_name in names:
            sheets[tenant_id].name = full_name or "Tenant"

    return aggregate_ratings(sheets.values(), order=order, limit=limit)
