# backend/app/services/statements.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..domain.billing_cursor import lease_eligible_start
from ..domain.statement import StatementTransaction, StatementView, build_ledger, filter_statement
from ..models import ApartmentUnit, Invoice, Lease, Payment, UserProfile


def _lease_view(lease: Optional[Lease]) -> Optional[dict[str, Any]]:
    if lease is None:
        return None
    unit = lease.unit
    building = unit.building if unit is not None else None
    return {
        "id": lease.id,
        "status": lease.status,
        "start_date": lease.start_date.isoformat() if lease.start_date else None,
        "end_date": lease.end_date.isoformat() if lease.end_date else None,
        "monthly_rent": float(lease.monthly_rent) if lease.monthly_rent is not None else None,
        "rent_paid_until": lease.rent_paid_until.isoformat() if lease.rent_paid_until else None,
        "property_name": building.name if building is not None else None,
        "property_location": building.location if building is not None else None,
        "unit_number": unit.unit_number if unit is not None else None,
    }


def _statement_lease(db: Session, *, org_id: int, tenant_user_id: str, lease_id: Optional[str]) -> Optional[Lease]:
    q = (
        select(Lease)
        .options(joinedload(Lease.unit).joinedload(ApartmentUnit.building))
        .where(Lease.organization_id == org_id, Lease.tenant_user_id == tenant_user_id)
    )
    if lease_id:
        q = q.where(Lease.id == lease_id)
    # an open lease beats a newer closed one
    rows = list(db.scalars(q.order_by(desc(Lease.created_at))).unique().all())
    for row in rows:
        if (row.status or "") in ("active", "pending"):
            return row
    return rows[0] if rows else None


def _cap_display(transactions: list[StatementTransaction]) -> list[StatementTransaction]:
    """Newest N charges and newest M payments, in ledger order. Balances are untouched."""
    keep: set[int] = set()
    limits = {"charge": settings.statement_invoice_limit, "payment": settings.statement_payment_limit}
    seen = {"charge": 0, "payment": 0}
    for idx in range(len(transactions) - 1, -1, -1):
        kind = transactions[idx].kind
        if seen.get(kind, 0) < limits.get(kind, 0):
            seen[kind] = seen.get(kind, 0) + 1
            keep.add(idx)
    return [t for idx, t in enumerate(transactions) if idx in keep]


def tenant_statement(
    db: Session,
    *,
    org_id: int,
    tenant: UserProfile,
    lease_id: Optional[str] = None,
    period: str = "all",
    today: Optional[date] = None,
) -> StatementView:
    """
    Statement for one tenant's lease: every invoice as a charge (covered ones
    as zero markers), every verified payment as a credit, balanced over the
    full history and then sliced to `period`. The display caps only trim the
    returned rows; the summary always covers the whole window.
    """
    lease = _statement_lease(db, org_id=org_id, tenant_user_id=tenant.id, lease_id=lease_id)

    invoices: list[Invoice] = []
    payments: list[Payment] = []
    if lease is not None:
        invoices = list(
            db.scalars(
                select(Invoice)
                .where(Invoice.organization_id == org_id, Invoice.lease_id == lease.id)
                .order_by(asc(Invoice.due_date))
            ).all()
        )
        invoice_ids = [inv.id for inv in invoices]
        if invoice_ids:
            payments = list(
                db.scalars(
                    select(Payment)
                    .where(
                        Payment.organization_id == org_id,
                        Payment.tenant_user_id == tenant.id,
                        Payment.invoice_id.in_(invoice_ids),
                    )
                    .order_by(asc(Payment.payment_date))
                ).all()
            )

    ledger = build_ledger(
        invoices,
        payments,
        rent_paid_until=lease.rent_paid_until if lease is not None else None,
        eligible_start=lease_eligible_start(lease.start_date) if lease is not None else None,
    )
    view = filter_statement(ledger, period, today=today)
    view.transactions = _cap_display(view.transactions)
    view.extras = {
        "tenant": {
            "id": tenant.id,
            "name": tenant.full_name or "Tenant",
            "phone_number": tenant.phone_number,
            "email": tenant.email,
        },
        "lease": _lease_view(lease),
        "filter": period,
    }
    return view
