# backend/app/services/finance_reports.py
from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..domain.arrears import LeaseArrears, accumulate_arrears, note_payment, sort_arrears
from ..domain.billing_cursor import lease_eligible_start
from ..domain.periods import add_months_utc, start_of_month_utc, utc_today
from ..domain.prepayment import COVERAGE_SCAN_MONTHS, is_invoice_settled, prepaid_coverage
from ..models import ApartmentUnit, Invoice, Lease, Payment, UserProfile
from .ownership import OPEN_LEASE_STATUSES


def _profiles(db: Session, *, org_id: int, ids: set[str]) -> dict[str, UserProfile]:
    if not ids:
        return {}
    rows = db.scalars(
        select(UserProfile).where(UserProfile.organization_id == org_id, UserProfile.id.in_(list(ids)))
    ).all()
    return {r.id: r for r in rows}


def arrears_summary(
    db: Session,
    *,
    org_id: int,
    building_id: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 500,
    today: Optional[date] = None,
) -> list[LeaseArrears]:
    """Outstanding past-due balance per open lease, worst first."""
    today = today or utc_today()

    lq = (
        select(Lease)
        .options(joinedload(Lease.unit).joinedload(ApartmentUnit.building))
        .where(Lease.organization_id == org_id, Lease.status.in_(OPEN_LEASE_STATUSES))
    )
    leases = list(db.scalars(lq).unique().all())
    if building_id:
        leases = [l for l in leases if l.unit is not None and l.unit.building_id == building_id]
    if not leases:
        return []

    lease_ids = [l.id for l in leases]
    profiles = _profiles(db, org_id=org_id, ids={l.tenant_user_id for l in leases if l.tenant_user_id})

    invoices_by_lease: dict[str, list[Invoice]] = defaultdict(list)
    invoice_to_lease: dict[str, str] = {}
    for inv in db.scalars(
        select(Invoice).where(Invoice.organization_id == org_id, Invoice.lease_id.in_(lease_ids))
    ).all():
        invoices_by_lease[inv.lease_id].append(inv)
        invoice_to_lease[inv.id] = inv.lease_id

    rows: dict[str, LeaseArrears] = {}
    for lease in leases:
        profile = profiles.get(lease.tenant_user_id or "")
        unit = lease.unit
        building = unit.building if unit is not None else None
        row = LeaseArrears(
            lease_id=lease.id,
            tenant_user_id=lease.tenant_user_id,
            tenant_name=profile.full_name if profile is not None else None,
            tenant_phone=profile.phone_number if profile is not None else None,
            building_id=building.id if building is not None else None,
            building_name=building.name if building is not None else "Property",
            unit_number=unit.unit_number if unit is not None else "",
        )
        accumulate_arrears(
            row,
            invoices_by_lease.get(lease.id, []),
            today=today,
            rent_paid_until=lease.rent_paid_until,
            eligible_start=lease_eligible_start(lease.start_date),
        )
        rows[lease.id] = row

    if invoice_to_lease:
        for invoice_id, paid_on in db.execute(
            select(Payment.invoice_id, Payment.payment_date).where(
                Payment.organization_id == org_id,
                Payment.verified.is_(True),
                Payment.invoice_id.in_(list(invoice_to_lease.keys())),
            )
        ).all():
            lease_id = invoice_to_lease.get(invoice_id)
            if lease_id in rows:
                note_payment(rows[lease_id], paid_on)

    out = [r for r in rows.values() if r.tenant_user_id]
    if q and q.strip():
        needle = q.strip().lower()
        out = [
            r
            for r in out
            if needle in f"{r.tenant_name or ''} {r.building_name or ''} {r.unit_number or ''}".lower()
        ]
    return sort_arrears(out)[: max(1, int(limit))]


def prepayment_summary(db: Session, *, org_id: int, today: Optional[date] = None) -> list[dict[str, Any]]:
    """Active leases paid beyond the current month, furthest paid-through first."""
    today = today or utc_today()
    current = start_of_month_utc(today)
    scan_end = add_months_utc(current, COVERAGE_SCAN_MONTHS)

    leases = list(
        db.scalars(
            select(Lease)
            .options(joinedload(Lease.unit))
            .where(Lease.organization_id == org_id, Lease.status == "active")
            .limit(500)
        )
        .unique()
        .all()
    )
    if not leases:
        return []

    paid_months: dict[str, set[date]] = defaultdict(set)
    for inv in db.scalars(
        select(Invoice).where(
            Invoice.organization_id == org_id,
            Invoice.invoice_type == "rent",
            Invoice.lease_id.in_([l.id for l in leases]),
            Invoice.period_start >= current,
            Invoice.period_start < scan_end,
        )
    ).all():
        if is_invoice_settled(inv.status, inv.status_text, inv.amount, inv.total_paid):
            paid_months[inv.lease_id].add(inv.period_start)

    profiles = _profiles(db, org_id=org_id, ids={l.tenant_user_id for l in leases if l.tenant_user_id})

    out: list[dict[str, Any]] = []
    for lease in leases:
        cov = prepaid_coverage(paid_months.get(lease.id, set()), lease_start=lease.start_date, today=today)
        if not cov.is_prepaid:
            continue
        profile = profiles.get(lease.tenant_user_id or "")
        out.append(
            {
                "organization_id": org_id,
                "lease_id": lease.id,
                "tenant_user_id": lease.tenant_user_id,
                "tenant_name": profile.full_name if profile is not None else None,
                "tenant_phone": profile.phone_number if profile is not None else None,
                "unit_id": lease.unit_id,
                "unit_number": lease.unit.unit_number if lease.unit is not None else None,
                "rent_paid_until": cov.rent_paid_until.isoformat() if cov.rent_paid_until else None,
                "next_rent_due_date": cov.next_rent_due_date.isoformat(),
                "prepaid_months": cov.prepaid_months,
                "is_prepaid": True,
            }
        )

    out.sort(key=lambda r: r["rent_paid_until"] or "", reverse=True)
    return out
