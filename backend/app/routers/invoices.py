# backend/app/routers/invoices.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import asc, select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_manager
from ..db import get_db
from ..domain.billing_cursor import lease_eligible_start
from ..domain.invoice_state import classify_invoice
from ..models import Invoice
from ..schemas import GenerateInvoicesIn, GenerationReportOut, InvoiceOut, MarkPaidIn, RentInvoiceOut
from ..services.ownership import current_lease_for_tenant, must_get_lease
from ..services.payment_verification import mark_invoice_paid
from ..services.rent_invoices import generate_monthly_invoices, resolve_rent_invoice

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _rent_invoice_payload(resolution, lease) -> RentInvoiceOut:
    unit = resolution.invoice.lease.unit if resolution.invoice.lease is not None else None
    building = unit.building if unit is not None else None
    return RentInvoiceOut(
        outcome=resolution.outcome,
        invoice=InvoiceOut.model_validate(resolution.invoice),
        property_name=building.name if building is not None else None,
        property_location=building.location if building is not None else None,
        unit_label=unit.unit_number if unit is not None else None,
        monthly_rent=float(lease.monthly_rent),
        rent_paid_until=lease.rent_paid_until,
        next_rent_due_date=lease.next_rent_due_date,
    )


@router.get("/rent/current", response_model=RentInvoiceOut)
def my_rent_invoice(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    """The rent invoice the signed-in tenant should pay next."""
    lease = current_lease_for_tenant(db, org_id=p.org_id, tenant_user_id=p.user_id)
    if lease is None:
        raise HTTPException(status_code=404, detail="No active lease found for rent payment.")
    return _rent_invoice_payload(resolve_rent_invoice(db, lease), lease)


@router.get("/rent/lease/{lease_id}", response_model=RentInvoiceOut)
def lease_rent_invoice(lease_id: str, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    lease = must_get_lease(db, org_id=p.org_id, lease_id=lease_id)
    return _rent_invoice_payload(resolve_rent_invoice(db, lease), lease)


@router.get("/lease/{lease_id}/unpaid", response_model=list[InvoiceOut])
def unpaid_invoices(
    lease_id: str,
    invoice_type: str | None = Query(default=None, description="rent|water"),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    lease = must_get_lease(db, org_id=p.org_id, lease_id=lease_id)
    if not p.is_manager and lease.tenant_user_id != p.user_id:
        raise HTTPException(status_code=404, detail="lease not found")

    q = select(Invoice).where(Invoice.organization_id == p.org_id, Invoice.lease_id == lease.id)
    if invoice_type:
        q = q.where(Invoice.invoice_type == invoice_type)
    rows = db.scalars(q.order_by(asc(Invoice.period_start), asc(Invoice.due_date))).all()

    eligible = lease_eligible_start(lease.start_date)
    return [
        r
        for r in rows
        if classify_invoice(r, rent_paid_until=lease.rent_paid_until, eligible_start=eligible).is_unpaid
    ]


@router.post("/generate-monthly", response_model=GenerationReportOut)
def generate_monthly(
    payload: GenerateInvoicesIn | None = None,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    report = generate_monthly_invoices(
        db,
        target_month=payload.target_month if payload is not None else None,
        organization_id=p.org_id,
    )
    return report.to_dict()


@router.put("/{invoice_id}/mark-paid", response_model=InvoiceOut)
def mark_paid(
    invoice_id: str,
    payload: MarkPaidIn | None = None,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    """Re-derives the invoice's status from verified payments and records it."""
    return mark_invoice_paid(
        db,
        org_id=p.org_id,
        invoice_id=invoice_id,
        actor_user_id=p.user_id,
        payment_date=payload.payment_date if payload is not None else None,
        notes=payload.notes if payload is not None else None,
    )
