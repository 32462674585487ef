# backend/app/services/water_billing.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.audit import audit_write
from ..domain.periods import month_label, rent_due_date_for_period, start_of_month_utc
from ..errors import ConflictError, LedgerError, NotFoundError, ValidationError
from ..models import Lease, WaterBill
from .invoice_upsert import InvoiceSpec, ensure_invoice
from .ownership import OPEN_LEASE_STATUSES

log = logging.getLogger("rentledger.water")


@dataclass(frozen=True)
class WaterInvoiceResult:
    water_bill_id: str
    invoice_id: str
    outcome: Literal["created", "found"]


@dataclass
class BulkWaterInvoiceReport:
    invoiced: list[WaterInvoiceResult] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoiced": [r.__dict__ for r in self.invoiced],
            "errors": self.errors,
        }


def _lease_for_unit(db: Session, *, org_id: int, unit_id: str) -> Optional[Lease]:
    return db.scalar(
        select(Lease)
        .where(
            Lease.organization_id == org_id,
            Lease.unit_id == unit_id,
            Lease.status.in_(OPEN_LEASE_STATUSES),
        )
        .order_by(desc(Lease.created_at))
        .limit(1)
    )


def invoice_water_bill(
    db: Session,
    *,
    org_id: int,
    water_bill_id: str,
    actor_user_id: Optional[str] = None,
) -> WaterInvoiceResult:
    """
    Turns a pending water bill into the lease's water invoice for its billing month.

    The invoice is keyed like rent (lease, 'water', month) so re-running is
    safe; an already-invoiced bill is a conflict.
    """
    bill = db.scalar(select(WaterBill).where(WaterBill.id == water_bill_id, WaterBill.organization_id == org_id))
    if bill is None:
        raise NotFoundError("Water bill", water_bill_id)
    if bill.status != "pending" or bill.added_to_invoice_id:
        raise ConflictError("Water bill has already been invoiced.", details={"invoice_id": bill.added_to_invoice_id})

    amount = float(bill.amount or 0)
    if amount <= 0:
        raise ValidationError("Water bill amount must be greater than zero.", field="amount")

    lease = _lease_for_unit(db, org_id=org_id, unit_id=bill.unit_id)
    if lease is None:
        raise NotFoundError("Active lease for unit", bill.unit_id)

    period = start_of_month_utc(bill.billing_month)
    result = ensure_invoice(
        db,
        InvoiceSpec(
            lease_id=lease.id,
            organization_id=org_id,
            invoice_type="water",
            period_start=period,
            due_date=rent_due_date_for_period(period, settings.rent_due_day),
            amount=amount,
            description=f"Water bill for {month_label(period)}",
        ),
    )

    bill.status = "added_to_invoice"
    bill.added_to_invoice_id = result.invoice.id
    bill.added_by = actor_user_id
    bill.added_at = datetime.utcnow()

    audit_write(
        db,
        org_id=org_id,
        actor_user_id=actor_user_id,
        action="water_bill.invoice",
        entity_type="WaterBill",
        entity_id=bill.id,
        before={"status": "pending"},
        after={"status": bill.status, "invoice_id": result.invoice.id, "outcome": result.outcome},
    )
    db.commit()

    log.info("water bill invoiced", extra={"org_id": org_id, "invoice_id": result.invoice.id, "lease_id": lease.id})
    return WaterInvoiceResult(water_bill_id=bill.id, invoice_id=result.invoice.id, outcome=result.outcome)


def invoice_water_bills(
    db: Session,
    *,
    org_id: int,
    water_bill_ids: list[str],
    actor_user_id: Optional[str] = None,
) -> BulkWaterInvoiceReport:
    report = BulkWaterInvoiceReport()
    for bill_id in water_bill_ids:
        try:
            report.invoiced.append(
                invoice_water_bill(db, org_id=org_id, water_bill_id=bill_id, actor_user_id=actor_user_id)
            )
        except LedgerError as e:
            db.rollback()
            report.errors.append({"water_bill_id": bill_id, "error": e.message})
    return report
