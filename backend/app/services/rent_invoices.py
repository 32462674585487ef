# backend/app/services/rent_invoices.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.billing_cursor import BillingCursor, lease_eligible_start
from ..domain.invoice_state import InvoiceState, classify_invoice
from ..domain.periods import month_label, rent_due_date_for_period, start_of_month_utc, utc_today
from ..errors import StoreError, ValidationError
from ..models import Invoice, Lease
from .invoice_upsert import InvoiceSpec, ensure_invoice, fetch_invoice_full
from .lease_cursor import apply_billing_cursor, heal_cursor

log = logging.getLogger("rentledger.invoices")


@dataclass(frozen=True)
class RentInvoiceResolution:
    """
    outcome:
      outstanding - an older unpaid invoice was returned instead of billing a new period
      created     - a new invoice was inserted for the candidate period
      found       - the candidate period was already invoiced
    """

    outcome: Literal["outstanding", "created", "found"]
    invoice: Invoice
    period_start: date


def monthly_rent_or_raise(lease: Lease) -> float:
    rent = lease.monthly_rent
    try:
        value = float(rent)
    except (TypeError, ValueError):
        value = float("nan")
    if value != value or value <= 0:
        raise ValidationError("Monthly rent is not configured for your lease.", field="monthly_rent")
    return value


def rent_invoice_spec(lease: Lease, period_start: date, *, description: Optional[str] = None) -> InvoiceSpec:
    period = start_of_month_utc(period_start)
    return InvoiceSpec(
        lease_id=lease.id,
        organization_id=lease.organization_id,
        invoice_type="rent",
        period_start=period,
        due_date=rent_due_date_for_period(period, settings.rent_due_day),
        amount=monthly_rent_or_raise(lease),
        description=description or f"Rent for {month_label(period)}",
        months_covered=1,
    )


def rent_invoices_for_lease(db: Session, lease_id: str) -> list[Invoice]:
    return list(
        db.scalars(
            select(Invoice)
            .where(Invoice.lease_id == lease_id, Invoice.invoice_type == "rent")
            .order_by(asc(Invoice.period_start), asc(Invoice.due_date))
        ).all()
    )


def unpaid_rent_invoices(db: Session, lease: Lease) -> list[Invoice]:
    """Rent invoices the classifier still considers owed, oldest first (covered/pre-start are skipped)."""
    eligible = lease_eligible_start(lease.start_date)
    return [
        inv
        for inv in rent_invoices_for_lease(db, lease.id)
        if classify_invoice(inv, rent_paid_until=lease.rent_paid_until, eligible_start=eligible).state
        == InvoiceState.UNPAID
    ]


def find_oldest_unpaid_rent_invoice(db: Session, lease: Lease) -> Optional[Invoice]:
    unpaid = unpaid_rent_invoices(db, lease)
    return unpaid[0] if unpaid else None


def latest_rent_invoice(db: Session, lease_id: str) -> Optional[Invoice]:
    return db.scalar(
        select(Invoice)
        .where(Invoice.lease_id == lease_id, Invoice.invoice_type == "rent")
        .order_by(desc(Invoice.period_start))
        .limit(1)
    )


def resolve_rent_invoice(db: Session, lease: Lease, *, today: Optional[date] = None) -> RentInvoiceResolution:
    """
    The invoice a tenant should pay next.

    An older unpaid invoice always wins. Otherwise the billing cursor picks the
    candidate period and ensure_invoice() creates or finds it, so calling this
    twice without an intervening payment returns the same invoice.
    """
    today = today or utc_today()
    monthly_rent_or_raise(lease)

    eligible = lease_eligible_start(lease.start_date)
    cursor = heal_cursor(lease)
    db.commit()

    outstanding = find_oldest_unpaid_rent_invoice(db, lease)
    if outstanding is not None:
        return RentInvoiceResolution(
            outcome="outstanding",
            invoice=fetch_invoice_full(db, outstanding.id),
            period_start=outstanding.period_start,
        )

    candidate = cursor.resolve_candidate(today=today, eligible_start=eligible)
    result = ensure_invoice(db, rent_invoice_spec(lease, candidate))

    if apply_billing_cursor(lease, BillingCursor(rent_paid_until=None, next_rent_due_date=candidate)):
        db.commit()

    return RentInvoiceResolution(
        outcome=result.outcome,
        invoice=fetch_invoice_full(db, result.invoice.id),
        period_start=candidate,
    )


# -----------------------------
# Monthly generation (scheduled)
# -----------------------------
@dataclass
class GenerationReport:
    target_month: date
    leases_processed: int = 0
    invoices_created: int = 0
    invoices_existing: int = 0
    skipped_prepaid: int = 0
    skipped_pre_start: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_month": self.target_month.isoformat(),
            "leases_processed": self.leases_processed,
            "invoices_created": self.invoices_created,
            "invoices_existing": self.invoices_existing,
            "skipped_prepaid": self.skipped_prepaid,
            "skipped_pre_start": self.skipped_pre_start,
            "errors": self.errors,
        }


def generate_monthly_invoices(
    db: Session,
    *,
    target_month: Optional[date] = None,
    organization_id: Optional[int] = None,
) -> GenerationReport:
    """
    Bills target_month (default: current UTC month) for every active lease.

    Leases whose eligibility starts later, or already paid through the month,
    are skipped. A failing lease is reported and does not stop the run.
    """
    period = start_of_month_utc(target_month or utc_today())
    report = GenerationReport(target_month=period)

    q = select(Lease).where(Lease.status == "active")
    if organization_id is not None:
        q = q.where(Lease.organization_id == organization_id)
    leases = list(db.scalars(q.order_by(asc(Lease.created_at))).all())

    for lease in leases:
        report.leases_processed += 1
        try:
            eligible = lease_eligible_start(lease.start_date)
            if eligible is not None and period < eligible:
                report.skipped_pre_start += 1
                continue

            cursor = BillingCursor.from_lease(lease)
            if cursor.rent_paid_until is not None and cursor.rent_paid_until >= period:
                report.skipped_prepaid += 1
                continue

            spec = rent_invoice_spec(lease, period, description=f"Monthly rent for {month_label(period)}")
            result = ensure_invoice(db, spec)
            if result.created:
                report.invoices_created += 1
            else:
                report.invoices_existing += 1
        except ValidationError as e:
            report.errors.append({"lease_id": lease.id, "error": e.message})
        except OperationalError:
            # retried by the worker
            db.rollback()
            raise
        except StoreError as e:
            if isinstance(e.__cause__, OperationalError):
                raise e.__cause__
            log.exception("monthly invoice generation failed", extra={"lease_id": lease.id})
            report.errors.append({"lease_id": lease.id, "error": e.message})
        except Exception as e:
            db.rollback()
            log.exception("monthly invoice generation failed", extra={"lease_id": lease.id})
            report.errors.append({"lease_id": lease.id, "error": str(e)})

    log.info(
        "monthly invoices generated",
        extra={"org_id": organization_id, "report": report.to_dict()},
    )
    return report
