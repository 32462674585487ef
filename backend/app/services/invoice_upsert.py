# backend/app/services/invoice_upsert.py
"""
Idempotent invoice creation.

There is at most one invoice per (lease_id, invoice_type, period_start); the
unique constraint on invoices enforces it. Two requests racing to bill the
same period both try to insert, one wins, the other hits the constraint and
re-reads the winner's row. ensure_invoice() runs that primitive in a bounded
loop and reports whether the row was created or found.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..domain.periods import start_of_month_utc
from ..errors import InvoiceUnavailableError, StoreError
from ..models import ApartmentUnit, Invoice, Lease

log = logging.getLogger("rentledger.invoices")


@dataclass(frozen=True)
class InvoiceSpec:
    lease_id: str
    organization_id: int
    invoice_type: str
    period_start: date
    due_date: date
    amount: float
    description: Optional[str] = None
    months_covered: int = 1


@dataclass(frozen=True)
class EnsureInvoiceResult:
    outcome: Literal["created", "found"]
    invoice: Invoice
    attempts: int = 1

    @property
    def created(self) -> bool:
        return self.outcome == "created"


def find_invoice(db: Session, *, lease_id: str, invoice_type: str, period_start: date) -> Optional[Invoice]:
    return db.scalar(
        select(Invoice).where(
            Invoice.lease_id == lease_id,
            Invoice.invoice_type == invoice_type,
            Invoice.period_start == period_start,
        )
    )


def try_create_or_fetch(db: Session, spec: InvoiceSpec) -> Optional[EnsureInvoiceResult]:
    """
    One attempt. Returns None only when the insert collided and the winning
    row could not be read back yet; the caller decides whether to retry.
    """
    period = start_of_month_utc(spec.period_start)

    existing = find_invoice(db, lease_id=spec.lease_id, invoice_type=spec.invoice_type, period_start=period)
    if existing is not None:
        return EnsureInvoiceResult(outcome="found", invoice=existing)

    row = Invoice(
        organization_id=spec.organization_id,
        lease_id=spec.lease_id,
        invoice_type=spec.invoice_type,
        amount=float(spec.amount),
        period_start=period,
        due_date=spec.due_date,
        status=False,
        status_text="unpaid",
        months_covered=max(1, int(spec.months_covered or 1)),
        description=spec.description,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        log.info(
            "invoice insert collided; re-reading",
            extra={"lease_id": spec.lease_id, "invoice_type": spec.invoice_type},
        )
        existing = find_invoice(db, lease_id=spec.lease_id, invoice_type=spec.invoice_type, period_start=period)
        if existing is None:
            return None
        return EnsureInvoiceResult(outcome="found", invoice=existing)
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("invoice insert failed", extra={"lease_id": spec.lease_id})
        raise StoreError("Failed to write invoice.", details={"lease_id": spec.lease_id}) from e

    return EnsureInvoiceResult(outcome="created", invoice=row)


def ensure_invoice(db: Session, spec: InvoiceSpec, *, max_attempts: Optional[int] = None) -> EnsureInvoiceResult:
    attempts = int(max_attempts or settings.invoice_upsert_max_attempts)
    for attempt in range(1, attempts + 1):
        result = try_create_or_fetch(db, spec)
        if result is not None:
            if result.created:
                log.info(
                    "invoice created",
                    extra={"lease_id": spec.lease_id, "invoice_id": result.invoice.id, "attempt": attempt},
                )
            return EnsureInvoiceResult(outcome=result.outcome, invoice=result.invoice, attempts=attempt)
        log.warning("invoice upsert retry", extra={"lease_id": spec.lease_id, "attempt": attempt})

    log.error("invoice upsert exhausted retries", extra={"lease_id": spec.lease_id, "attempt": attempts})
    raise InvoiceUnavailableError(
        details={
            "lease_id": spec.lease_id,
            "invoice_type": spec.invoice_type,
            "period_start": spec.period_start.isoformat(),
        }
    )


def fetch_invoice_full(db: Session, invoice_id: str) -> Invoice:
    """Invoice with lease -> unit -> building loaded for display. Missing is fatal."""
    row = db.scalar(
        select(Invoice)
        .options(joinedload(Invoice.lease).joinedload(Lease.unit).joinedload(ApartmentUnit.building))
        .where(Invoice.id == invoice_id)
    )
    if row is None:
        log.error("invoice vanished after upsert", extra={"invoice_id": invoice_id})
        raise InvoiceUnavailableError(details={"invoice_id": invoice_id})
    return row
