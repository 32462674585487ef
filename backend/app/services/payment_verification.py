# backend/app/services/payment_verification.py
"""
Manager approval / rejection of submitted payments.

Approving a rent payment allocates it across one or more months (prepayment)
and advances the lease's paid-through cursor. Everything ledger-side commits
in one transaction; the tenant SMS goes out afterwards and cannot undo it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.audit import audit_write
from ..domain.invoice_state import is_explicitly_paid
from ..domain.periods import parse_date, utc_today
from ..domain.prepayment import (
    PREPAYMENT_FLAG,
    build_due_dates,
    clamp_months_paid,
    months_request_warnings,
    paid_through_after,
    resolve_coverage_start,
    validate_amount,
)
from ..domain.statement import short_reference
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Invoice, Lease, Payment, UserProfile
from .invoice_upsert import ensure_invoice
from .lease_cursor import advance_paid_through
from .notifications import NotificationFacade, notifications
from .rent_invoices import latest_rent_invoice, rent_invoice_spec, unpaid_rent_invoices

log = logging.getLogger("rentledger.payments")

VERIFIED_NOTE = "[Verified by manager]"
REJECTED_NOTE = "[REJECTED]"


@dataclass
class PaymentDecision:
    payment: Payment
    invoice: Optional[Invoice]
    applied_invoice_ids: list[str] = field(default_factory=list)
    created_invoice_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rent_paid_until: Optional[date] = None
    notification: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment.id,
            "invoice_id": self.invoice.id if self.invoice is not None else None,
            "verified": bool(self.payment.verified),
            "applied_invoice_ids": self.applied_invoice_ids,
            "created_invoice_ids": self.created_invoice_ids,
            "warnings": self.warnings,
            "rent_paid_until": self.rent_paid_until.isoformat() if self.rent_paid_until else None,
            "notification": self.notification,
        }


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def _payment_snapshot(p: Payment) -> dict[str, Any]:
    return {
        "verified": bool(p.verified),
        "verified_by": p.verified_by,
        "invoice_id": p.invoice_id,
        "months_paid": p.months_paid,
        "notes": p.notes,
    }


def _get_payment(db: Session, *, org_id: int, payment_id: str) -> Payment:
    row = db.scalar(select(Payment).where(Payment.id == payment_id, Payment.organization_id == org_id))
    if row is None:
        raise NotFoundError("Payment", payment_id)
    return row


def recalculate_invoice_status(db: Session, invoice: Invoice) -> Invoice:
    """
    Re-derives paid status from verified payments. Caller commits.
    """
    db.flush()
    total = db.scalar(
        select(func.coalesce(func.sum(Payment.amount_paid), 0.0)).where(
            Payment.invoice_id == invoice.id, Payment.verified.is_(True)
        )
    )
    total = round(float(total or 0.0), 2)
    amount = float(invoice.amount or 0.0)

    invoice.total_paid = total
    if amount > 0 and total >= amount:
        invoice.status = True
        invoice.status_text = "paid"
    elif total > 0:
        invoice.status = False
        invoice.status_text = "partially_paid"
    else:
        invoice.status = False
        if (invoice.status_text or "").lower() not in ("overdue", "void"):
            invoice.status_text = "unpaid"
    return invoice


def _invoice_snapshot(inv: Invoice) -> dict[str, Any]:
    return {
        "status": bool(inv.status),
        "status_text": inv.status_text,
        "total_paid": float(inv.total_paid or 0.0),
        "payment_date": inv.payment_date.isoformat() if inv.payment_date else None,
    }


def mark_invoice_paid(
    db: Session,
    *,
    org_id: int,
    invoice_id: str,
    actor_user_id: Optional[str],
    payment_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    """
    Manager refresh of an invoice's paid state from its verified payments.

    The status always comes from the payments; an explicit payment_date is
    stored as given, otherwise it is stamped only when the invoice ends up paid.
    """
    invoice = db.scalar(select(Invoice).where(Invoice.id == invoice_id, Invoice.organization_id == org_id))
    if invoice is None:
        raise NotFoundError("Invoice", invoice_id)

    before = _invoice_snapshot(invoice)
    recalculate_invoice_status(db, invoice)
    if payment_date is not None:
        invoice.payment_date = payment_date
    elif invoice.status and invoice.payment_date is None:
        invoice.payment_date = now or datetime.utcnow()

    audit_write(
        db,
        org_id=org_id,
        actor_user_id=actor_user_id,
        action="invoice.mark_paid",
        entity_type="Invoice",
        entity_id=invoice.id,
        before=before,
        after=_invoice_snapshot(invoice) | {"notes": notes},
    )
    db.commit()
    db.refresh(invoice)
    log.info(
        "invoice status refreshed",
        extra={"org_id": org_id, "invoice_id": invoice.id},
    )
    return invoice


def _allocate_rent_payment(
    db: Session,
    *,
    payment: Payment,
    invoice: Invoice,
    lease: Lease,
    today: date,
    decision: PaymentDecision,
) -> None:
    """
    Spreads a rent payment over months_paid consecutive months starting at
    the oldest unpaid month (or the month after paid-through). Each month is
    ensured then marked paid; the cursor moves to the last covered month.
    Raises ValidationError before touching the payment if it cannot apply.
    """
    if PREPAYMENT_FLAG in (payment.notes or ""):
        decision.warnings.append("Payment already allocated.")
        return

    if (lease.status or "").lower() not in ("active", "pending"):
        raise ValidationError("Lease is not active and cannot accept payments.")

    months = clamp_months_paid(payment.months_paid)
    check = validate_amount(
        float(payment.amount_paid or 0),
        months,
        float(lease.monthly_rent or 0),
        tolerance=settings.prepayment_amount_tolerance,
        currency=settings.currency,
    )
    if not check.ok:
        raise ValidationError(" ".join(check.errors), field="amount_paid")
    decision.warnings.extend(check.warnings)

    unpaid = unpaid_rent_invoices(db, lease)
    oldest = unpaid[0] if unpaid else None
    latest = latest_rent_invoice(db, lease.id)
    decision.warnings.extend(months_request_warnings(months, len(unpaid)))

    start = resolve_coverage_start(
        lease_start=parse_date(lease.start_date),
        today=today,
        oldest_unpaid_due=parse_date(oldest.due_date) if oldest is not None else None,
        rent_paid_until=parse_date(lease.rent_paid_until),
        latest_invoice_due=parse_date(latest.due_date) if latest is not None else None,
    )
    due_dates = build_due_dates(start, months, settings.rent_due_day, parse_date(lease.end_date))
    if len(due_dates) < months:
        raise ValidationError("Lease end date prevents covering all requested months.", field="months_paid")

    covered: list[Invoice] = []
    for due in due_dates:
        result = ensure_invoice(db, rent_invoice_spec(lease, due))
        covered.append(result.invoice)
        if result.created:
            decision.created_invoice_ids.append(result.invoice.id)

    paid_at = payment.payment_date or datetime.utcnow()
    for inv in covered:
        if not is_explicitly_paid(inv.status, inv.status_text):
            inv.status = True
            inv.status_text = "paid"
            inv.payment_date = paid_at
            inv.total_paid = max(float(inv.total_paid or 0), float(inv.amount or 0))
        decision.applied_invoice_ids.append(inv.id)

    payment.invoice_id = covered[0].id
    payment.months_paid = months
    payment.notes = _append_note(payment.notes, PREPAYMENT_FLAG)

    cursor = advance_paid_through(lease, paid_through_after(due_dates[0], months))
    decision.rent_paid_until = cursor.rent_paid_until
    decision.invoice = covered[0]


def approve_payment(
    db: Session,
    *,
    org_id: int,
    payment_id: str,
    actor_user_id: Optional[str],
    notes: Optional[str] = None,
    today: Optional[date] = None,
    notifier: Optional[NotificationFacade] = None,
) -> PaymentDecision:
    today = today or utc_today()
    notifier = notifier or notifications

    payment = _get_payment(db, org_id=org_id, payment_id=payment_id)
    if payment.verified:
        raise ConflictError("Payment is already verified.")
    if not payment.invoice_id:
        raise NotFoundError("Invoice", None, details={"payment_id": payment_id})

    invoice = db.get(Invoice, payment.invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice", payment.invoice_id)
    lease = db.get(Lease, invoice.lease_id)

    before = _payment_snapshot(payment)
    decision = PaymentDecision(payment=payment, invoice=invoice)

    if (invoice.invoice_type or "rent") == "rent":
        if lease is None:
            raise NotFoundError("Lease", invoice.lease_id)
        _allocate_rent_payment(db, payment=payment, invoice=invoice, lease=lease, today=today, decision=decision)

    payment.verified = True
    payment.verified_by = actor_user_id
    payment.verified_at = datetime.utcnow()
    note = VERIFIED_NOTE if not notes else f"{VERIFIED_NOTE} {notes}"
    payment.notes = _append_note(payment.notes, note)

    if (invoice.invoice_type or "") == "water":
        invoice.months_covered = max(1, int(payment.months_paid or 1))
        recalculate_invoice_status(db, invoice)
        decision.applied_invoice_ids.append(invoice.id)

    audit_write(
        db,
        org_id=org_id,
        actor_user_id=actor_user_id,
        action="payment.verify",
        entity_type="Payment",
        entity_id=payment.id,
        before=before,
        after=_payment_snapshot(payment) | {"applied_invoice_ids": decision.applied_invoice_ids},
    )
    db.commit()
    log.info("payment verified", extra={"org_id": org_id, "payment_id": payment.id, "invoice_id": decision.invoice.id})

    tenant = db.get(UserProfile, payment.tenant_user_id) if payment.tenant_user_id else None
    message = (
        f"{settings.sms_sender_tag}: Your payment of {settings.currency} {float(payment.amount_paid or 0):,.2f} "
        f"has been verified and approved. Invoice #{short_reference(decision.invoice.id)} is now paid. Thank you!"
    )
    decision.notification = notifier.send(
        db,
        organization_id=org_id,
        recipient=tenant,
        message=message,
        related_entity_type="payment",
        related_entity_id=payment.id,
        sender_user_id=actor_user_id,
    )
    return decision


def reject_payment(
    db: Session,
    *,
    org_id: int,
    payment_id: str,
    actor_user_id: Optional[str],
    reason: str,
    notes: Optional[str] = None,
    notifier: Optional[NotificationFacade] = None,
) -> PaymentDecision:
    """Annotates the payment; the row stays unverified and is never deleted."""
    notifier = notifier or notifications

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required.", field="reason")

    payment = _get_payment(db, org_id=org_id, payment_id=payment_id)
    if payment.verified:
        raise ConflictError("Cannot reject an already verified payment.")

    before = _payment_snapshot(payment)
    suffix = f" {notes.strip()}" if notes and notes.strip() else ""
    payment.notes = _append_note(payment.notes, f"{REJECTED_NOTE} Reason: {reason}.{suffix}")
    payment.verified = False

    audit_write(
        db,
        org_id=org_id,
        actor_user_id=actor_user_id,
        action="payment.reject",
        entity_type="Payment",
        entity_id=payment.id,
        before=before,
        after=_payment_snapshot(payment),
    )
    db.commit()
    log.info("payment rejected", extra={"org_id": org_id, "payment_id": payment.id})

    invoice = db.get(Invoice, payment.invoice_id) if payment.invoice_id else None
    tenant = db.get(UserProfile, payment.tenant_user_id) if payment.tenant_user_id else None
    message = (
        f"{settings.sms_sender_tag}: Your payment of {settings.currency} {float(payment.amount_paid or 0):,.2f} "
        f"could not be verified. Reason: {reason}. Please contact management."
    )
    decision = PaymentDecision(payment=payment, invoice=invoice)
    decision.notification = notifier.send(
        db,
        organization_id=org_id,
        recipient=tenant,
        message=message,
        related_entity_type="payment",
        related_entity_id=payment.id,
        sender_user_id=actor_user_id,
    )
    return decision
