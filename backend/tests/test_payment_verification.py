# backend/tests/test_payment_verification.py
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from app.db import SessionLocal
from app.domain.prepayment import PREPAYMENT_FLAG
from app.domain.statement import short_reference
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models import AuditEvent, Communication, Invoice, Lease, Payment
from app.services.notifications import NotificationFacade
from app.services.payment_verification import approve_payment, recalculate_invoice_status
from app.services.rent_invoices import resolve_rent_invoice

TODAY = date(2024, 4, 10)


class RecordingSender:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    def __call__(self, phone: str, message: str) -> None:
        self.sent.append((phone, message))


def _boom(phone: str, message: str) -> None:
    raise RuntimeError("gateway down")


def test_single_month_approval_marks_invoice_and_moves_cursor(db, org, lease, tenant, manager, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1))
    payment = make_payment(april, tenant, amount_paid=5000.0)
    sender = RecordingSender()

    decision = approve_payment(
        db,
        org_id=org.id,
        payment_id=payment.id,
        actor_user_id=manager.id,
        notes="receipt checked",
        today=TODAY,
        notifier=NotificationFacade(sender=sender),
    )

    assert decision.applied_invoice_ids == [april.id]
    assert decision.created_invoice_ids == []
    assert decision.rent_paid_until == date(2024, 4, 1)
    assert decision.notification == "sent"

    db.refresh(lease)
    assert lease.rent_paid_until == date(2024, 4, 1)
    assert lease.next_rent_due_date == date(2024, 5, 1)

    db.refresh(april)
    assert april.status is True
    assert april.status_text == "paid"

    db.refresh(payment)
    assert payment.verified is True
    assert payment.verified_by == manager.id
    assert PREPAYMENT_FLAG in payment.notes
    assert "[Verified by manager] receipt checked" in payment.notes

    audit = db.scalars(select(AuditEvent).where(AuditEvent.entity_id == payment.id)).all()
    assert [a.action for a in audit] == ["payment.verify"]

    assert sender.sent == [
        (
            "+254700000001",
            f"RES: Your payment of KES 5,000.00 has been verified and approved. "
            f"Invoice #{short_reference(april.id)} is now paid. Thank you!",
        )
    ]


def test_prepayment_creates_and_covers_future_months(db, org, lease, tenant, manager, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1))
    payment = make_payment(april, tenant, amount_paid=15000.0, months_paid=3)

    decision = approve_payment(
        db,
        org_id=org.id,
        payment_id=payment.id,
        actor_user_id=manager.id,
        today=TODAY,
        notifier=NotificationFacade(sender=None),
    )

    assert len(decision.applied_invoice_ids) == 3
    assert len(decision.created_invoice_ids) == 2
    assert decision.rent_paid_until == date(2024, 6, 1)
    assert decision.notification == "skipped"
    assert any("Prepayment exceeds current unpaid invoices" in w for w in decision.warnings)

    rows = db.scalars(select(Invoice).where(Invoice.lease_id == lease.id).order_by(Invoice.period_start)).all()
    assert [r.period_start for r in rows] == [date(2024, 4, 1), date(2024, 5, 1), date(2024, 6, 1)]
    assert all(r.status for r in rows)

    db.refresh(lease)
    assert lease.next_rent_due_date == date(2024, 7, 1)

    # the next rent invoice picks up after the prepaid months
    nxt = resolve_rent_invoice(db, lease, today=TODAY)
    assert nxt.outcome == "created"
    assert nxt.period_start == date(2024, 7, 1)


def test_payment_on_a_covered_invoice_applies_after_paid_through(
    db, org, make_lease, tenant, manager, make_invoice, make_payment
):
    lease = make_lease(tenant, rent_paid_until=date(2024, 9, 1), next_rent_due_date=date(2024, 10, 1))
    april = make_invoice(lease, date(2024, 4, 1))
    payment = make_payment(april, tenant)

    decision = approve_payment(
        db,
        org_id=org.id,
        payment_id=payment.id,
        actor_user_id=manager.id,
        today=TODAY,
        notifier=NotificationFacade(sender=None),
    )

    october = db.get(Invoice, decision.applied_invoice_ids[0])
    assert october.period_start == date(2024, 10, 1)
    assert decision.created_invoice_ids == [october.id]

    db.refresh(payment)
    assert payment.invoice_id == october.id

    db.refresh(lease)
    assert lease.rent_paid_until == date(2024, 10, 1)
    assert lease.next_rent_due_date == date(2024, 11, 1)


def test_failed_notification_does_not_undo_the_approval(db, org, lease, tenant, manager, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1))
    payment = make_payment(april, tenant)
    notifier = NotificationFacade(sender=_boom)

    decision = approve_payment(
        db,
        org_id=org.id,
        payment_id=payment.id,
        actor_user_id=manager.id,
        today=TODAY,
        notifier=notifier,
    )
    assert decision.notification == "failed"
    assert notifier.counters["failed"] == 1

    fresh = SessionLocal()
    try:
        assert fresh.get(Payment, payment.id).verified is True
        assert fresh.get(Lease, lease.id).rent_paid_until == date(2024, 4, 1)
        log = fresh.scalars(select(Communication).where(Communication.related_entity_id == payment.id)).one()
        assert log.delivery_status == "failed"
        assert log.error == "gateway down"
    finally:
        fresh.close()


def test_amount_mismatch_is_rejected_without_side_effects(db, org, lease, tenant, manager, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1))
    payment = make_payment(april, tenant, amount_paid=3000.0)

    with pytest.raises(ValidationError):
        approve_payment(db, org_id=org.id, payment_id=payment.id, actor_user_id=manager.id, today=TODAY)

    db.rollback()
    db.refresh(payment)
    db.refresh(lease)
    assert payment.verified is False
    assert lease.rent_paid_until is None


def test_already_verified_payment_conflicts(db, org, lease, tenant, manager, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1), status=True, status_text="paid")
    payment = make_payment(april, tenant, verified=True)

    with pytest.raises(ConflictError) as exc:
        approve_payment(db, org_id=org.id, payment_id=payment.id, actor_user_id=manager.id, today=TODAY)
    assert exc.value.message == "Payment is already verified."


def test_payment_from_another_org_is_not_found(db, org, lease, tenant, manager, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1))
    payment = make_payment(april, tenant)

    with pytest.raises(NotFoundError):
        approve_payment(db, org_id=org.id + 1, payment_id=payment.id, actor_user_id=manager.id, today=TODAY)


def test_water_payments_recalculate_the_invoice(db, org, lease, tenant, manager, make_invoice, make_payment):
    water = make_invoice(lease, date(2024, 5, 1), invoice_type="water", amount=800.0)
    first = make_payment(water, tenant, amount_paid=500.0)
    second = make_payment(water, tenant, amount_paid=300.0)
    quiet = NotificationFacade(sender=None)

    approve_payment(db, org_id=org.id, payment_id=first.id, actor_user_id=manager.id, today=TODAY, notifier=quiet)
    db.refresh(water)
    assert water.total_paid == 500.0
    assert water.status is False
    assert water.status_text == "partially_paid"

    approve_payment(db, org_id=org.id, payment_id=second.id, actor_user_id=manager.id, today=TODAY, notifier=quiet)
    db.refresh(water)
    assert water.total_paid == 800.0
    assert water.status is True
    assert water.status_text == "paid"

    # water never touches the rent cursor
    db.refresh(lease)
    assert lease.rent_paid_until is None


def test_recalculate_keeps_overdue_when_nothing_is_verified(db, lease, make_invoice):
    inv = make_invoice(lease, date(2024, 5, 1), invoice_type="water", amount=800.0, status_text="overdue")
    recalculate_invoice_status(db, inv)
    assert inv.total_paid == 0.0
    assert inv.status_text == "overdue"
