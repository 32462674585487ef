# backend/tests/test_mark_invoice_paid.py
from __future__ import annotations

import json
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from app.domain.audit import audit_trail
from app.errors import NotFoundError
from app.main import create_app
from app.services.payment_verification import mark_invoice_paid


def test_mark_paid_follows_verified_payments(db, org, lease, tenant, manager, make_invoice, make_payment):
    inv = make_invoice(lease, date(2024, 5, 1))
    make_payment(inv, tenant, verified=True, payment_date=datetime(2024, 5, 4, 9, 0))

    row = mark_invoice_paid(
        db,
        org_id=org.id,
        invoice_id=inv.id,
        actor_user_id=manager.id,
        now=datetime(2024, 5, 6, 12, 0),
    )

    assert row.status is True
    assert row.status_text == "paid"
    assert row.total_paid == 5000.0
    assert row.payment_date == datetime(2024, 5, 6, 12, 0)

    trail = audit_trail(db, org_id=org.id, entity_type="Invoice", entity_id=inv.id)
    assert [a.action for a in trail] == ["invoice.mark_paid"]
    assert trail[0].actor_user_id == manager.id
    assert json.loads(trail[0].before_json)["status_text"] == "unpaid"
    assert json.loads(trail[0].after_json)["status_text"] == "paid"


def test_unverified_payments_leave_the_invoice_open(db, org, lease, tenant, manager, make_invoice, make_payment):
    inv = make_invoice(lease, date(2024, 5, 1))
    make_payment(inv, tenant, amount_paid=2000.0, verified=True)
    make_payment(inv, tenant, amount_paid=3000.0, verified=False)

    row = mark_invoice_paid(db, org_id=org.id, invoice_id=inv.id, actor_user_id=manager.id)

    assert row.status is False
    assert row.status_text == "partially_paid"
    assert row.total_paid == 2000.0
    assert row.payment_date is None


def test_explicit_payment_date_is_kept(db, org, lease, manager, make_invoice):
    inv = make_invoice(lease, date(2024, 5, 1))
    row = mark_invoice_paid(
        db,
        org_id=org.id,
        invoice_id=inv.id,
        actor_user_id=manager.id,
        payment_date=datetime(2024, 5, 2, 0, 0),
    )
    assert row.status_text == "unpaid"
    assert row.payment_date == datetime(2024, 5, 2, 0, 0)


def test_unknown_invoice_is_not_found(db, org, manager):
    with pytest.raises(NotFoundError):
        mark_invoice_paid(db, org_id=org.id, invoice_id="missing", actor_user_id=manager.id)


def test_mark_paid_endpoint(lease, tenant, manager, make_invoice, make_payment, headers):
    inv = make_invoice(lease, date(2024, 5, 1))
    make_payment(inv, tenant, verified=True)
    client = TestClient(create_app())

    denied = client.put(f"/api/invoices/{inv.id}/mark-paid", headers=headers(tenant))
    assert denied.status_code == 403

    r = client.put(f"/api/invoices/{inv.id}/mark-paid", json={"notes": "cash at office"}, headers=headers(manager))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] is True
    assert body["status_text"] == "paid"
    assert body["payment_date"] is not None

    missing = client.put("/api/invoices/nope/mark-paid", headers=headers(manager))
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Invoice not found"}
