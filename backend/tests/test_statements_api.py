# backend/tests/test_statements_api.py
from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from app.domain.periods import add_months_utc
from app.main import create_app
from app.services.statements import tenant_statement


@pytest.fixture
def history(lease, tenant, make_invoice, make_payment):
    april = make_invoice(lease, date(2024, 4, 1), status=True, status_text="paid")
    make_invoice(lease, date(2024, 5, 1))
    make_payment(
        april,
        tenant,
        verified=True,
        payment_date=datetime(2024, 4, 5, 0, 0),
        mpesa_receipt_number="SGH71KX2",
    )
    make_payment(april, tenant, verified=False, payment_date=datetime(2024, 4, 6, 0, 0))
    return lease


def test_statement_balances_charges_against_verified_payments(db, org, tenant, history):
    view = tenant_statement(db, org_id=org.id, tenant=tenant, period="all", today=date(2024, 5, 20))

    assert [t.kind for t in view.transactions] == ["charge", "payment", "charge"]
    assert [t.balance_after for t in view.transactions] == [5000.0, 0.0, 5000.0]
    assert view.transactions[1].reference == "SGH71KX2"
    assert view.summary.closing_balance == 5000.0
    assert view.summary.total_payments == 5000.0

    body = view.to_dict()
    assert body["tenant"]["name"] == "Jane Wanjiru"
    assert body["lease"]["unit_number"] == "A4"
    assert body["lease"]["property_name"] == "Greenview Block A"
    assert body["filter"] == "all"


def test_statement_window_carries_the_opening_balance(db, org, tenant, history):
    view = tenant_statement(db, org_id=org.id, tenant=tenant, period="month", today=date(2024, 5, 20))

    assert [t.description for t in view.transactions] == ["Rent Invoice - May 2024"]
    assert view.summary.opening_balance == 0.0
    assert view.summary.closing_balance == 5000.0
    assert view.cutoff == date(2024, 4, 20)


def test_covered_months_show_as_zero_markers(db, org, make_lease, tenant, make_invoice):
    lease = make_lease(tenant, start_date=date(2024, 4, 1), rent_paid_until=date(2024, 5, 1))
    make_invoice(lease, date(2024, 5, 1))

    view = tenant_statement(db, org_id=org.id, tenant=tenant, lease_id=lease.id, period="all")
    assert len(view.transactions) == 1
    assert view.transactions[0].amount == 0.0
    assert view.transactions[0].coverage_label == "Covered by prepayment (paid through 2024-05-01)"


def test_tenant_without_a_lease_gets_an_empty_statement(db, org, make_user):
    loner = make_user("tenant", full_name=None)
    view = tenant_statement(db, org_id=org.id, tenant=loner, period="all")
    body = view.to_dict()
    assert body["transactions"] == []
    assert body["lease"] is None
    assert body["tenant"]["name"] == "Tenant"
    assert body["summary"]["closingBalance"] == 0.0


def test_my_statement_endpoint(tenant, history, headers):
    client = TestClient(create_app())
    r = client.get("/api/statements/me", params={"period": "all"}, headers=headers(tenant))
    assert r.status_code == 200
    body = r.json()
    assert body["summary"]["totalCharges"] == 10000.0
    assert body["summary"]["closingBalance"] == 5000.0
    assert len(body["transactions"]) == 3


def test_unknown_period_is_a_422(tenant, history, headers):
    client = TestClient(create_app())
    r = client.get("/api/statements/me", params={"period": "fortnight"}, headers=headers(tenant))
    assert r.status_code == 422


def test_statement_access_rules(tenant, manager, make_user, history, headers):
    client = TestClient(create_app())
    other = make_user("tenant", full_name="Other Tenant")

    peek = client.get(f"/api/statements/tenants/{tenant.id}", headers=headers(other))
    assert peek.status_code == 404

    own = client.get(f"/api/statements/tenants/{tenant.id}", headers=headers(tenant))
    assert own.status_code == 200

    mgr = client.get(f"/api/statements/tenants/{tenant.id}", headers=headers(manager))
    assert mgr.status_code == 200
    assert mgr.json()["tenant"]["id"] == tenant.id


def test_statement_requires_org_context(tenant, history):
    client = TestClient(create_app())
    r = client.get("/api/statements/me", headers={"X-User-Id": tenant.id})
    assert r.status_code == 401

    unknown = client.get("/api/statements/me", headers={"X-Org-Slug": "nope", "X-User-Id": tenant.id})
    assert unknown.status_code == 401


def test_long_tenancy_keeps_its_oldest_arrears(db, org, tenant, make_lease, make_invoice, make_payment):
    lease = make_lease(tenant, start_date=date(2020, 1, 1))
    for i in range(50):
        period = add_months_utc(date(2020, 1, 1), i)
        if i < 2:
            make_invoice(lease, period)
            continue
        inv = make_invoice(lease, period, status=True, status_text="paid")
        make_payment(inv, tenant, verified=True, payment_date=datetime(period.year, period.month, 6, 9, 0))

    view = tenant_statement(db, org_id=org.id, tenant=tenant, lease_id=lease.id, period="all")

    assert view.summary.total_charges == 250000.0
    assert view.summary.total_payments == 240000.0
    assert view.summary.closing_balance == 10000.0
    assert view.transactions[-1].balance_after == 10000.0
    # display is capped at the newest 48 charges; the balance still carries the first two months
    assert sum(1 for t in view.transactions if t.kind == "charge") == 48
    assert view.transactions[0].balance_after == 15000.0
