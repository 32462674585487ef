# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# Settings are read at import time; point the app at a throwaway database first.
_DB_DIR = tempfile.mkdtemp(prefix="rentledger-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'ledger.db')}"
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTH_MODE", "dev")

from datetime import date, datetime

import pytest

from app import models  # noqa: F401
from app.db import Base, SessionLocal, engine
from app.models import (
    ApartmentBuilding,
    ApartmentUnit,
    Invoice,
    Lease,
    Organization,
    Payment,
    UserProfile,
)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_tables(_schema):
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def org(db):
    row = Organization(slug="greenview", name="Greenview Apartments", created_at=datetime.utcnow())
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def make_user(db, org):
    def _make(role: str = "tenant", full_name: str | None = "Jane Wanjiru", phone: str | None = "+254700000001"):
        row = UserProfile(
            organization_id=org.id,
            full_name=full_name,
            email=f"{role}@greenview.local",
            phone_number=phone,
            role=role,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


@pytest.fixture
def tenant(make_user):
    return make_user("tenant")


@pytest.fixture
def manager(make_user):
    return make_user("manager", full_name="Peter Otieno", phone=None)


@pytest.fixture
def unit(db, org):
    building = ApartmentBuilding(organization_id=org.id, name="Greenview Block A", location="Kilimani")
    db.add(building)
    db.commit()
    row = ApartmentUnit(organization_id=org.id, building_id=building.id, unit_number="A4")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def make_lease(db, org, unit):
    def _make(tenant_user, **kw):
        row = Lease(
            organization_id=org.id,
            tenant_user_id=tenant_user.id if tenant_user is not None else None,
            unit_id=kw.pop("unit_id", unit.id),
            start_date=kw.pop("start_date", date(2024, 3, 15)),
            end_date=kw.pop("end_date", None),
            monthly_rent=kw.pop("monthly_rent", 5000.0),
            status=kw.pop("status", "active"),
            created_at=datetime.utcnow(),
            **kw,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


@pytest.fixture
def lease(make_lease, tenant):
    return make_lease(tenant)


@pytest.fixture
def make_invoice(db):
    def _make(lease_row, period_start: date, **kw):
        row = Invoice(
            organization_id=lease_row.organization_id,
            lease_id=lease_row.id,
            invoice_type=kw.pop("invoice_type", "rent"),
            amount=kw.pop("amount", float(lease_row.monthly_rent)),
            period_start=period_start,
            due_date=kw.pop("due_date", period_start.replace(day=5)),
            status=kw.pop("status", False),
            status_text=kw.pop("status_text", "unpaid"),
            **kw,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


@pytest.fixture
def make_payment(db):
    def _make(invoice_row, tenant_user, **kw):
        row = Payment(
            organization_id=invoice_row.organization_id,
            invoice_id=invoice_row.id,
            tenant_user_id=tenant_user.id,
            amount_paid=kw.pop("amount_paid", float(invoice_row.amount)),
            payment_method=kw.pop("payment_method", "mpesa"),
            payment_date=kw.pop("payment_date", datetime(2024, 6, 3, 9, 0)),
            months_paid=kw.pop("months_paid", 1),
            verified=kw.pop("verified", False),
            **kw,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


@pytest.fixture
def headers(org):
    def _make(user) -> dict[str, str]:
        return {"X-Org-Slug": org.slug, "X-User-Id": user.id}

    return _make
