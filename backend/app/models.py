# backend/app/models.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# -----------------------------
# Tenancy
# -----------------------------
class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)

    full_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="tenant")  # tenant|caretaker|manager|admin

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Buildings / units
# -----------------------------
class ApartmentBuilding(Base):
    __tablename__ = "apartment_buildings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    units: Mapped[List["ApartmentUnit"]] = relationship(back_populates="building")


class ApartmentUnit(Base):
    __tablename__ = "apartment_units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    building_id: Mapped[str] = mapped_column(String(36), ForeignKey("apartment_buildings.id"), index=True, nullable=False)
    unit_number: Mapped[str] = mapped_column(String(40), nullable=False)

    building: Mapped["ApartmentBuilding"] = relationship(back_populates="units")


# -----------------------------
# Ledger
# -----------------------------
class Lease(Base):
    """
    rent_paid_until / next_rent_due_date form the billing cursor; both are
    month-aligned and only ever move forward (see services.lease_cursor).
    """

    __tablename__ = "leases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    tenant_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("user_profiles.id"), index=True, nullable=True
    )
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("apartment_units.id"), index=True, nullable=True)

    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    monthly_rent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    rent_paid_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_rent_due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active|pending|renewed|expired|cancelled
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    tenant: Mapped[Optional["UserProfile"]] = relationship()
    unit: Mapped[Optional["ApartmentUnit"]] = relationship()
    invoices: Mapped[List["Invoice"]] = relationship(back_populates="lease")


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("lease_id", "invoice_type", "period_start", name="uq_invoices_lease_type_period"),
        Index("ix_invoices_org_due", "organization_id", "due_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    lease_id: Mapped[str] = mapped_column(String(36), ForeignKey("leases.id"), index=True, nullable=False)

    invoice_type: Mapped[str] = mapped_column(String(20), nullable=False, default="rent")  # rent|water
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    # status is the legacy paid flag; status_text carries the lifecycle
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status_text: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, default="unpaid")
    months_covered: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    description: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    lease: Mapped["Lease"] = relationship(back_populates="invoices")
    payments: Mapped[List["Payment"]] = relationship(back_populates="invoice")


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    invoice_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("invoices.id"), index=True, nullable=True)
    tenant_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("user_profiles.id"), index=True, nullable=True
    )

    amount_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)  # mpesa|bank_transfer|cash|...
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    months_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    mpesa_receipt_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    bank_reference_number: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    mpesa_response_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    invoice: Mapped[Optional["Invoice"]] = relationship(back_populates="payments")


class WaterBill(Base):
    __tablename__ = "water_bills"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    unit_id: Mapped[str] = mapped_column(String(36), ForeignKey("apartment_units.id"), index=True, nullable=False)

    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    units_consumed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")  # pending|added_to_invoice
    added_to_invoice_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("invoices.id"), nullable=True)
    added_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    added_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Communication(Base):
    __tablename__ = "communications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=True)
    sender_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    recipient_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    recipient_phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    message_text: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), nullable=False, default="sms")
    related_entity_type: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    related_entity_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    delivery_status: Mapped[str] = mapped_column(String(20), nullable=False, default="sent")  # sent|failed|skipped
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
