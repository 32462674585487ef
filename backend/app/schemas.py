# backend/app/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict


# -------------------- Invoices --------------------

class InvoiceOut(BaseModel):
    id: str
    lease_id: str
    invoice_type: str
    amount: float
    period_start: date
    due_date: date
    status: bool
    status_text: Optional[str] = None
    months_covered: int = 1
    total_paid: float = 0.0
    description: Optional[str] = None
    payment_date: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RentInvoiceOut(BaseModel):
    outcome: str  # outstanding|created|found
    invoice: InvoiceOut
    property_name: Optional[str] = None
    property_location: Optional[str] = None
    unit_label: Optional[str] = None
    monthly_rent: float
    rent_paid_until: Optional[date] = None
    next_rent_due_date: Optional[date] = None


class GenerateInvoicesIn(BaseModel):
    target_month: Optional[date] = None


class MarkPaidIn(BaseModel):
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class GenerationReportOut(BaseModel):
    target_month: date
    leases_processed: int
    invoices_created: int
    invoices_existing: int
    skipped_prepaid: int
    skipped_pre_start: int
    errors: List[dict] = Field(default_factory=list)


# -------------------- Payments --------------------

class PaymentOut(BaseModel):
    id: str
    invoice_id: Optional[str] = None
    tenant_user_id: Optional[str] = None
    amount_paid: float
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    months_paid: int = 1
    verified: bool
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class PaymentVerifyIn(BaseModel):
    notes: Optional[str] = None


class PaymentRejectIn(BaseModel):
    reason: str = Field(min_length=1)
    notes: Optional[str] = None


class PaymentDecisionOut(BaseModel):
    payment_id: str
    invoice_id: Optional[str] = None
    verified: bool
    applied_invoice_ids: List[str] = Field(default_factory=list)
    created_invoice_ids: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    rent_paid_until: Optional[date] = None
    notification: Optional[str] = None


# -------------------- Ratings --------------------

class TenantRatingOut(BaseModel):
    tenant_id: str
    name: str
    on_time_rate: Optional[int] = None
    payments: int
    bucket: str


# -------------------- Water bills --------------------

class WaterBillsInvoiceIn(BaseModel):
    water_bill_ids: List[str] = Field(min_length=1)
