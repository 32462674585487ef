# backend/app/domain/invoice_state.py
"""
Invoice classification.

Invoices carry a legacy boolean `status` plus a free-text `status_text` with
several spellings of "paid". classify_invoice() reads them once, together
with the lease's paid-through pointer and eligibility start, and everything
downstream (statements, arrears, ratings) switches on InvoiceState.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional

from .periods import parse_date, start_of_month_utc

PAID_SPELLINGS = {"paid", "verified", "settled", "true"}
VOID_SPELLINGS = {"void", "voided"}


class InvoiceState(str, Enum):
    UNPAID = "unpaid"
    COVERED = "covered"
    PAID = "paid"
    VOID = "void"


class CoverageReason(str, Enum):
    PAID_THROUGH = "paid_through"
    PRE_START = "pre_start"


@dataclass(frozen=True)
class InvoiceClassification:
    state: InvoiceState
    reason: Optional[CoverageReason] = None

    @property
    def paid_for_reporting(self) -> bool:
        return self.state in (InvoiceState.COVERED, InvoiceState.PAID)

    @property
    def is_unpaid(self) -> bool:
        return self.state == InvoiceState.UNPAID


def _norm(v: Any) -> str:
    return str(v or "").strip().lower()


def is_explicitly_paid(status: Any, status_text: Any = None) -> bool:
    if status is True:
        return True
    if isinstance(status, str) and _norm(status) in PAID_SPELLINGS:
        return True
    return _norm(status_text) in PAID_SPELLINGS


def invoice_due_month(invoice: Any) -> Optional[date]:
    d = parse_date(getattr(invoice, "due_date", None)) or parse_date(getattr(invoice, "period_start", None))
    return start_of_month_utc(d) if d else None


def classify_invoice(
    invoice: Any,
    *,
    rent_paid_until: Any = None,
    eligible_start: Optional[date] = None,
) -> InvoiceClassification:
    """
    Precedence: VOID > PAID > COVERED > UNPAID.

    Coverage only applies to rent invoices:
      - PAID_THROUGH: due month <= month of rent_paid_until
      - PRE_START:    due month < lease eligibility start month
    """
    if _norm(getattr(invoice, "status_text", None)) in VOID_SPELLINGS:
        return InvoiceClassification(InvoiceState.VOID)

    if is_explicitly_paid(getattr(invoice, "status", None), getattr(invoice, "status_text", None)):
        return InvoiceClassification(InvoiceState.PAID)

    if _norm(getattr(invoice, "invoice_type", "rent")) == "rent":
        due_month = invoice_due_month(invoice)
        if due_month is not None:
            paid_through = parse_date(rent_paid_until)
            if paid_through is not None and due_month <= start_of_month_utc(paid_through):
                return InvoiceClassification(InvoiceState.COVERED, CoverageReason.PAID_THROUGH)
            if eligible_start is not None and due_month < start_of_month_utc(eligible_start):
                return InvoiceClassification(InvoiceState.COVERED, CoverageReason.PRE_START)

    return InvoiceClassification(InvoiceState.UNPAID)


def coverage_label(classification: InvoiceClassification, rent_paid_until: Any = None) -> Optional[str]:
    if classification.state != InvoiceState.COVERED:
        return None
    if classification.reason == CoverageReason.PRE_START:
        return "Before lease start"
    paid_through = parse_date(rent_paid_until)
    if paid_through is not None:
        return f"Covered by prepayment (paid through {paid_through.isoformat()})"
    return "Covered by prepayment"
