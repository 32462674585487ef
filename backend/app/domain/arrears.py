# backend/app/domain/arrears.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Optional

from .invoice_state import InvoiceState, classify_invoice
from .periods import parse_date

PAID_SLACK = 0.05


def _f(x: Any) -> float:
    try:
        return float(x or 0)
    except (TypeError, ValueError):
        return 0.0


def outstanding_amount(invoice: Any) -> float:
    return max(0.0, _f(getattr(invoice, "amount", 0)) - _f(getattr(invoice, "total_paid", 0)))


def is_effectively_paid(invoice: Any) -> bool:
    """Paid flag, or verified payments within a few cents of the billed amount."""
    return _f(getattr(invoice, "total_paid", 0)) >= _f(getattr(invoice, "amount", 0)) - PAID_SLACK


@dataclass
class LeaseArrears:
    lease_id: str
    tenant_user_id: Optional[str] = None
    tenant_name: Optional[str] = None
    tenant_phone: Optional[str] = None
    building_id: Optional[str] = None
    building_name: Optional[str] = None
    unit_number: str = ""
    current_balance: float = 0.0
    arrears_rent: float = 0.0
    arrears_water: float = 0.0
    open_invoices_count: int = 0
    oldest_due_date: Optional[date] = None
    last_payment_date: Optional[date] = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["oldest_due_date"] = self.oldest_due_date.isoformat() if self.oldest_due_date else None
        d["last_payment_date"] = self.last_payment_date.isoformat() if self.last_payment_date else None
        return d


def accumulate_arrears(
    row: LeaseArrears,
    invoices: Iterable[Any],
    *,
    today: date,
    rent_paid_until: Any = None,
    eligible_start: Optional[date] = None,
) -> LeaseArrears:
    """
    Adds every past-due, still-owed invoice to the lease row.

    Skipped: void, not yet due (due >= today), covered by the paid-through
    pointer or before lease eligibility, and effectively paid.
    """
    for inv in invoices:
        inv_type = str(getattr(inv, "invoice_type", "") or "").lower()
        if inv_type not in ("rent", "water"):
            continue

        due = parse_date(getattr(inv, "due_date", None))
        if due is None or not due < today:
            continue

        state = classify_invoice(inv, rent_paid_until=rent_paid_until, eligible_start=eligible_start).state
        if state != InvoiceState.UNPAID:
            continue
        if is_effectively_paid(inv):
            continue

        owed = outstanding_amount(inv)
        if owed <= 0:
            continue

        row.open_invoices_count += 1
        row.current_balance = round(row.current_balance + owed, 2)
        if inv_type == "rent":
            row.arrears_rent = round(row.arrears_rent + owed, 2)
        else:
            row.arrears_water = round(row.arrears_water + owed, 2)
        if row.oldest_due_date is None or due < row.oldest_due_date:
            row.oldest_due_date = due
    return row


def note_payment(row: LeaseArrears, payment_date: Any) -> None:
    d = parse_date(payment_date)
    if d is not None and (row.last_payment_date is None or d > row.last_payment_date):
        row.last_payment_date = d


def sort_arrears(rows: Iterable[LeaseArrears]) -> list[LeaseArrears]:
    """Largest balance first, then oldest due date, then tenant name."""
    return sorted(
        rows,
        key=lambda r: (
            -r.current_balance,
            r.oldest_due_date.toordinal() if r.oldest_due_date else math.inf,
            (r.tenant_name or "").lower(),
        ),
    )
