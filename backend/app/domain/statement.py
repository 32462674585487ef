# backend/app/domain/statement.py
"""
Statement / ledger assembly.

Pure functions over invoice and payment rows (ORM objects or anything with
the same attributes). The full ledger is always built and balanced first;
period filtering then slices it and carries the pre-window balance forward
as the opening balance.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Optional

from .invoice_state import (
    InvoiceClassification,
    InvoiceState,
    classify_invoice,
    coverage_label,
)
from .periods import add_months_utc, clamp_day, month_label, parse_date, utc_today

FAILED_PAYMENT_STATUSES = {
    "failed",
    "cancelled",
    "canceled",
    "void",
    "reversed",
    "rejected",
    "timeout",
    "expired",
}

PERIOD_FILTERS = ("month", "3months", "6months", "year", "all")
_FILTER_MONTHS = {"month": 1, "3months": 3, "6months": 6, "year": 12}

_KIND_ORDER = {"charge": 0, "payment": 1}


@dataclass
class StatementTransaction:
    id: str
    kind: str  # charge|payment
    payment_type: str
    payment_method: Optional[str]
    status: str
    posted_at: Optional[datetime]
    description: str
    reference: Optional[str]
    amount: float
    balance_after: Optional[float] = None
    coverage_label: Optional[str] = None

    @property
    def posted_on(self) -> Optional[date]:
        return self.posted_at.date() if self.posted_at else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "payment_type": self.payment_type,
            "payment_method": self.payment_method,
            "status": self.status,
            "posted_at": self.posted_at.isoformat() if self.posted_at else None,
            "description": self.description,
            "reference": self.reference,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "coverage_label": self.coverage_label,
        }


@dataclass(frozen=True)
class StatementSummary:
    opening_balance: float
    closing_balance: float
    total_charges: float
    total_payments: float

    def to_dict(self) -> dict[str, float]:
        return {
            "openingBalance": self.opening_balance,
            "closingBalance": self.closing_balance,
            "totalCharges": self.total_charges,
            "totalPayments": self.total_payments,
        }


@dataclass
class StatementView:
    transactions: list[StatementTransaction]
    summary: StatementSummary
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    cutoff: Optional[date] = None
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            "period": {
                "start": self.period_start.isoformat() if self.period_start else None,
                "end": self.period_end.isoformat() if self.period_end else None,
            },
            "summary": self.summary.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
        }
        out.update(self.extras)
        return out


def _money(x: Any) -> float:
    try:
        return round(float(x or 0), 2)
    except (TypeError, ValueError):
        return 0.0


def _as_utc_datetime(value: Any) -> Optional[datetime]:
    """Naive datetimes are treated as UTC; bare dates become UTC midnight."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str) and len(value.strip()) > 10:
        try:
            return _as_utc_datetime(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    d = parse_date(value)
    if d is None:
        return None
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def short_reference(entity_id: Any) -> Optional[str]:
    s = str(entity_id or "").replace("-", "")
    return s[:8].upper() if s else None


# -----------------------------
# Charges
# -----------------------------
def charge_description(invoice: Any) -> str:
    period = parse_date(getattr(invoice, "period_start", None)) or parse_date(getattr(invoice, "due_date", None))
    label = month_label(period) if period else ""
    if str(getattr(invoice, "invoice_type", "rent") or "rent").lower() == "water":
        return f"Water Bill - {label}".strip(" -")
    return f"Rent Invoice - {label}".strip(" -")


def charge_from_invoice(
    invoice: Any,
    *,
    classification: InvoiceClassification,
    rent_paid_until: Any = None,
) -> Optional[StatementTransaction]:
    """
    Billed amount as a positive charge. Covered invoices become zero-amount
    markers carrying a coverage_label; void invoices do not appear.
    """
    if classification.state == InvoiceState.VOID:
        return None

    covered = classification.state == InvoiceState.COVERED
    return StatementTransaction(
        id=str(getattr(invoice, "id", "")),
        kind="charge",
        payment_type=str(getattr(invoice, "invoice_type", None) or "rent"),
        payment_method=None,
        status=classification.state.value,
        posted_at=_as_utc_datetime(getattr(invoice, "due_date", None) or getattr(invoice, "period_start", None)),
        description=charge_description(invoice),
        reference=short_reference(getattr(invoice, "id", None)),
        amount=0.0 if covered else _money(getattr(invoice, "amount", 0)),
        coverage_label=coverage_label(classification, rent_paid_until) if covered else None,
    )


# -----------------------------
# Payments
# -----------------------------
def payment_status(payment: Any) -> str:
    raw = str(getattr(payment, "status", "") or "").strip().lower()
    if raw in FAILED_PAYMENT_STATUSES:
        return raw
    if bool(getattr(payment, "verified", False)):
        return "verified"
    if "[REJECTED]" in str(getattr(payment, "notes", "") or ""):
        return "rejected"
    code = getattr(payment, "mpesa_response_code", None)
    if code not in (None, "") and str(code).strip() != "0":
        return "failed"
    return "pending"


def is_ledger_eligible(payment: Any) -> bool:
    """Only settled payments reduce the balance."""
    status = payment_status(payment)
    return status == "verified" and status not in FAILED_PAYMENT_STATUSES


def payment_reference(payment: Any) -> Optional[str]:
    method = str(getattr(payment, "payment_method", "") or "").lower()
    if method == "mpesa" and getattr(payment, "mpesa_receipt_number", None):
        return str(payment.mpesa_receipt_number)
    if method == "bank_transfer" and getattr(payment, "bank_reference_number", None):
        return str(payment.bank_reference_number)
    return short_reference(getattr(payment, "invoice_id", None) or getattr(payment, "id", None))


def payment_from_row(payment: Any, *, invoice_type: Optional[str] = None) -> StatementTransaction:
    method = getattr(payment, "payment_method", None)
    kind_label = "Water" if (invoice_type or "").lower() == "water" else "Rent"
    description = f"{kind_label} Payment ({method})" if method else f"{kind_label} Payment"
    return StatementTransaction(
        id=str(getattr(payment, "id", "")),
        kind="payment",
        payment_type=str(invoice_type or "rent"),
        payment_method=method,
        status=payment_status(payment),
        posted_at=_as_utc_datetime(getattr(payment, "payment_date", None) or getattr(payment, "created_at", None)),
        description=description,
        reference=payment_reference(payment),
        amount=-abs(_money(getattr(payment, "amount_paid", 0))),
    )


# -----------------------------
# Assembly
# -----------------------------
def _sort_key(txn: StatementTransaction) -> tuple:
    # undated rows sink to the end
    posted = txn.posted_at or datetime.max.replace(tzinfo=timezone.utc)
    return (posted, _KIND_ORDER.get(txn.kind, 9))


def apply_running_balance(transactions: Iterable[StatementTransaction], opening: float = 0.0) -> list[StatementTransaction]:
    """Sorts chronologically (charges before payments on ties) and stamps balance_after."""
    rows = sorted(transactions, key=_sort_key)
    running = float(opening)
    for txn in rows:
        running = round(running + txn.amount, 2)
        txn.balance_after = running
    return rows


def summarize(transactions: list[StatementTransaction], opening_balance: float = 0.0) -> StatementSummary:
    total_charges = round(sum(t.amount for t in transactions if t.amount > 0), 2)
    total_payments = round(sum(abs(t.amount) for t in transactions if t.amount < 0), 2)
    if transactions and transactions[-1].balance_after is not None:
        closing = transactions[-1].balance_after
    else:
        closing = opening_balance
    return StatementSummary(
        opening_balance=round(float(opening_balance), 2),
        closing_balance=round(float(closing), 2),
        total_charges=total_charges,
        total_payments=total_payments,
    )


def build_ledger(
    invoices: Iterable[Any],
    payments: Iterable[Any],
    *,
    rent_paid_until: Any = None,
    eligible_start: Optional[date] = None,
) -> list[StatementTransaction]:
    txns: list[StatementTransaction] = []
    invoice_types: dict[str, str] = {}

    for inv in invoices:
        invoice_types[str(getattr(inv, "id", ""))] = str(getattr(inv, "invoice_type", None) or "rent")
        classification = classify_invoice(inv, rent_paid_until=rent_paid_until, eligible_start=eligible_start)
        charge = charge_from_invoice(inv, classification=classification, rent_paid_until=rent_paid_until)
        if charge is not None:
            txns.append(charge)

    for pay in payments:
        if not is_ledger_eligible(pay):
            continue
        inv_type = invoice_types.get(str(getattr(pay, "invoice_id", "") or ""))
        if inv_type is None:
            linked = getattr(pay, "invoice", None)
            inv_type = getattr(linked, "invoice_type", None) if linked is not None else None
        txns.append(payment_from_row(pay, invoice_type=inv_type))

    return apply_running_balance(txns)


def build_statement(
    invoices: Iterable[Any],
    payments: Iterable[Any],
    *,
    rent_paid_until: Any = None,
    eligible_start: Optional[date] = None,
) -> StatementView:
    txns = build_ledger(invoices, payments, rent_paid_until=rent_paid_until, eligible_start=eligible_start)
    return StatementView(
        transactions=txns,
        summary=summarize(txns, 0.0),
        period_start=txns[0].posted_at if txns else None,
        period_end=txns[-1].posted_at if txns else None,
    )


# -----------------------------
# Period filtering
# -----------------------------
def cutoff_date(period_filter: str, today: Optional[date] = None) -> Optional[date]:
    """
    First UTC calendar day inside the window, or None for 'all'.
    Month arithmetic clamps to month end (31 Mar - 1 month = 28/29 Feb).
    """
    months = _FILTER_MONTHS.get(period_filter)
    if months is None:
        return None
    t = parse_date(today) or utc_today()
    shifted = add_months_utc(t, -months)
    return clamp_day(shifted.year, shifted.month, t.day)


def filter_statement(
    transactions: list[StatementTransaction],
    period_filter: str,
    *,
    today: Optional[date] = None,
) -> StatementView:
    """
    Slice an already balanced ledger to the window.

    Opening balance is balance_after of the last transaction strictly before
    the cutoff (0 if none); closing is the last in-window balance, or the
    opening balance when the window is empty.
    """
    if period_filter not in PERIOD_FILTERS:
        raise ValueError(f"period must be one of {', '.join(PERIOD_FILTERS)}")

    ordered = sorted(transactions, key=_sort_key)
    cutoff = cutoff_date(period_filter, today)

    if cutoff is None:
        in_range = ordered
        opening = 0.0
    else:
        in_range = [t for t in ordered if t.posted_on is not None and t.posted_on >= cutoff]
        opening = 0.0
        for t in ordered:
            if t.posted_on is None:
                continue
            if t.posted_on < cutoff:
                opening = float(t.balance_after or 0.0)
                continue
            break

    return StatementView(
        transactions=in_range,
        summary=summarize(in_range, opening),
        period_start=in_range[0].posted_at if in_range else None,
        period_end=in_range[-1].posted_at if in_range else None,
        cutoff=cutoff,
    )
