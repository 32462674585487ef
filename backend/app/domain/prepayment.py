# backend/app/domain/prepayment.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from .billing_cursor import lease_eligible_start
from .periods import add_months_utc, clamp_day, months_between, start_of_month_utc

PREPAYMENT_FLAG = "[prepayment_applied]"
DEFAULT_AMOUNT_TOLERANCE = 0.05
COVERAGE_SCAN_MONTHS = 60


@dataclass(frozen=True)
class AmountCheck:
    expected: float
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def clamp_months_paid(months: object) -> int:
    try:
        return max(1, int(months or 1))
    except (TypeError, ValueError):
        return 1


def validate_amount(
    amount_paid: float,
    months_paid: int,
    monthly_rent: float,
    *,
    tolerance: float = DEFAULT_AMOUNT_TOLERANCE,
    currency: str = "KES",
) -> AmountCheck:
    """Amount must land within +/- tolerance of rent x months; small over/under is a warning."""
    expected = float(monthly_rent) * int(months_paid)
    variance = expected * float(tolerance)
    delta = float(amount_paid) - expected

    errors: list[str] = []
    warnings: list[str] = []
    if abs(delta) > variance:
        errors.append(
            f"Payment amount {amount_paid:,.2f} does not match the expected {expected:,.2f} for {months_paid} month(s)."
        )
    elif delta > 0:
        warnings.append(f"Overpayment detected: +{currency} {delta:.2f} will still be applied to the covered months.")
    elif delta < 0:
        warnings.append(f"Underpayment detected: -{currency} {abs(delta):.2f} may leave part of a month unpaid.")
    return AmountCheck(expected=expected, errors=errors, warnings=warnings)


def months_request_warnings(months_paid: int, unpaid_count: int) -> list[str]:
    out: list[str] = []
    if months_paid > 12:
        out.append("Large prepayment detected (over 12 months). Ensure tenant intent is confirmed.")
    elif months_paid > 6:
        out.append("Large prepayment detected (6+ months). Confirm tenant intent.")
    if months_paid > unpaid_count:
        out.append("Prepayment exceeds current unpaid invoices. Future invoices will be generated to absorb the payment.")
    return out


def resolve_coverage_start(
    *,
    lease_start: Optional[date],
    today: date,
    oldest_unpaid_due: Optional[date] = None,
    rent_paid_until: Optional[date] = None,
    latest_invoice_due: Optional[date] = None,
) -> date:
    """
    First month a verified rent payment should cover.

    Oldest unpaid invoice month, else the month after rent_paid_until, else the
    month after the latest invoice, else the current month. Never earlier than
    the lease start month.
    """
    floor = start_of_month_utc(lease_start) if lease_start else start_of_month_utc(today)

    if oldest_unpaid_due is not None:
        start = start_of_month_utc(oldest_unpaid_due)
    elif rent_paid_until is not None:
        start = add_months_utc(rent_paid_until, 1)
    elif latest_invoice_due is not None:
        start = add_months_utc(latest_invoice_due, 1)
    else:
        start = start_of_month_utc(today)

    return floor if start < floor else start


def build_due_dates(start: date, months: int, due_day: int, lease_end: Optional[date] = None) -> list[date]:
    """One due date per month from start; stops at the lease end month."""
    out: list[date] = []
    cursor = start_of_month_utc(start)
    end_cap = start_of_month_utc(lease_end) if lease_end else None
    for _ in range(int(months)):
        if end_cap is not None and cursor > end_cap:
            break
        out.append(clamp_day(cursor.year, cursor.month, due_day))
        cursor = add_months_utc(cursor, 1)
    return out


def paid_through_after(first_due: date, months: int) -> date:
    """Month-aligned paid-through after covering `months` months starting at first_due."""
    return add_months_utc(first_due, int(months) - 1)


# -----------------------------
# Prepaid coverage (reporting)
# -----------------------------
@dataclass(frozen=True)
class PrepaidCoverage:
    eligible_start: date
    next_rent_due_date: date
    rent_paid_until: Optional[date]  # last calendar day covered
    prepaid_months: int

    @property
    def is_prepaid(self) -> bool:
        return self.prepaid_months > 0


def is_invoice_settled(status: object, status_text: object, amount: object, total_paid: object) -> bool:
    if str(status_text or "").lower() == "void":
        return False
    if status is True or str(status_text or "").lower() == "paid":
        return True
    try:
        amt = float(amount or 0)
        paid = float(total_paid or 0)
    except (TypeError, ValueError):
        return False
    return amt > 0 and paid >= amt * 0.999


def prepaid_coverage(
    paid_months: Iterable[date],
    *,
    lease_start: object,
    today: date,
    scan_months: int = COVERAGE_SCAN_MONTHS,
) -> PrepaidCoverage:
    """
    Walk contiguous paid months forward from max(eligible start, current month).

    next_rent_due_date is the first unpaid month; rent_paid_until is the last
    day of the month before it (None when nothing is covered); prepaid_months
    counts covered months strictly after the current month.
    """
    current = start_of_month_utc(today)
    eligible = lease_eligible_start(lease_start) or current

    paid = {start_of_month_utc(m) for m in paid_months if m is not None}
    scan_start = max(eligible, current)

    cursor = scan_start
    for _ in range(int(scan_months)):
        if cursor not in paid:
            break
        cursor = add_months_utc(cursor, 1)

    rent_paid_until = cursor - timedelta(days=1) if cursor != scan_start else None

    prepaid_start = max(eligible, add_months_utc(current, 1))
    prepaid = max(0, months_between(prepaid_start, cursor)) if cursor > prepaid_start else 0

    return PrepaidCoverage(
        eligible_start=eligible,
        next_rent_due_date=cursor,
        rent_paid_until=rent_paid_until,
        prepaid_months=prepaid,
    )
