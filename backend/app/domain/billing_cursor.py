# backend/app/domain/billing_cursor.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from .periods import add_months_utc, parse_date, start_of_month_utc


def lease_eligible_start(start_date: Any) -> Optional[date]:
    """
    First month a lease owes rent.

    A lease starting on the 1st bills that month. Any later start day is a
    partial month that is not billed on its own, so billing begins the month after.
    """
    d = parse_date(start_date)
    if d is None:
        return None
    month = start_of_month_utc(d)
    if d.day > 1:
        return add_months_utc(month, 1)
    return month


@dataclass(frozen=True)
class BillingCursor:
    """
    The lease's billing position.

    rent_paid_until: last month fully paid (month-aligned), None if nothing paid.
    next_rent_due_date: cached pointer to the next period to bill.
    """

    rent_paid_until: Optional[date] = None
    next_rent_due_date: Optional[date] = None

    @classmethod
    def from_lease(cls, lease: Any) -> "BillingCursor":
        rpu = parse_date(getattr(lease, "rent_paid_until", None))
        nxt = parse_date(getattr(lease, "next_rent_due_date", None))
        return cls(
            rent_paid_until=start_of_month_utc(rpu) if rpu else None,
            next_rent_due_date=start_of_month_utc(nxt) if nxt else None,
        )

    def healed(self, eligible_start: Optional[date]) -> "BillingCursor":
        """Missing or stale pointer (earlier than eligibility) is bumped to eligibility start."""
        if eligible_start is None:
            return self
        nxt = self.next_rent_due_date
        if nxt is None or nxt < eligible_start:
            return BillingCursor(rent_paid_until=self.rent_paid_until, next_rent_due_date=eligible_start)
        return self

    def resolve_candidate(self, *, today: date, eligible_start: Optional[date]) -> date:
        """Next period to bill: pointer (or today's month), pushed past paid-through, never before eligibility."""
        candidate = self.next_rent_due_date or start_of_month_utc(today)
        if self.rent_paid_until is not None and self.rent_paid_until >= candidate:
            candidate = add_months_utc(self.rent_paid_until, 1)
        if eligible_start is not None and candidate < eligible_start:
            candidate = eligible_start
        return candidate

    def advanced_to(self, paid_through: date) -> "BillingCursor":
        """
        Cursor after a verified payment covering up to paid_through.

        Forward-only: a paid_through earlier than the current value leaves the
        cursor unchanged.
        """
        month = start_of_month_utc(paid_through)
        if self.rent_paid_until is not None and month <= self.rent_paid_until:
            return self
        nxt = add_months_utc(month, 1)
        if self.next_rent_due_date is not None and self.next_rent_due_date > nxt:
            nxt = self.next_rent_due_date
        return BillingCursor(rent_paid_until=month, next_rent_due_date=nxt)
