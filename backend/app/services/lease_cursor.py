# backend/app/services/lease_cursor.py
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..domain.billing_cursor import BillingCursor, lease_eligible_start
from ..models import Lease

log = logging.getLogger("rentledger.cursor")


def _later(current: Optional[date], proposed: Optional[date]) -> Optional[date]:
    if proposed is None:
        return current
    if current is None or proposed > current:
        return proposed
    return current


def apply_billing_cursor(lease: Lease, cursor: BillingCursor) -> bool:
    """
    The only place Lease.rent_paid_until / next_rent_due_date are written.

    Forward-only: a pointer never moves to an earlier month. Returns True if
    anything changed. Does not commit.
    """
    current = BillingCursor.from_lease(lease)
    rpu = _later(current.rent_paid_until, cursor.rent_paid_until)
    nxt = _later(current.next_rent_due_date, cursor.next_rent_due_date)

    changed = (rpu, nxt) != (lease.rent_paid_until, lease.next_rent_due_date)
    if changed:
        log.info(
            "billing cursor moved",
            extra={
                "lease_id": lease.id,
                "cursor": {
                    "rent_paid_until": [str(lease.rent_paid_until), str(rpu)],
                    "next_rent_due_date": [str(lease.next_rent_due_date), str(nxt)],
                },
            },
        )
        lease.rent_paid_until = rpu
        lease.next_rent_due_date = nxt
    return changed


def heal_cursor(lease: Lease) -> BillingCursor:
    """Bumps a missing/stale next_rent_due_date to the eligibility start."""
    cursor = BillingCursor.from_lease(lease).healed(lease_eligible_start(lease.start_date))
    apply_billing_cursor(lease, cursor)
    return cursor


def advance_paid_through(lease: Lease, paid_through: date) -> BillingCursor:
    cursor = BillingCursor.from_lease(lease).advanced_to(paid_through)
    apply_billing_cursor(lease, cursor)
    return cursor
