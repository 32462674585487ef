# backend/tests/test_billing_cursor.py
from __future__ import annotations

from datetime import date
from types import SimpleNamespace

from app.domain.billing_cursor import BillingCursor, lease_eligible_start
from app.models import Lease
from app.services.lease_cursor import advance_paid_through, apply_billing_cursor, heal_cursor


def test_mid_month_start_is_billed_from_the_following_month():
    assert lease_eligible_start(date(2024, 3, 15)) == date(2024, 4, 1)
    assert lease_eligible_start("2024-03-15T00:00:00Z") == date(2024, 4, 1)


def test_first_of_month_start_bills_that_month():
    assert lease_eligible_start(date(2024, 3, 1)) == date(2024, 3, 1)
    assert lease_eligible_start(None) is None


def test_from_lease_month_aligns_both_pointers():
    cursor = BillingCursor.from_lease(
        SimpleNamespace(rent_paid_until=date(2024, 6, 30), next_rent_due_date=date(2024, 7, 5))
    )
    assert cursor.rent_paid_until == date(2024, 6, 1)
    assert cursor.next_rent_due_date == date(2024, 7, 1)


def test_healed_bumps_missing_or_stale_pointer_only():
    eligible = date(2024, 4, 1)
    assert BillingCursor().healed(eligible).next_rent_due_date == eligible
    assert BillingCursor(next_rent_due_date=date(2024, 2, 1)).healed(eligible).next_rent_due_date == eligible

    ahead = BillingCursor(next_rent_due_date=date(2024, 8, 1))
    assert ahead.healed(eligible) is ahead


def test_resolve_candidate_uses_pointer_then_paid_through_then_eligibility():
    today = date(2024, 6, 10)
    eligible = date(2024, 4, 1)

    assert BillingCursor(next_rent_due_date=date(2024, 4, 1)).resolve_candidate(
        today=today, eligible_start=eligible
    ) == date(2024, 4, 1)

    paid_ahead = BillingCursor(rent_paid_until=date(2024, 6, 1), next_rent_due_date=date(2024, 4, 1))
    assert paid_ahead.resolve_candidate(today=today, eligible_start=eligible) == date(2024, 7, 1)

    assert BillingCursor().resolve_candidate(today=date(2024, 2, 10), eligible_start=eligible) == eligible
    assert BillingCursor().resolve_candidate(today=today, eligible_start=None) == date(2024, 6, 1)


def test_advanced_to_never_moves_backwards():
    cursor = BillingCursor(rent_paid_until=date(2024, 6, 1), next_rent_due_date=date(2024, 7, 1))
    assert cursor.advanced_to(date(2024, 5, 5)) is cursor
    assert cursor.advanced_to(date(2024, 6, 20)) is cursor

    moved = cursor.advanced_to(date(2024, 9, 5))
    assert moved.rent_paid_until == date(2024, 9, 1)
    assert moved.next_rent_due_date == date(2024, 10, 1)


def test_apply_billing_cursor_is_forward_only():
    lease = Lease(
        id="lease-1",
        start_date=date(2024, 3, 15),
        rent_paid_until=date(2024, 6, 1),
        next_rent_due_date=date(2024, 7, 1),
    )

    changed = apply_billing_cursor(
        lease, BillingCursor(rent_paid_until=date(2024, 4, 1), next_rent_due_date=date(2024, 5, 1))
    )
    assert changed is False
    assert lease.rent_paid_until == date(2024, 6, 1)
    assert lease.next_rent_due_date == date(2024, 7, 1)

    advance_paid_through(lease, date(2024, 8, 5))
    assert lease.rent_paid_until == date(2024, 8, 1)
    assert lease.next_rent_due_date == date(2024, 9, 1)


def test_heal_cursor_sets_pointer_from_lease_start():
    lease = Lease(id="lease-2", start_date=date(2024, 3, 15))
    cursor = heal_cursor(lease)
    assert cursor.next_rent_due_date == date(2024, 4, 1)
    assert lease.next_rent_due_date == date(2024, 4, 1)
    assert lease.rent_paid_until is None
