# backend/tests/test_prepayment_rules.py
from __future__ import annotations

from datetime import date

from app.domain.billing_cursor import lease_eligible_start
from app.domain.prepayment import (
    build_due_dates,
    clamp_months_paid,
    is_invoice_settled,
    months_request_warnings,
    paid_through_after,
    prepaid_coverage,
    resolve_coverage_start,
    validate_amount,
)


def test_amount_must_match_rent_times_months_within_tolerance():
    exact = validate_amount(15000, 3, 5000)
    assert exact.ok and exact.expected == 15000 and exact.warnings == []

    over = validate_amount(15500, 3, 5000)
    assert over.ok
    assert over.warnings == ["Overpayment detected: +KES 500.00 will still be applied to the covered months."]

    under = validate_amount(14500, 3, 5000, currency="USD")
    assert under.ok
    assert under.warnings[0].startswith("Underpayment detected: -USD 500.00")

    short = validate_amount(14000, 3, 5000)
    assert not short.ok
    assert "does not match the expected 15,000.00" in short.errors[0]


def test_months_paid_is_at_least_one():
    assert clamp_months_paid(0) == 1
    assert clamp_months_paid(None) == 1
    assert clamp_months_paid("x") == 1
    assert clamp_months_paid(4) == 4


def test_large_requests_warn():
    assert len(months_request_warnings(13, 2)) == 2
    assert months_request_warnings(7, 10) == ["Large prepayment detected (6+ months). Confirm tenant intent."]
    assert months_request_warnings(1, 1) == []


def test_coverage_starts_at_the_oldest_unpaid_month():
    today = date(2024, 6, 10)
    start = date(2024, 3, 15)
    assert resolve_coverage_start(
        lease_start=start, today=today, oldest_unpaid_due=date(2024, 5, 5), rent_paid_until=date(2024, 6, 1)
    ) == date(2024, 5, 1)
    assert resolve_coverage_start(lease_start=start, today=today, rent_paid_until=date(2024, 6, 1)) == date(2024, 7, 1)
    assert resolve_coverage_start(lease_start=start, today=today, latest_invoice_due=date(2024, 7, 5)) == date(
        2024, 8, 1
    )
    assert resolve_coverage_start(lease_start=start, today=today) == date(2024, 6, 1)


def test_coverage_never_starts_before_the_lease():
    assert resolve_coverage_start(
        lease_start=date(2024, 3, 15), today=date(2024, 6, 10), oldest_unpaid_due=date(2024, 1, 5)
    ) == date(2024, 3, 1)


def test_due_dates_stop_at_lease_end():
    assert build_due_dates(date(2024, 11, 1), 3, 5) == [date(2024, 11, 5), date(2024, 12, 5), date(2025, 1, 5)]
    assert build_due_dates(date(2024, 11, 1), 3, 5, lease_end=date(2024, 12, 15)) == [
        date(2024, 11, 5),
        date(2024, 12, 5),
    ]


def test_paid_through_is_the_last_covered_month():
    assert paid_through_after(date(2024, 5, 5), 3) == date(2024, 7, 1)
    assert paid_through_after(date(2024, 12, 5), 1) == date(2024, 12, 1)


def test_invoice_settled_rules():
    assert is_invoice_settled(True, None, 5000, 0)
    assert is_invoice_settled(False, "paid", 5000, 0)
    assert is_invoice_settled(False, "unpaid", 5000, 4995)
    assert not is_invoice_settled(False, "unpaid", 5000, 4990)
    assert not is_invoice_settled(True, "void", 5000, 5000)


def test_prepaid_coverage_counts_months_after_the_current_one():
    paid = {date(2024, 6, 1), date(2024, 7, 1), date(2024, 8, 1), date(2024, 10, 1)}
    cov = prepaid_coverage(paid, lease_start=date(2024, 1, 1), today=date(2024, 6, 10))
    assert cov.next_rent_due_date == date(2024, 9, 1)
    assert cov.rent_paid_until == date(2024, 8, 31)
    assert cov.prepaid_months == 2
    assert cov.is_prepaid


def test_prepaid_coverage_with_nothing_paid():
    cov = prepaid_coverage(set(), lease_start=date(2024, 3, 15), today=date(2024, 6, 10))
    assert cov.eligible_start == date(2024, 4, 1)
    assert cov.next_rent_due_date == date(2024, 6, 1)
    assert cov.rent_paid_until is None
    assert not cov.is_prepaid


def test_prepaid_coverage_for_a_lease_starting_later():
    paid = {date(2024, 9, 1), date(2024, 10, 1)}
    cov = prepaid_coverage(paid, lease_start=date(2024, 9, 1), today=date(2024, 6, 10))
    assert cov.next_rent_due_date == date(2024, 11, 1)
    assert cov.rent_paid_until == date(2024, 10, 31)
    assert cov.prepaid_months == 2


def test_prepaid_coverage_uses_the_lease_eligibility_rule():
    for start in (date(2024, 7, 1), date(2024, 7, 2), date(2024, 7, 31), "2024-07-15", None):
        cov = prepaid_coverage(set(), lease_start=start, today=date(2024, 6, 10))
        assert cov.eligible_start == (lease_eligible_start(start) or date(2024, 6, 1))
    mid_month = prepaid_coverage({date(2024, 8, 1)}, lease_start=date(2024, 7, 20), today=date(2024, 6, 10))
    assert mid_month.eligible_start == date(2024, 8, 1)
    assert mid_month.next_rent_due_date == date(2024, 9, 1)
