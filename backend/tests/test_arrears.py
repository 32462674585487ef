# backend/tests/test_arrears.py
from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace

from app.domain.arrears import LeaseArrears, accumulate_arrears, note_payment, sort_arrears

TODAY = date(2024, 6, 5)


def _inv(invoice_type="rent", due=date(2024, 5, 5), amount=5000.0, total_paid=0.0, **kw):
    return SimpleNamespace(
        invoice_type=invoice_type,
        due_date=due,
        period_start=due.replace(day=1),
        amount=amount,
        total_paid=total_paid,
        status=kw.get("status", False),
        status_text=kw.get("status_text", "unpaid"),
    )


def test_only_past_due_owed_rent_and_water_count():
    invoices = [
        _inv(total_paid=1000.0),
        _inv("water", due=date(2024, 4, 20), amount=800.0),
        _inv(due=date(2024, 6, 5)),  # due today, not yet late
        _inv(due=date(2024, 3, 5), status=True, status_text="paid"),
        _inv(due=date(2024, 4, 5)),  # paid through April
        _inv("water", due=date(2024, 2, 5), total_paid=4999.97),  # within a few cents of settled
        _inv("deposit", due=date(2024, 1, 5)),
        _inv(due=date(2024, 1, 5), status_text="void"),
    ]
    row = accumulate_arrears(
        LeaseArrears(lease_id="L1"),
        invoices,
        today=TODAY,
        rent_paid_until=date(2024, 4, 1),
    )

    assert row.open_invoices_count == 2
    assert row.current_balance == 4800.0
    assert row.arrears_rent == 4000.0
    assert row.arrears_water == 800.0
    assert row.oldest_due_date == date(2024, 4, 20)


def test_pre_start_rent_is_not_arrears():
    row = accumulate_arrears(
        LeaseArrears(lease_id="L2"),
        [_inv(due=date(2024, 3, 5))],
        today=TODAY,
        eligible_start=date(2024, 4, 1),
    )
    assert row.current_balance == 0.0
    assert row.open_invoices_count == 0


def test_note_payment_keeps_the_latest_date():
    row = LeaseArrears(lease_id="L3")
    note_payment(row, datetime(2024, 5, 6, 12, 0))
    note_payment(row, date(2024, 4, 1))
    note_payment(row, None)
    assert row.last_payment_date == date(2024, 5, 6)
    assert row.to_dict()["last_payment_date"] == "2024-05-06"


def test_sort_largest_balance_then_oldest_then_name():
    rows = [
        LeaseArrears(lease_id="a", tenant_name="Zed", current_balance=100.0, oldest_due_date=date(2024, 5, 5)),
        LeaseArrears(lease_id="b", tenant_name="amy", current_balance=100.0, oldest_due_date=date(2024, 5, 5)),
        LeaseArrears(lease_id="c", tenant_name="Bob", current_balance=100.0, oldest_due_date=date(2024, 3, 5)),
        LeaseArrears(lease_id="d", tenant_name="Cy", current_balance=900.0),
    ]
    assert [r.lease_id for r in sort_arrears(rows)] == ["d", "c", "b", "a"]
