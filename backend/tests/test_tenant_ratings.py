# backend/tests/test_tenant_ratings.py
from __future__ import annotations

from app.domain.ratings import (
    TenantRating,
    TenantScoreSheet,
    aggregate_ratings,
    on_time_rate,
    rate_sheet,
    rating_bucket,
    round_half_up,
    sort_ratings,
)


def _r(tid: str, rate, payments: int) -> TenantRating:
    return TenantRating(tenant_id=tid, name=tid, on_time_rate=rate, payments=payments, bucket=rating_bucket(rate))


def test_rate_rounds_half_up():
    assert round_half_up(84.5) == 85
    assert round_half_up(84.49) == 84
    assert on_time_rate([90, 80]) == 85
    assert on_time_rate([100, 90, 60]) == 83
    assert on_time_rate([]) is None


def test_bucket_thresholds():
    assert rating_bucket(90) == "green"
    assert rating_bucket(89) == "yellow"
    assert rating_bucket(80) == "yellow"
    assert rating_bucket(79) == "orange"
    assert rating_bucket(70) == "orange"
    assert rating_bucket(69) == "red"
    assert rating_bucket(0) == "red"
    assert rating_bucket(None) == "none"


def test_penalties_pull_the_rate_down():
    sheet = TenantScoreSheet(tenant_id="t1", name="Amina")
    sheet.add_payment(100)
    sheet.add_payment(90)
    sheet.add_penalty()

    rating = rate_sheet(sheet)
    assert rating.on_time_rate == 83
    assert rating.payments == 2
    assert rating.bucket == "yellow"


def test_unscored_payment_counts_but_does_not_rate():
    sheet = TenantScoreSheet(tenant_id="t2")
    sheet.add_payment(None)

    rating = rate_sheet(sheet)
    assert rating.on_time_rate is None
    assert rating.bucket == "none"
    assert rating.payments == 1
    assert rating.name == "Tenant"


def test_descending_puts_unrated_last_and_breaks_ties_on_payments():
    rows = [_r("a", 95, 2), _r("b", 95, 5), _r("c", None, 9), _r("d", 70, 1)]
    assert [r.tenant_id for r in sort_ratings(rows, order="desc")] == ["b", "a", "d", "c"]


def test_ascending_puts_unrated_last():
    rows = [_r("a", 95, 2), _r("b", 95, 5), _r("c", None, 9), _r("d", 70, 1)]
    assert [r.tenant_id for r in sort_ratings(rows, order="asc")] == ["d", "b", "a", "c"]


def test_aggregate_applies_limit_after_sorting():
    good = TenantScoreSheet(tenant_id="good")
    good.add_payment(100)
    late = TenantScoreSheet(tenant_id="late")
    late.add_penalty()
    new = TenantScoreSheet(tenant_id="new")

    out = aggregate_ratings([new, late, good], order="desc", limit=2)
    assert [r.tenant_id for r in out] == ["good", "late"]
    assert out[1].to_dict() == {
        "tenant_id": "late",
        "name": "Tenant",
        "on_time_rate": 60,
        "payments": 0,
        "bucket": "red",
    }
