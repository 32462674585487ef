# backend/app/domain/scoring.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from .periods import clamp_day, is_after_month, is_before_month, parse_date

PENALTY_DAY = 25
PENALTY_SCORE = 60

# (last day of month inclusive, score); anything later scores PENALTY_SCORE
DAY_THRESHOLDS = ((5, 100), (15, 90), (25, 80))


def score_by_day(day: int) -> int:
    for last_day, score in DAY_THRESHOLDS:
        if day <= last_day:
            return score
    return PENALTY_SCORE


def score_payment(due_date: Any, paid_date: Any) -> Optional[int]:
    """
    Timeliness score 0-100 for one verified payment.

    Compared by calendar month: paid in an earlier month than due is 100,
    a later month is 60. Within the due month (or with no due date) the day
    the payment landed decides: <=5 -> 100, <=15 -> 90, <=25 -> 80, else 60.
    Returns None when the paid date is missing or unparseable.
    """
    paid = parse_date(paid_date)
    if paid is None:
        return None

    due = parse_date(due_date)
    if due is None:
        return score_by_day(paid.day)

    if is_before_month(paid, due):
        return 100
    if is_after_month(paid, due):
        return PENALTY_SCORE
    return score_by_day(paid.day)


def penalty_date(due_date: Any, penalty_day: int = PENALTY_DAY) -> Optional[date]:
    due = parse_date(due_date)
    if due is None:
        return None
    return clamp_day(due.year, due.month, penalty_day)


def is_past_penalty_date(due_date: Any, today: Any, penalty_day: int = PENALTY_DAY) -> bool:
    """True once today (UTC date) is on/after the penalty day of the due month."""
    cutoff = penalty_date(due_date, penalty_day)
    t = parse_date(today)
    if cutoff is None or t is None:
        return False
    return t >= cutoff
