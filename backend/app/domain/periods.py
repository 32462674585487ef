# backend/app/domain/periods.py
"""
Calendar helpers for billing periods.

Everything here works on UTC calendar dates. A "period" is identified by the
first day of its month; comparisons between periods ignore day-of-month.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from typing import Any, Optional

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_date(value: Any) -> Optional[date]:
    """
    Null-safe coercion to a UTC calendar date.

    Accepts date, datetime (aware values are converted to UTC) and ISO strings
    ("2024-06-01", "2024-06-01T10:00:00Z"). Anything unparseable returns None;
    callers decide what a missing date means.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    if not s:
        return None
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        return parse_date(datetime.fromisoformat(s))
    except ValueError:
        return None


def start_of_month_utc(d: date | datetime) -> Optional[date]:
    d = parse_date(d)
    if d is None:
        return None
    return date(d.year, d.month, 1)


def add_months_utc(d: date | datetime, n: int) -> Optional[date]:
    """Shift by whole months. The result is always month-aligned."""
    d = parse_date(d)
    if d is None:
        return None
    idx = d.year * 12 + (d.month - 1) + int(n)
    return date(idx // 12, idx % 12 + 1, 1)


def end_of_month_utc(d: date | datetime) -> Optional[date]:
    d = parse_date(d)
    if d is None:
        return None
    return date(d.year, d.month, calendar.monthrange(d.year, d.month)[1])


def to_iso_date(d: date | datetime) -> Optional[str]:
    d = parse_date(d)
    return d.isoformat() if d is not None else None


def _month_key(d: Optional[date]) -> Optional[tuple[int, int]]:
    return (d.year, d.month) if d is not None else None


def is_after_month(a: date | datetime, b: date | datetime) -> bool:
    ka, kb = _month_key(parse_date(a)), _month_key(parse_date(b))
    return ka is not None and kb is not None and ka > kb


def is_before_month(a: date | datetime, b: date | datetime) -> bool:
    ka, kb = _month_key(parse_date(a)), _month_key(parse_date(b))
    return ka is not None and kb is not None and ka < kb


def same_month(a: date | datetime, b: date | datetime) -> bool:
    ka = _month_key(parse_date(a))
    return ka is not None and ka == _month_key(parse_date(b))


def months_between(a: date, b: date) -> int:
    """Whole calendar months from a's month to b's month (negative if b is earlier)."""
    a, b = parse_date(a), parse_date(b)
    return (b.year - a.year) * 12 + (b.month - a.month)


def clamp_day(year: int, month: int, day: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(1, int(day)), last))


def rent_due_date_for_period(period_start: date, due_day: int = 5) -> date:
    p = start_of_month_utc(period_start)
    return clamp_day(p.year, p.month, due_day)


def month_label(d: date | datetime) -> str:
    """'June 2024'"""
    d = parse_date(d)
    return f"{MONTH_NAMES[d.month - 1]} {d.year}"
