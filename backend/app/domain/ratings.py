# backend/app/domain/ratings.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Optional

from .scoring import PENALTY_SCORE


@dataclass(frozen=True)
class TenantRating:
    tenant_id: str
    name: str
    on_time_rate: Optional[int]
    payments: int
    bucket: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TenantScoreSheet:
    """Mutable accumulator used while walking payment / invoice rows."""

    tenant_id: str
    name: str = "Tenant"
    scores: list[int] = field(default_factory=list)
    payments: int = 0
    penalties: int = 0

    def add_payment(self, score: Optional[int]) -> None:
        self.payments += 1
        if score is not None:
            self.scores.append(int(score))

    def add_penalty(self, score: int = PENALTY_SCORE) -> None:
        self.penalties += 1
        self.scores.append(int(score))


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def on_time_rate(scores: Iterable[int]) -> Optional[int]:
    scores = list(scores)
    if not scores:
        return None
    return round_half_up(sum(scores) / len(scores))


def rating_bucket(rate: Optional[int]) -> str:
    if rate is None:
        return "none"
    if rate >= 90:
        return "green"
    if rate >= 80:
        return "yellow"
    if rate >= 70:
        return "orange"
    return "red"


def rate_sheet(sheet: TenantScoreSheet) -> TenantRating:
    rate = on_time_rate(sheet.scores)
    return TenantRating(
        tenant_id=str(sheet.tenant_id),
        name=sheet.name or "Tenant",
        on_time_rate=rate,
        payments=int(sheet.payments),
        bucket=rating_bucket(rate),
    )


def sort_ratings(ratings: Iterable[TenantRating], *, order: str = "desc") -> list[TenantRating]:
    """
    desc: best first, unrated tenants last.
    asc:  worst first, unrated tenants last.
    Ties go to the tenant with more payments.
    """
    rows = list(ratings)
    if (order or "desc").lower() == "asc":
        return sorted(
            rows,
            key=lambda r: (
                math.inf if r.on_time_rate is None else r.on_time_rate,
                -r.payments,
            ),
        )
    return sorted(
        rows,
        key=lambda r: (
            math.inf if r.on_time_rate is None else -r.on_time_rate,
            -r.payments,
        ),
    )


def aggregate_ratings(
    sheets: Iterable[TenantScoreSheet],
    *,
    order: str = "desc",
    limit: Optional[int] = None,
) -> list[TenantRating]:
    out = sort_ratings((rate_sheet(s) for s in sheets), order=order)
    if limit is not None and limit >= 0:
        out = out[: int(limit)]
    return out
