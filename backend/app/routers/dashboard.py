# backend/app/routers/dashboard.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_manager
from ..db import get_db
from ..schemas import TenantRatingOut
from ..services.tenant_ratings import tenant_ratings

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/tenant-ratings", response_model=list[TenantRatingOut])
def dashboard_tenant_ratings(
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    """
    On-time payment rate per tenant for the manager dashboard.

    Tenants with nothing to score come back with on_time_rate=null and
    bucket='none'; they sort last in either order.
    """
    return [r.to_dict() for r in tenant_ratings(db, org_id=p.org_id, order=order, limit=limit)]
