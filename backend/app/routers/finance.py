# backend/app/routers/finance.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_manager
from ..db import get_db
from ..services.finance_reports import arrears_summary, prepayment_summary

router = APIRouter(prefix="/finance", tags=["finance"])


@router.get("/arrears", response_model=list[dict])
def arrears(
    building_id: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=2000),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    rows = arrears_summary(db, org_id=p.org_id, building_id=building_id, q=q, limit=limit)
    return [r.to_dict() for r in rows]


@router.get("/prepayments", response_model=list[dict])
def prepayments(db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    return prepayment_summary(db, org_id=p.org_id)
