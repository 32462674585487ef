# backend/app/routers/statements.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..services.ownership import must_get_tenant
from ..services.statements import tenant_statement

router = APIRouter(prefix="/statements", tags=["statements"])

PERIOD_PATTERN = "^(month|3months|6months|year|all)$"


@router.get("/me", response_model=dict)
def my_statement(
    period: str = Query(default="all", pattern=PERIOD_PATTERN),
    lease_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_user_id=p.user_id)
    return tenant_statement(db, org_id=p.org_id, tenant=tenant, lease_id=lease_id, period=period).to_dict()


@router.get("/tenants/{tenant_user_id}", response_model=dict)
def tenant_statement_for_manager(
    tenant_user_id: str,
    period: str = Query(default="all", pattern=PERIOD_PATTERN),
    lease_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    # tenants may only read their own statement
    if not p.is_manager and tenant_user_id != p.user_id:
        raise HTTPException(status_code=404, detail="tenant not found")
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_user_id=tenant_user_id)
    return tenant_statement(db, org_id=p.org_id, tenant=tenant, lease_id=lease_id, period=period).to_dict()
