# backend/app/services/ownership.py
from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..models import Lease, UserProfile

OPEN_LEASE_STATUSES = ("active", "pending")


def must_get_lease(db: Session, *, org_id: int, lease_id: str) -> Lease:
    row = db.scalar(select(Lease).where(Lease.id == lease_id, Lease.organization_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="lease not found")
    return row


def must_get_tenant(db: Session, *, org_id: int, tenant_user_id: str) -> UserProfile:
    row = db.scalar(
        select(UserProfile).where(UserProfile.id == tenant_user_id, UserProfile.organization_id == org_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail="tenant not found")
    return row


def current_lease_for_tenant(db: Session, *, org_id: int, tenant_user_id: str) -> Lease | None:
    """Most recent active/pending lease; None is a normal answer."""
    return db.scalar(
        select(Lease)
        .where(
            Lease.organization_id == org_id,
            Lease.tenant_user_id == tenant_user_id,
            Lease.status.in_(OPEN_LEASE_STATUSES),
        )
        .order_by(desc(Lease.created_at))
        .limit(1)
    )
