# backend/app/routers/payments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_manager
from ..db import get_db
from ..models import Payment
from ..schemas import PaymentDecisionOut, PaymentOut, PaymentRejectIn, PaymentVerifyIn
from ..services.payment_verification import approve_payment, reject_payment

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/pending", response_model=list[PaymentOut])
def pending_payments(
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    q = (
        select(Payment)
        .where(Payment.organization_id == p.org_id, Payment.verified.is_(False))
        .order_by(desc(Payment.created_at))
        .limit(limit)
    )
    rows = db.scalars(q).all()
    return [r for r in rows if "[REJECTED]" not in (r.notes or "")]


@router.put("/{payment_id}/verify", response_model=PaymentDecisionOut)
def verify_payment(
    payment_id: str,
    payload: PaymentVerifyIn | None = None,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    decision = approve_payment(
        db,
        org_id=p.org_id,
        payment_id=payment_id,
        actor_user_id=p.user_id,
        notes=payload.notes if payload is not None else None,
    )
    return decision.to_dict()


@router.post("/{payment_id}/reject", response_model=PaymentDecisionOut)
def reject(
    payment_id: str,
    payload: PaymentRejectIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    decision = reject_payment(
        db,
        org_id=p.org_id,
        payment_id=payment_id,
        actor_user_id=p.user_id,
        reason=payload.reason,
        notes=payload.notes,
    )
    return decision.to_dict()
