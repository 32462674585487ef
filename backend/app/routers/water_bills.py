# backend/app/routers/water_bills.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, require_manager
from ..db import get_db
from ..schemas import WaterBillsInvoiceIn
from ..services.water_billing import invoice_water_bill, invoice_water_bills

router = APIRouter(prefix="/water-bills", tags=["water-bills"])


@router.post("/{water_bill_id}/invoice", response_model=dict)
def invoice_one(water_bill_id: str, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    result = invoice_water_bill(db, org_id=p.org_id, water_bill_id=water_bill_id, actor_user_id=p.user_id)
    return result.__dict__


@router.post("/invoice", response_model=dict)
def invoice_bulk(payload: WaterBillsInvoiceIn, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    report = invoice_water_bills(db, org_id=p.org_id, water_bill_ids=payload.water_bill_ids, actor_user_id=p.user_id)
    return report.to_dict()
