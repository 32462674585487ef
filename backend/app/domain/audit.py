# backend/app/domain/audit.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..models import AuditEvent


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    org_id: int,
    actor_user_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: str,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    commit: bool = False,
) -> AuditEvent:
    """
    Records a ledger mutation (payment verify/reject, invoice mark-paid, ...).

    Does not commit by default so the audit row lands in the same transaction
    as the change it describes.
    """
    row = AuditEvent(
        org_id=org_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row


def audit_trail(db: Session, *, org_id: int, entity_type: str, entity_id: str, limit: int = 100) -> list[AuditEvent]:
    return list(
        db.scalars(
            select(AuditEvent)
            .where(
                AuditEvent.org_id == org_id,
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == str(entity_id),
            )
            .order_by(desc(AuditEvent.id))
            .limit(int(limit))
        ).all()
    )
