# backend/app/services/notifications.py
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Communication, UserProfile

log = logging.getLogger("rentledger.notifications")

# (phone_number, message) -> None; raises on delivery failure
SmsSender = Callable[[str, str], None]


def log_only_sender(phone_number: str, message: str) -> None:
    log.info("sms queued to=%s chars=%d", phone_number, len(message))


class NotificationFacade:
    """
    Best-effort tenant messaging.

    Ledger writes are committed before anything is sent, so a failing sender
    is logged and counted but never raised to the caller. Every attempt is
    recorded in `communications`.

    Routers / services import:
        from ..services.notifications import notifications
    """

    def __init__(self, sender: Optional[SmsSender] = None):
        self.sender = sender
        self.counters: Counter[str] = Counter()

    def set_sender(self, sender: Optional[SmsSender]) -> None:
        self.sender = sender

    def send(
        self,
        db: Session,
        *,
        organization_id: Optional[int],
        recipient: Optional[UserProfile],
        message: str,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
        sender_user_id: Optional[str] = None,
    ) -> str:
        phone = (recipient.phone_number or "").strip() if recipient is not None else ""

        status = "sent"
        error: Optional[str] = None
        if not settings.notifications_enabled or self.sender is None or not phone:
            status = "skipped"
        else:
            try:
                self.sender(phone, message)
            except Exception as e:
                status = "failed"
                error = str(e) or e.__class__.__name__
                log.warning(
                    "notification delivery failed: %s",
                    error,
                    extra={"tenant_id": getattr(recipient, "id", None)},
                )

        self.counters[status] += 1

        try:
            db.add(
                Communication(
                    organization_id=organization_id,
                    sender_user_id=sender_user_id,
                    recipient_user_id=getattr(recipient, "id", None),
                    recipient_phone=phone or None,
                    message_text=message,
                    message_type="sms",
                    related_entity_type=related_entity_type,
                    related_entity_id=related_entity_id,
                    delivery_status=status,
                    error=error,
                    created_at=datetime.utcnow(),
                )
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self.counters["log_failed"] += 1
            log.warning("failed to record communication", exc_info=True)

        return status


notifications = NotificationFacade(sender=log_only_sender)
