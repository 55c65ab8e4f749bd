"""Audit log of domain events handled by the orchestrator"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from mailflow.models.email_event import EmailEvent

logger = logging.getLogger(__name__)


def record_email_event(
    event_type: str,
    user_id: str,
    event_data: Dict[str, Any],
    processed: bool,
    db: Session,
    email_type: Optional[str] = None
) -> EmailEvent:
    """Persist a domain event audit row"""
    email_event = EmailEvent(
        event_type=event_type,
        user_id=user_id,
        email_type=email_type,
        event_data=event_data or {},
        processed=processed
    )
    db.add(email_event)
    db.commit()
    db.refresh(email_event)
    return email_event
