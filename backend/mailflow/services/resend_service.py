"""Explicit resend of failed or bounced emails as a new send attempt"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from mailflow.db.email_queue import enqueue_email
from mailflow.models.email_log import EmailStatus
from mailflow.schemas.email import EmailData, EmailQueueMessage
from mailflow.services import email_catalog
from mailflow.services.orchestrator_service import build_message_id
from mailflow.services.preference_service import get_preferences
from mailflow.services.send_log_service import get_log

logger = logging.getLogger(__name__)

RESENDABLE_STATUSES = (EmailStatus.FAILED.value, EmailStatus.BOUNCED.value)


def resend_email(log_id: int, db: Session) -> Dict[str, Any]:
    """Queue a fresh copy of a logged email

    The new message gets its own message id, so the consumer creates a new
    send log row for it; the original row is left untouched.

    Raises:
        ValueError: Log not found, not in a resendable state, or user unsubscribed
    """
    email_log = get_log(log_id, db)
    if not email_log:
        raise ValueError(f"Email log {log_id} not found")

    if email_log.status not in RESENDABLE_STATUSES:
        raise ValueError(f"Only failed or bounced emails can be resent (status: {email_log.status})")

    if email_log.user_id:
        preferences = get_preferences(email_log.user_id, db)
        if preferences and preferences.unsubscribed_all:
            raise ValueError(f"User {email_log.user_id} has unsubscribed from all emails")

    user_id = email_log.user_id or ""
    message = EmailQueueMessage(
        message_id=build_message_id(user_id, email_log.email_type),
        email_type=email_log.email_type,
        user_id=user_id,
        data=EmailData(
            to=email_log.to_email,
            from_address=email_log.from_email,
            subject=email_log.subject,
            template_data=email_log.template_data or {}
        ),
        priority=email_catalog.get_priority(email_log.email_type),
        created_at=datetime.now(timezone.utc).isoformat(),
        retry_count=email_log.retry_count + 1
    )
    enqueue_email(message)

    logger.info(f"Resending email log {log_id} as {message.message_id} (retry {message.retry_count})")
    return {
        "success": True,
        "messageId": message.message_id,
        "retryCount": message.retry_count,
        "queuedAt": message.created_at
    }
