"""Send log store: one EmailLog row per queue message, keyed by message id"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailflow.models.email_log import EmailLog, EmailStatus
from mailflow.schemas.email import EmailQueueMessage

logger = logging.getLogger(__name__)

# Statuses that still allow a (re)send of the same message
RESENDABLE_STATUSES = (EmailStatus.SENDING.value, EmailStatus.FAILED.value)


def get_log(log_id: int, db: Session) -> Optional[EmailLog]:
    return db.query(EmailLog).filter(EmailLog.id == log_id).first()


def get_log_by_message_id(message_id: str, db: Session) -> Optional[EmailLog]:
    return db.query(EmailLog).filter(EmailLog.message_id == message_id).first()


def find_logs_by_resend_id(resend_id: str, db: Session) -> List[EmailLog]:
    return db.query(EmailLog).filter(EmailLog.resend_id == resend_id).all()


def start_sending(message: EmailQueueMessage, retry_count: int, db: Session) -> Optional[EmailLog]:
    """Create or reclaim the send log row for a message, in SENDING state

    Returns:
        The EmailLog row, or None if this message was already sent (redelivery)
    """
    email_log = get_log_by_message_id(message.message_id, db)

    if email_log is None:
        email_log = EmailLog(
            message_id=message.message_id,
            user_id=message.user_id,
            email_type=message.email_type,
            to_email=message.data.to,
            from_email=message.data.from_address,
            subject=message.data.subject,
            status=EmailStatus.SENDING.value,
            retry_count=retry_count,
            template_data=message.data.template_data
        )
        db.add(email_log)
        try:
            db.commit()
        except IntegrityError:
            # Another consumer created the row for the same message first
            db.rollback()
            logger.info(f"Send log for {message.message_id} created concurrently")
            email_log = get_log_by_message_id(message.message_id, db)
            if email_log is None:
                raise
            if email_log.status not in RESENDABLE_STATUSES:
                return None
            return email_log
        db.refresh(email_log)
        return email_log

    if email_log.status not in RESENDABLE_STATUSES:
        logger.info(f"Message {message.message_id} already {email_log.status}, skipping send")
        return None

    email_log.status = EmailStatus.SENDING.value
    email_log.retry_count = retry_count
    email_log.error_message = None
    email_log.failed_at = None
    db.commit()
    db.refresh(email_log)
    return email_log


def mark_sent(email_log: EmailLog, resend_id: str, db: Session) -> EmailLog:
    email_log.status = EmailStatus.SENT.value
    email_log.resend_id = resend_id
    email_log.sent_at = datetime.now(timezone.utc)
    email_log.error_message = None
    db.commit()
    db.refresh(email_log)
    return email_log


def mark_failed(email_log: EmailLog, error_message: str, db: Session) -> EmailLog:
    email_log.status = EmailStatus.FAILED.value
    email_log.error_message = error_message
    email_log.failed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(email_log)
    return email_log


def record_delivery_event(
    resend_id: str,
    timestamp_field: str,
    new_status: EmailStatus,
    from_statuses: Iterable[EmailStatus],
    db: Session,
    occurred_at: Optional[datetime] = None
) -> int:
    """Apply a provider status event to every log row with this provider id

    The timestamp (the event's own time, else now) is only set where still
    unset (first event wins) and the status only moves forward from one of
    from_statuses.

    Returns:
        Number of rows matching the provider id
    """
    column = getattr(EmailLog, timestamp_field)
    occurred_at = occurred_at or datetime.now(timezone.utc)

    matched = db.query(EmailLog).filter(EmailLog.resend_id == resend_id).count()
    if not matched:
        db.rollback()
        return 0

    db.query(EmailLog).filter(
        EmailLog.resend_id == resend_id,
        column.is_(None)
    ).update({timestamp_field: occurred_at}, synchronize_session=False)

    db.query(EmailLog).filter(
        EmailLog.resend_id == resend_id,
        EmailLog.status.in_([status.value for status in from_statuses])
    ).update({"status": new_status.value}, synchronize_session=False)

    db.commit()
    return matched
