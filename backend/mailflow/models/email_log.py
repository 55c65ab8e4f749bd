"""EmailLog model"""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from datetime import datetime, timezone
from mailflow.models.base import Base


class EmailStatus(str, enum.Enum):
    """Lifecycle of one send attempt"""
    QUEUED = "QUEUED"
    SENDING = "SENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    CLICKED = "CLICKED"
    BOUNCED = "BOUNCED"
    FAILED = "FAILED"


class EmailLog(Base):
    """Send log: one row per queue message"""
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(255), unique=True, nullable=False, index=True)  # Queue message id, idempotency key
    user_id = Column(String(255), nullable=True, index=True)
    email_type = Column(String(100), nullable=False, index=True)
    to_email = Column(String(255), nullable=False)
    from_email = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    status = Column(String(20), default=EmailStatus.QUEUED.value, nullable=False, index=True)
    resend_id = Column(String(255), nullable=True, index=True)  # Provider message id
    retry_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    template_data = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=True)
    bounced_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<EmailLog(message_id={self.message_id}, type={self.email_type}, status={self.status})>"
