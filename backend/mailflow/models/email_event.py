"""EmailEvent model"""
from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime
from datetime import datetime, timezone
from mailflow.models.base import Base


class EmailEvent(Base):
    """Audit log of domain events the orchestrator turned into queued emails"""
    __tablename__ = "email_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    email_type = Column(String(100), nullable=True)
    event_data = Column(JSON, nullable=False, default=dict)
    processed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
