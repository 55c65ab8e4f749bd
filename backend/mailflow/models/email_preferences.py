"""EmailPreferences model"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from mailflow.models.base import Base


class EmailPreferences(Base):
    """Per-user email opt-in toggles"""
    __tablename__ = "email_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    # Category toggles
    product_updates = Column(Boolean, default=True, nullable=False)
    milestone_emails = Column(Boolean, default=True, nullable=False)
    weekly_progress_report = Column(Boolean, default=True, nullable=False)
    ai_analysis_notifs = Column(Boolean, default=True, nullable=False)
    feature_updates = Column(Boolean, default=True, nullable=False)
    marketing_emails = Column(Boolean, default=True, nullable=False)

    # Global opt-out wins over every toggle
    unsubscribed_all = Column(Boolean, default=False, nullable=False)
    unsubscribed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationship
    user = relationship("User", back_populates="email_preferences")

    def __repr__(self):
        return f"<EmailPreferences(user_id={self.user_id}, unsubscribed_all={self.unsubscribed_all})>"
