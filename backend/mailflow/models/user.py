"""User model"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from mailflow.models.base import Base


class User(Base):
    """Product user (read-only to the email pipeline)"""
    __tablename__ = "users"

    id = Column(String(255), primary_key=True, index=True)  # External auth provider user id
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    email_preferences = relationship("EmailPreferences", back_populates="user", uselist=False, cascade="all, delete-orphan")
