"""Email preference store: per-user opt-in toggles and global unsubscribe"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailflow.models.email_preferences import EmailPreferences
from mailflow.services.email_catalog import get_preference_key

logger = logging.getLogger(__name__)


def get_preferences(user_id: str, db: Session) -> Optional[EmailPreferences]:
    return db.query(EmailPreferences).filter(EmailPreferences.user_id == user_id).first()


def ensure_preferences(user_id: str, db: Session) -> EmailPreferences:
    """Get a user's preferences, creating the default (all opted in) row if missing"""
    preferences = get_preferences(user_id, db)
    if preferences:
        return preferences

    preferences = EmailPreferences(user_id=user_id)
    db.add(preferences)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently by another request
        db.rollback()
        preferences = get_preferences(user_id, db)
        if preferences is None:
            raise
        return preferences

    db.refresh(preferences)
    logger.info(f"Created default email preferences for user {user_id}")
    return preferences


def set_unsubscribed_all(user_id: str, db: Session, unsubscribed: bool = True) -> EmailPreferences:
    """Set or clear the global unsubscribe flag for a user"""
    preferences = ensure_preferences(user_id, db)
    preferences.unsubscribed_all = unsubscribed
    preferences.unsubscribed_at = datetime.now(timezone.utc) if unsubscribed else None
    db.commit()
    db.refresh(preferences)
    logger.info(f"User {user_id} unsubscribed_all={unsubscribed}")
    return preferences


def should_send_email(preferences: EmailPreferences, email_type: str) -> bool:
    """Check preferences for an email type

    unsubscribed_all blocks everything; types without a toggle are allowed.
    """
    if preferences.unsubscribed_all:
        return False

    preference_key = get_preference_key(email_type)
    if preference_key is None:
        return True
    return bool(getattr(preferences, preference_key))
