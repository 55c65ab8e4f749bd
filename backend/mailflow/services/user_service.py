"""User directory lookups"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from mailflow.models.user import User

logger = logging.getLogger(__name__)


def get_user(user_id: str, db: Session) -> Optional[User]:
    """Get a user by id, or None if the user does not exist"""
    return db.query(User).filter(User.id == user_id).first()
