"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from mailflow.models.base import Base
from mailflow.models.user import User
from mailflow.models.email_preferences import EmailPreferences
from mailflow.models.email_log import EmailLog, EmailStatus
from mailflow.models.email_event import EmailEvent
from mailflow.models.email_template import EmailTemplate
from mailflow.models.delivery_webhook_event import DeliveryWebhookEvent

# Export all for convenience
__all__ = [
    "Base", "User", "EmailPreferences", "EmailLog", "EmailStatus",
    "EmailEvent", "EmailTemplate", "DeliveryWebhookEvent"
]
