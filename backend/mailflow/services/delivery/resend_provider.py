"""Resend delivery provider"""
import logging

import resend

from mailflow.core.config import settings
from mailflow.services.delivery.base import BaseDeliveryProvider, DeliveryError

logger = logging.getLogger(__name__)


class ResendProvider(BaseDeliveryProvider):
    """Sends email through the Resend API"""

    def __init__(self, api_key: str = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY

    def send(self, from_address: str, to: str, subject: str, html: str) -> str:
        if not self.api_key:
            raise DeliveryError("RESEND_API_KEY is not set")

        try:
            resend.api_key = self.api_key
            response = resend.Emails.send(
                {
                    "from": from_address,
                    "to": to,
                    "subject": subject,
                    "html": html,
                }
            )
        except Exception as exc:
            raise DeliveryError(f"Resend send failed: {exc}") from exc

        # Resend returns a dict with 'id' on success; older SDKs return an object
        email_id = None
        if isinstance(response, dict):
            email_id = response.get('id')
        elif hasattr(response, 'id'):
            email_id = response.id

        if not email_id:
            raise DeliveryError(f"Resend returned no message id: {response}")

        logger.info(f"Email sent successfully to {to} (id: {email_id})")
        return email_id
