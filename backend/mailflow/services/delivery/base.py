"""Abstract base class for email delivery providers"""

from abc import ABC, abstractmethod


class DeliveryError(Exception):
    """The provider rejected the email or could not be reached"""


class BaseDeliveryProvider(ABC):
    """Interface contract for delivery providers.

    Provider-reported errors and transport errors are the same outcome for
    callers: both raise DeliveryError.
    """

    @abstractmethod
    def send(self, from_address: str, to: str, subject: str, html: str) -> str:
        """Send one email.

        Args:
            from_address: Sender, e.g. "CloudDojo <welcome@clouddojo.tech>"
            to: Recipient email address
            subject: Subject line
            html: Rendered HTML body

        Returns:
            The provider's message id

        Raises:
            DeliveryError: If the provider did not accept the email
        """
        pass
