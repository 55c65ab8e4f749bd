"""Delivery providers - public API exports"""

from mailflow.services.delivery.base import BaseDeliveryProvider, DeliveryError
from mailflow.services.delivery.resend_provider import ResendProvider

_provider = None


def get_delivery_provider() -> BaseDeliveryProvider:
    """Get or create the process-wide delivery provider (lazy initialization)"""
    global _provider
    if _provider is None:
        _provider = ResendProvider()
    return _provider


__all__ = ["BaseDeliveryProvider", "DeliveryError", "ResendProvider", "get_delivery_provider"]
