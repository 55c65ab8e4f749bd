"""Request signing and verification for the orchestrator and delivery webhooks"""
import base64
import hashlib
import hmac
import time
from typing import Optional

from mailflow.core.config import settings
from mailflow.core.logging import security_logger


WEBHOOK_SIGNATURE_VERSION = "v1"


def _allow_unsigned(kind: str) -> bool:
    """Decide what to do with a request when no signing secret is configured"""
    if settings.unsigned_requests_allowed:
        security_logger.warning(
            f"!!! {kind} signing secret is not configured - accepting request WITHOUT verification. "
            f"This is only permitted outside production (ENVIRONMENT={settings.ENVIRONMENT})."
        )
        return True
    security_logger.error(f"{kind} signing secret is not configured - rejecting request")
    return False


def sign_payload(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of a request body, as sent by orchestrator callers"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_orchestrator_signature(payload: bytes, signature: Optional[str]) -> bool:
    """Verify the caller signature on an orchestrator request

    Args:
        payload: Raw request body
        signature: Value of the ORCHESTRATOR_SIGNATURE_HEADER header

    Returns:
        True if the request may be processed
    """
    if not settings.ORCHESTRATOR_SECRET:
        return _allow_unsigned("Orchestrator")

    if not signature:
        security_logger.warning("Orchestrator request received without signature")
        return False

    expected = sign_payload(payload, settings.ORCHESTRATOR_SECRET)
    if hmac.compare_digest(expected, signature.strip().lower()):
        return True

    security_logger.warning("Orchestrator request signature mismatch")
    return False


def _webhook_key(secret: str) -> bytes:
    # Svix secrets are distributed as "whsec_<base64 key>"
    if secret.startswith("whsec_"):
        return base64.b64decode(secret[len("whsec_"):])
    return secret.encode("utf-8")


def compute_webhook_signature(
    payload: bytes,
    secret: str,
    svix_id: Optional[str] = None,
    svix_timestamp: Optional[str] = None
) -> str:
    """Base64 HMAC-SHA256 of a webhook body

    With Svix headers the signed content is "id.timestamp.payload", otherwise
    the raw body is signed.
    """
    if svix_id and svix_timestamp:
        signed_payload = svix_id.encode("utf-8") + b"." + svix_timestamp.encode("utf-8") + b"." + payload
    else:
        signed_payload = payload
    digest = hmac.new(_webhook_key(secret), signed_payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def _timestamp_within_tolerance(svix_timestamp: str) -> bool:
    try:
        sent_at = int(svix_timestamp)
    except (TypeError, ValueError):
        return False
    return abs(time.time() - sent_at) <= settings.WEBHOOK_TOLERANCE_SECONDS


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    svix_id: Optional[str] = None,
    svix_timestamp: Optional[str] = None
) -> bool:
    """Verify a Resend (Svix) webhook signature header

    The header may carry several space separated signatures during key
    rotation: "v1,sig1 v1,sig2". Any match is accepted.
    """
    if not settings.RESEND_WEBHOOK_SECRET:
        return _allow_unsigned("Webhook")

    if not signature_header:
        security_logger.warning("Webhook received without signature header")
        return False

    if svix_id and svix_timestamp and not _timestamp_within_tolerance(svix_timestamp):
        security_logger.warning(f"Webhook timestamp {svix_timestamp} outside tolerance")
        return False

    try:
        expected = compute_webhook_signature(payload, settings.RESEND_WEBHOOK_SECRET, svix_id, svix_timestamp)
    except (ValueError, TypeError) as e:
        security_logger.error(f"Invalid RESEND_WEBHOOK_SECRET: {e}")
        return False

    for part in signature_header.split(" "):
        version, _, provided = part.partition(",")
        if version != WEBHOOK_SIGNATURE_VERSION or not provided:
            continue
        if hmac.compare_digest(expected, provided):
            return True

    security_logger.warning("Webhook signature verification failed - no matching signature found")
    return False
