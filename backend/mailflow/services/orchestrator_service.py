"""Email orchestrator - decides whether a domain event becomes a queued email

Business rejections come back as OrchestrationResult(success=False, reason=...)
and are never raised. Failing to enqueue is raised: the caller must be able to
tell "chose not to send" apart from "could not guarantee delivery".
"""
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailflow.core.logging import orchestrator_logger
from mailflow.core.metrics import orchestrator_decisions_counter
from mailflow.core.otel import pipeline_span
from mailflow.core.security import verify_orchestrator_signature
from mailflow.db import redis as cache
from mailflow.db.email_queue import enqueue_email
from mailflow.schemas.email import DomainEvent, EmailData, EmailQueueMessage, OrchestrationResult, RejectionReason
from mailflow.services import email_catalog
from mailflow.services.event_audit_service import record_email_event
from mailflow.services.preference_service import ensure_preferences, should_send_email
from mailflow.services.user_service import get_user

logger = orchestrator_logger

RATE_LIMIT_KEY_PREFIX = "email:user:"


def _rejected(reason: RejectionReason, message: str, email_type: Optional[str] = None) -> OrchestrationResult:
    orchestrator_decisions_counter.labels(outcome=reason.value).inc()
    return OrchestrationResult(success=False, reason=reason, message=message, email_type=email_type)


def build_message_id(user_id: str, email_type: str) -> str:
    return f"{int(time.time() * 1000)}-{user_id}-{email_type}"


def build_queue_message(
    email_type: str,
    user_id: str,
    to: str,
    template_data: Dict[str, Any],
    retry_count: int = 0
) -> EmailQueueMessage:
    """Assemble the queue message for an email type, resolving sender, subject and priority"""
    return EmailQueueMessage(
        message_id=build_message_id(user_id, email_type),
        email_type=email_type,
        user_id=user_id,
        data=EmailData(
            to=to,
            from_address=email_catalog.get_from_address(email_type),
            subject=email_catalog.get_subject(email_type, template_data),
            template_data=template_data
        ),
        priority=email_catalog.get_priority(email_type),
        created_at=datetime.now(timezone.utc).isoformat(),
        retry_count=retry_count
    )


def process_email_event(event: DomainEvent, db: Session) -> OrchestrationResult:
    """Run the eligibility pipeline for an authenticated domain event and enqueue the email

    Raises:
        redis.RedisError: The email could not be enqueued
    """
    user = get_user(event.user_id, db)
    if not user:
        logger.info(f"User {event.user_id} not found, skipping {event.event_type}")
        return _rejected(RejectionReason.USER_NOT_FOUND, "User not found")

    email_type = email_catalog.map_event_to_email_type(event.event_type)
    if not email_type:
        logger.info(f"No email mapping for event type {event.event_type}")
        return _rejected(RejectionReason.NO_MAPPING, f"No email mapped to {event.event_type}")

    preferences = ensure_preferences(user.id, db)
    if not should_send_email(preferences, email_type):
        logger.info(f"User {user.id} opted out of {email_type}")
        return _rejected(RejectionReason.OPTED_OUT, "User has opted out", email_type)

    dedup_window_hours = email_catalog.get_dedup_window_hours(email_type)
    if cache.was_email_sent_recently(user.id, email_type, dedup_window_hours):
        logger.info(f"Email {email_type} already sent to {user.id} within {dedup_window_hours}h")
        return _rejected(RejectionReason.DUPLICATE_SUPPRESSED, "Email sent recently", email_type)

    rate_limit = cache.check_rate_limit(f"{RATE_LIMIT_KEY_PREFIX}{user.id}")
    if not rate_limit["allowed"]:
        logger.warning(f"Rate limit exceeded for user {user.id}")
        return _rejected(RejectionReason.RATE_LIMITED, "Rate limit exceeded", email_type)

    template_data = {"username": user.first_name or "there", **event.event_data}
    message = build_queue_message(email_type, user.id, user.email, template_data)

    enqueue_email(message)
    queued_at = datetime.now(timezone.utc).isoformat()

    cache.mark_email_as_sent(user.id, email_type, dedup_window_hours)
    try:
        record_email_event(event.event_type, user.id, event.event_data, True, db, email_type=email_type)
    except SQLAlchemyError as e:
        # The email is already queued; a lost audit row must not fail the request
        db.rollback()
        logger.error(f"Failed to record audit row for {message.message_id}: {e}")

    orchestrator_decisions_counter.labels(outcome="QUEUED").inc()
    logger.info(f"Queued {email_type} for user {user.id} ({message.message_id})")
    return OrchestrationResult(success=True, email_type=email_type, queued_at=queued_at)


def handle_email_event(raw_body: bytes, signature: Optional[str], db: Session) -> Tuple[int, Dict[str, Any]]:
    """HTTP entry point: validate, authenticate and process one domain event

    Returns:
        (status_code, response body)
    """
    try:
        payload = json.loads(raw_body or b"null")
    except (ValueError, UnicodeDecodeError):
        payload = None

    if not isinstance(payload, dict) or not payload.get("eventType") or not payload.get("userId"):
        orchestrator_decisions_counter.labels(outcome=RejectionReason.INVALID_REQUEST.value).inc()
        return 400, {
            "success": False,
            "reason": RejectionReason.INVALID_REQUEST.value,
            "error": "Missing required fields: eventType, userId"
        }

    if not verify_orchestrator_signature(raw_body, signature):
        orchestrator_decisions_counter.labels(outcome=RejectionReason.UNAUTHORIZED.value).inc()
        return 401, {"success": False, "reason": RejectionReason.UNAUTHORIZED.value, "error": "Invalid signature"}

    try:
        event = DomainEvent.model_validate(payload)
    except ValidationError as e:
        orchestrator_decisions_counter.labels(outcome=RejectionReason.INVALID_REQUEST.value).inc()
        return 400, {"success": False, "reason": RejectionReason.INVALID_REQUEST.value, "error": str(e)}

    try:
        with pipeline_span("orchestrator.event", event_type=event.event_type, user_id=event.user_id) as span:
            result = process_email_event(event, db)
            span.set_attribute("mailflow.outcome", result.reason.value if result.reason else "QUEUED")
    except Exception as e:
        logger.error(f"Error processing {event.event_type} for {event.user_id}: {e}", exc_info=True)
        return 500, {"success": False, "error": "Internal server error", "message": str(e)}

    return 200, result.to_response()
