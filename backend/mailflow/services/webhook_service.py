"""Webhook reconciler - applies Resend delivery events to the send log"""
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailflow.core.logging import webhook_logger
from mailflow.core.metrics import webhook_events_counter
from mailflow.core.otel import pipeline_span
from mailflow.core.security import verify_webhook_signature
from mailflow.models.delivery_webhook_event import DeliveryWebhookEvent
from mailflow.models.email_log import EmailStatus
from mailflow.schemas.email import WebhookEvent
from mailflow.services.preference_service import set_unsubscribed_all
from mailflow.services.send_log_service import find_logs_by_resend_id, record_delivery_event

logger = webhook_logger


def log_webhook_event(provider_event_id: str, event: WebhookEvent, payload: dict, db: Session) -> DeliveryWebhookEvent:
    """Log a webhook event in the database for idempotency and tracking"""
    webhook_event = db.query(DeliveryWebhookEvent).filter(
        DeliveryWebhookEvent.provider_event_id == provider_event_id
    ).first()
    if webhook_event:
        return webhook_event

    webhook_event = DeliveryWebhookEvent(
        provider_event_id=provider_event_id,
        event_type=event.type,
        email_id=event.data.email_id,
        payload=payload,
        processed=False
    )
    db.add(webhook_event)
    try:
        db.commit()
    except IntegrityError:
        # Same event delivered twice concurrently
        db.rollback()
        return db.query(DeliveryWebhookEvent).filter(
            DeliveryWebhookEvent.provider_event_id == provider_event_id
        ).one()
    db.refresh(webhook_event)
    return webhook_event


def mark_webhook_event_processed(provider_event_id: str, db: Session) -> None:
    webhook_event = db.query(DeliveryWebhookEvent).filter(
        DeliveryWebhookEvent.provider_event_id == provider_event_id
    ).first()
    if webhook_event:
        webhook_event.processed = True
        webhook_event.processed_at = datetime.now(timezone.utc)
        webhook_event.error_message = None
        db.commit()


def record_webhook_error(provider_event_id: str, error_message: str, db: Session) -> None:
    """Store the error on the event log, leaving it unprocessed so a provider retry reapplies it"""
    webhook_event = db.query(DeliveryWebhookEvent).filter(
        DeliveryWebhookEvent.provider_event_id == provider_event_id
    ).first()
    if webhook_event:
        webhook_event.error_message = error_message
        db.commit()


def event_occurred_at(event: WebhookEvent) -> datetime:
    """When the provider says the event happened, falling back to now"""
    created_at = event.created_at or event.data.created_at
    if created_at:
        try:
            occurred_at = datetime.fromisoformat(created_at.replace('Z', '+00:00'))
            if occurred_at.tzinfo is None:
                occurred_at = occurred_at.replace(tzinfo=timezone.utc)
            return occurred_at
        except ValueError:
            logger.warning(f"Unparseable webhook created_at {created_at!r}, using receive time")
    return datetime.now(timezone.utc)


def handle_delivered(email_id: str, event: WebhookEvent, db: Session) -> int:
    return record_delivery_event(
        email_id, "delivered_at", EmailStatus.DELIVERED, [EmailStatus.SENT], db,
        occurred_at=event_occurred_at(event)
    )


def handle_opened(email_id: str, event: WebhookEvent, db: Session) -> int:
    return record_delivery_event(
        email_id, "opened_at", EmailStatus.OPENED, [EmailStatus.SENT, EmailStatus.DELIVERED], db,
        occurred_at=event_occurred_at(event)
    )


def handle_clicked(email_id: str, event: WebhookEvent, db: Session) -> int:
    return record_delivery_event(
        email_id, "clicked_at", EmailStatus.CLICKED,
        [EmailStatus.SENT, EmailStatus.DELIVERED, EmailStatus.OPENED], db,
        occurred_at=event_occurred_at(event)
    )


def handle_bounced(email_id: str, event: WebhookEvent, db: Session) -> int:
    bounce = (event.data.model_extra or {}).get("bounce") or {}
    bounce_type = bounce.get("type", "unknown") if isinstance(bounce, dict) else bounce
    logger.warning(f"Email bounced: {email_id} - {bounce_type}")
    return record_delivery_event(
        email_id, "bounced_at", EmailStatus.BOUNCED, [EmailStatus.SENT, EmailStatus.DELIVERED], db,
        occurred_at=event_occurred_at(event)
    )


def handle_complained(email_id: str, event: WebhookEvent, db: Session) -> int:
    """Spam complaint: unsubscribe the recipient from all email"""
    logger.warning(f"Email complaint: {email_id}")
    email_logs = find_logs_by_resend_id(email_id, db)
    user_id = next((email_log.user_id for email_log in email_logs if email_log.user_id), None)
    if user_id:
        set_unsubscribed_all(user_id, db)
        logger.warning(f"User {user_id} unsubscribed from all email after spam complaint")
    else:
        logger.warning(f"Complaint for {email_id} matched no user")
    return len(email_logs)


WEBHOOK_HANDLERS: Dict[str, Callable[[str, WebhookEvent, Session], int]] = {
    "email.delivered": handle_delivered,
    "email.opened": handle_opened,
    "email.clicked": handle_clicked,
    "email.bounced": handle_bounced,
    "email.complained": handle_complained,
}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    return value if value else None


def process_resend_webhook(payload: bytes, headers: Mapping[str, str], db: Session) -> Tuple[int, Dict[str, Any]]:
    """Verify and apply one Resend webhook delivery

    Resend signs with Svix headers:
    - svix-id: Unique message ID (also the idempotency key)
    - svix-timestamp: Unix timestamp
    - svix-signature: Signature(s) in format "v1,sig1 v1,sig2"

    Returns:
        (status_code, response body)
    """
    svix_id = _header(headers, "svix-id")
    svix_timestamp = _header(headers, "svix-timestamp")
    svix_signature = _header(headers, "svix-signature")

    if not verify_webhook_signature(payload, svix_signature, svix_id, svix_timestamp):
        return 401, {"error": "Invalid signature"}

    try:
        raw_event = json.loads(payload)
        event = WebhookEvent.model_validate(raw_event)
    except (ValueError, ValidationError):
        logger.error("Invalid JSON in Resend webhook payload")
        return 400, {"error": "Invalid JSON payload"}

    webhook_events_counter.labels(event_type=event.type).inc()
    provider_event_id = svix_id or event.id

    try:
        if provider_event_id:
            webhook_event = log_webhook_event(provider_event_id, event, raw_event, db)
            if webhook_event.processed:
                logger.info(f"Resend webhook event {provider_event_id} already processed, skipping")
                return 200, {"status": "already_processed"}

        handler = WEBHOOK_HANDLERS.get(event.type)
        email_id = event.data.email_id
        if handler is None:
            logger.info(f"Ignoring unhandled Resend webhook type {event.type}")
            status = "ignored"
        elif not email_id:
            logger.warning(f"Resend webhook {event.type} without email_id, ignoring")
            status = "ignored"
        else:
            with pipeline_span("webhook.event", event_type=event.type, email_id=email_id) as span:
                matched = handler(email_id, event, db)
                span.set_attribute("mailflow.matched_rows", matched)
            logger.info(f"Resend webhook: {event.type} for email {email_id} ({matched} log row(s))")
            status = "success"

        if provider_event_id:
            mark_webhook_event_processed(provider_event_id, db)
        return 200, {"status": status}

    except Exception as e:
        logger.error(f"Error processing Resend webhook: {e}", exc_info=True)
        db.rollback()
        if provider_event_id:
            try:
                record_webhook_error(provider_event_id, str(e), db)
            except Exception as log_error:
                db.rollback()
                logger.error(f"Could not record webhook error for {provider_event_id}: {log_error}")
        return 500, {"error": "Internal server error"}
