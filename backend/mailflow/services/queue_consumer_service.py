"""Queue consumer - renders, sends and logs queued emails

The queue is at-least-once, so every step is safe to repeat for the same
message: the send log row is keyed by message id and a message whose row is
already past SENDING/FAILED is deleted without sending again. The queue
message is deleted only after the SENT row is committed.
"""
import asyncio
import time
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from mailflow.core.config import settings
from mailflow.core.logging import queue_logger
from mailflow.core.metrics import email_send_failures_counter, emails_sent_counter, late_completions_counter
from mailflow.core.otel import pipeline_span
from mailflow.db.email_queue import delete_message
from mailflow.db.session import SessionLocal
from mailflow.models.email_log import EmailLog
from mailflow.schemas.email import BatchItemFailure, BatchResult, EmailQueueMessage, QueueRecord
from mailflow.services.delivery import BaseDeliveryProvider, DeliveryError, get_delivery_provider
from mailflow.services.send_log_service import mark_failed, mark_sent, start_sending
from mailflow.services.template_service import render_email

logger = queue_logger


class MalformedMessageError(ValueError):
    """Queue message body is not a valid EmailQueueMessage"""


class TemplateNotFoundError(ValueError):
    """Neither the template registry nor the fallback table can render this email type"""


def parse_message(body: str) -> EmailQueueMessage:
    try:
        return EmailQueueMessage.model_validate_json(body)
    except ValidationError as e:
        raise MalformedMessageError(f"Malformed queue message: {e}") from e


def process_message(
    record: QueueRecord,
    db: Session,
    provider: Optional[BaseDeliveryProvider] = None
) -> Optional[EmailLog]:
    """Process one received queue message

    Returns:
        The SENT EmailLog, or None if the message had already been sent

    Raises:
        MalformedMessageError: Body could not be parsed (permanent)
        TemplateNotFoundError: No HTML could be rendered (permanent)
        DeliveryError: The provider did not accept the email
    """
    message = parse_message(record.body)
    retry_count = message.retry_count + max(record.receive_count - 1, 0)

    email_log = start_sending(message, retry_count, db)
    if email_log is None:
        delete_message(record.receipt_handle)
        return None

    html = render_email(message.email_type, message.data.template_data, db)
    if not html:
        error = f"No template available for email type {message.email_type}"
        mark_failed(email_log, error, db)
        raise TemplateNotFoundError(error)

    provider = provider or get_delivery_provider()
    try:
        resend_id = provider.send(
            from_address=message.data.from_address,
            to=message.data.to,
            subject=message.data.subject,
            html=html
        )
    except Exception as e:
        mark_failed(email_log, str(e), db)
        logger.error(f"Failed to send {message.message_id} to {message.data.to}: {e}")
        raise

    mark_sent(email_log, resend_id, db)
    delete_message(record.receipt_handle)

    emails_sent_counter.labels(email_type=message.email_type).inc()
    logger.info(f"Sent {message.email_type} ({message.message_id}) as {resend_id}")
    return email_log


def _process_record(record: QueueRecord, provider: Optional[BaseDeliveryProvider]) -> None:
    # One session per message; batch members run on separate threads
    started = time.monotonic()
    db = SessionLocal()
    try:
        with pipeline_span("queue.message", message_id=record.message_id, receive_count=record.receive_count):
            email_log = process_message(record, db, provider)
    finally:
        db.close()

    # wait_for cannot stop this thread, so a message already reported as timed
    # out can still be sent and deleted here. Its SENT row keeps any
    # redelivery from sending it again.
    if time.monotonic() - started > settings.MESSAGE_PROCESSING_TIMEOUT:
        late_completions_counter.inc()
        outcome = "sent" if email_log is not None else "skipped as already sent"
        logger.warning(f"Message {record.message_id} {outcome} after its batch reported it as timed out")


def _failure_reason(error: BaseException) -> str:
    if isinstance(error, MalformedMessageError):
        return "malformed"
    if isinstance(error, TemplateNotFoundError):
        return "no_template"
    if isinstance(error, DeliveryError):
        return "delivery"
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"
    return "error"


async def process_batch(
    records: List[QueueRecord],
    provider: Optional[BaseDeliveryProvider] = None
) -> BatchResult:
    """Process a batch of queue messages concurrently

    Each message succeeds or fails on its own; failed messages are reported
    by message id and stay on the queue for redelivery.
    """
    async def run(record: QueueRecord) -> None:
        await asyncio.wait_for(
            asyncio.to_thread(_process_record, record, provider),
            timeout=settings.MESSAGE_PROCESSING_TIMEOUT
        )

    outcomes = await asyncio.gather(*(run(record) for record in records), return_exceptions=True)

    result = BatchResult()
    for record, outcome in zip(records, outcomes):
        if isinstance(outcome, BaseException):
            reason = _failure_reason(outcome)
            email_send_failures_counter.labels(reason=reason).inc()
            logger.error(f"Message {record.message_id} failed ({reason}): {outcome}")
            result.batch_item_failures.append(BatchItemFailure(item_identifier=record.message_id))
            result.failed += 1
        else:
            result.successful += 1

    logger.info(f"Batch processed: {result.successful} succeeded, {result.failed} failed")
    return result
