"""Background worker that drains the email queue

Each poll first redelivers messages whose visibility timeout lapsed, then
receives a batch and processes it concurrently.
"""
import asyncio
import logging
from typing import Optional

from mailflow.core.config import settings
from mailflow.core.metrics import update_queue_depth_gauge
from mailflow.db.email_queue import queue_depths, receive_messages, requeue_expired
from mailflow.schemas.email import BatchResult
from mailflow.services.queue_consumer_service import process_batch

logger = logging.getLogger(__name__)


async def poll_once() -> Optional[BatchResult]:
    """Run one sweep-receive-process cycle

    Returns:
        The batch result, or None if the queue was empty
    """
    await asyncio.to_thread(requeue_expired)

    records = await asyncio.to_thread(receive_messages)
    if not records:
        return None

    result = await process_batch(records)
    update_queue_depth_gauge(await asyncio.to_thread(queue_depths))
    return result


async def queue_worker_task() -> None:
    """Main worker loop: poll the queue until cancelled"""
    logger.info("Starting email queue worker")

    while True:
        try:
            result = await poll_once()
            if result is None:
                await asyncio.sleep(settings.QUEUE_POLL_INTERVAL)

        except asyncio.CancelledError:
            logger.info("Email queue worker stopped")
            raise

        except Exception as e:
            logger.error(f"Error in email queue worker loop: {e}", exc_info=True)
            # Wait a bit before retrying to avoid tight error loops
            await asyncio.sleep(5)
