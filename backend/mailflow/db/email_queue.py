"""Redis-based durable email queue with at-least-once delivery

Messages wait in one Redis list per priority. Receiving a message moves it
atomically into an in-flight hash under a fresh receipt handle and records a
visibility deadline. A message is only gone once the consumer deletes it by
receipt handle; anything still in flight after its deadline is redelivered by
requeue_expired(), and messages received QUEUE_MAX_RECEIVE_COUNT times are
moved to the dead-letter list instead.
"""
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import redis

from mailflow.core.config import settings
from mailflow.core.metrics import dead_lettered_counter
from mailflow.schemas.email import EmailPriority, EmailQueueMessage, QueueRecord

logger = logging.getLogger(__name__)

# Redis keys
QUEUE_KEY_PREFIX = "email:queue:"
INFLIGHT_KEY = "email:queue:inflight"
VISIBILITY_KEY = "email:queue:visibility"
DEAD_LETTER_KEY = "email:queue:dead"

# Drain order; advisory, not a strict priority guarantee
PRIORITY_ORDER = (EmailPriority.HIGH, EmailPriority.NORMAL, EmailPriority.LOW)

# Pop one envelope and register it as in flight in a single step
RECEIVE_SCRIPT = """
local envelope = redis.call('RPOP', KEYS[1])
if not envelope then
    return false
end
redis.call('HSET', KEYS[2], ARGV[1], envelope)
redis.call('ZADD', KEYS[3], ARGV[2], ARGV[1])
return envelope
"""

_client = None


def get_queue_client():
    """Get or create the queue Redis client (lazy initialization)"""
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.QUEUE_REDIS_URL or settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.QUEUE_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.QUEUE_SOCKET_TIMEOUT
        )
    return _client


def queue_key(priority: EmailPriority) -> str:
    return f"{QUEUE_KEY_PREFIX}{EmailPriority(priority).value}"


def enqueue_email(message: EmailQueueMessage) -> str:
    """Put an email on the queue

    Failures are raised: the caller must know the email could not be queued.

    Returns:
        The message id
    """
    envelope = {
        "messageId": message.message_id,
        "priority": message.priority.value,
        "body": message.to_json(),
        "receiveCount": 0,
        "enqueuedAt": datetime.now(timezone.utc).isoformat()
    }
    get_queue_client().lpush(queue_key(message.priority), json.dumps(envelope))
    logger.info(f"Queued email {message.message_id} ({message.email_type}, priority={message.priority.value})")
    return message.message_id


def _to_record(receipt_handle: str, raw_envelope: str) -> QueueRecord:
    try:
        envelope = json.loads(raw_envelope)
        return QueueRecord(
            receipt_handle=receipt_handle,
            message_id=envelope["messageId"],
            body=envelope["body"],
            receive_count=int(envelope.get("receiveCount", 0)) + 1
        )
    except (ValueError, KeyError, TypeError):
        # Hand the raw payload to the consumer, which fails it as malformed
        logger.error(f"Malformed queue envelope under receipt {receipt_handle}")
        return QueueRecord(receipt_handle=receipt_handle, message_id=receipt_handle, body=str(raw_envelope))


def receive_messages(max_messages: Optional[int] = None, visibility_timeout: Optional[int] = None) -> List[QueueRecord]:
    """Receive up to max_messages, highest priority first

    Each received message stays invisible for visibility_timeout seconds; it
    must be deleted with its receipt handle before then or it is redelivered.
    """
    max_messages = max_messages or settings.QUEUE_BATCH_SIZE
    visibility_timeout = visibility_timeout or settings.QUEUE_VISIBILITY_TIMEOUT
    client = get_queue_client()
    records: List[QueueRecord] = []

    for priority in PRIORITY_ORDER:
        while len(records) < max_messages:
            receipt_handle = str(uuid.uuid4())
            deadline = time.time() + visibility_timeout
            raw_envelope = client.eval(
                RECEIVE_SCRIPT, 3,
                queue_key(priority), INFLIGHT_KEY, VISIBILITY_KEY,
                receipt_handle, deadline
            )
            if raw_envelope is None:
                break
            records.append(_to_record(receipt_handle, raw_envelope))

    if records:
        logger.debug(f"Received {len(records)} message(s) from email queue")
    return records


def delete_message(receipt_handle: str) -> bool:
    """Delete a received message after successful processing

    Returns:
        True if the message was still in flight under this receipt handle
    """
    pipe = get_queue_client().pipeline()
    pipe.hdel(INFLIGHT_KEY, receipt_handle)
    pipe.zrem(VISIBILITY_KEY, receipt_handle)
    removed, _ = pipe.execute()
    if not removed:
        logger.warning(f"Receipt {receipt_handle} no longer in flight (visibility timeout expired?)")
    return bool(removed)


def _dead_letter(client, raw_envelope: str, reason: str) -> None:
    client.lpush(DEAD_LETTER_KEY, json.dumps({
        "envelope": raw_envelope,
        "reason": reason,
        "deadLetteredAt": datetime.now(timezone.utc).isoformat()
    }))
    dead_lettered_counter.inc()


def requeue_expired(now: Optional[float] = None, max_receive_count: Optional[int] = None) -> Dict[str, int]:
    """Redeliver in-flight messages whose visibility timeout has lapsed

    Safe to run from several workers at once: HDEL decides which worker owns
    an expired receipt.

    Returns:
        dict with counts of 'requeued' and 'dead_lettered' messages
    """
    now = now if now is not None else time.time()
    max_receive_count = max_receive_count or settings.QUEUE_MAX_RECEIVE_COUNT
    client = get_queue_client()
    requeued = 0
    dead_lettered = 0

    for receipt_handle in client.zrangebyscore(VISIBILITY_KEY, "-inf", now):
        raw_envelope = client.hget(INFLIGHT_KEY, receipt_handle)
        claimed = client.hdel(INFLIGHT_KEY, receipt_handle)
        client.zrem(VISIBILITY_KEY, receipt_handle)
        if not claimed or raw_envelope is None:
            continue

        try:
            envelope = json.loads(raw_envelope)
            receives = int(envelope.get("receiveCount", 0)) + 1
            priority = EmailPriority(envelope.get("priority", EmailPriority.NORMAL.value))
        except (ValueError, TypeError, AttributeError):
            _dead_letter(client, raw_envelope, "malformed envelope")
            dead_lettered += 1
            continue

        if receives >= max_receive_count:
            logger.warning(
                f"Message {envelope.get('messageId')} received {receives} times, moving to dead-letter list"
            )
            _dead_letter(client, raw_envelope, f"max receive count {max_receive_count} reached")
            dead_lettered += 1
            continue

        envelope["receiveCount"] = receives
        # RPUSH puts it at the consuming end so it is redelivered next
        client.rpush(queue_key(priority), json.dumps(envelope))
        requeued += 1

    if requeued or dead_lettered:
        logger.info(f"Visibility sweep: {requeued} requeued, {dead_lettered} dead-lettered")
    return {"requeued": requeued, "dead_lettered": dead_lettered}


def queue_depths() -> Dict[str, int]:
    """Number of waiting messages per priority, plus in-flight and dead-lettered"""
    client = get_queue_client()
    depths = {priority.value: client.llen(queue_key(priority)) for priority in PRIORITY_ORDER}
    depths["inflight"] = client.hlen(INFLIGHT_KEY)
    depths["dead"] = client.llen(DEAD_LETTER_KEY)
    return depths
