"""Durable email queue tests (receipt handles, visibility timeout, dead-lettering)"""
import json
import time
import pytest

from mailflow.db.email_queue import (
    DEAD_LETTER_KEY, INFLIGHT_KEY, VISIBILITY_KEY,
    delete_message, enqueue_email, queue_depths, queue_key,
    receive_messages, requeue_expired
)
from mailflow.schemas.email import EmailData, EmailPriority, EmailQueueMessage


def make_message(message_id: str, email_type: str = "quiz_basic", priority: EmailPriority = EmailPriority.NORMAL) -> EmailQueueMessage:
    return EmailQueueMessage(
        message_id=message_id,
        email_type=email_type,
        user_id="user_123",
        data=EmailData(
            to="delivered@resend.dev",
            from_address="CloudDojo <noreply@clouddojo.tech>",
            subject="Great progress, Ada! 🎯",
            template_data={"username": "Ada", "score": 80}
        ),
        priority=priority,
        created_at="2025-01-01T00:00:00+00:00"
    )


@pytest.mark.critical
class TestEnqueueAndReceive:
    """Enqueue and receive semantics"""

    def test_enqueue_places_message_on_priority_list(self, mock_redis):
        enqueue_email(make_message("m1", priority=EmailPriority.HIGH))

        assert mock_redis.llen(queue_key(EmailPriority.HIGH)) == 1
        envelope = json.loads(mock_redis.lindex(queue_key(EmailPriority.HIGH), 0))
        assert envelope["messageId"] == "m1"
        assert envelope["receiveCount"] == 0
        body = json.loads(envelope["body"])
        assert body["emailType"] == "quiz_basic"
        assert body["data"]["from"] == "CloudDojo <noreply@clouddojo.tech>"
        assert body["data"]["templateData"]["username"] == "Ada"

    def test_receive_drains_high_priority_first(self, mock_redis):
        enqueue_email(make_message("low-1", priority=EmailPriority.LOW))
        enqueue_email(make_message("normal-1"))
        enqueue_email(make_message("high-1", priority=EmailPriority.HIGH))

        records = receive_messages(max_messages=10)

        assert [record.message_id for record in records] == ["high-1", "normal-1", "low-1"]

    def test_receive_is_fifo_within_a_priority(self, mock_redis):
        for message_id in ("a", "b", "c"):
            enqueue_email(make_message(message_id))

        records = receive_messages(max_messages=2)

        assert [record.message_id for record in records] == ["a", "b"]
        assert mock_redis.llen(queue_key(EmailPriority.NORMAL)) == 1

    def test_received_message_is_in_flight_until_deleted(self, mock_redis):
        enqueue_email(make_message("m1"))

        record = receive_messages()[0]

        assert record.receive_count == 1
        assert mock_redis.hexists(INFLIGHT_KEY, record.receipt_handle)
        assert mock_redis.zscore(VISIBILITY_KEY, record.receipt_handle) is not None
        assert receive_messages() == []

        assert delete_message(record.receipt_handle) is True
        assert not mock_redis.hexists(INFLIGHT_KEY, record.receipt_handle)
        assert mock_redis.zscore(VISIBILITY_KEY, record.receipt_handle) is None

    def test_delete_with_stale_receipt_returns_false(self, mock_redis):
        assert delete_message("no-such-receipt") is False

    def test_received_record_body_parses_as_queue_message(self, mock_redis):
        enqueue_email(make_message("m1"))

        record = receive_messages()[0]
        message = EmailQueueMessage.model_validate_json(record.body)

        assert message.message_id == "m1"
        assert message.data.from_address == "CloudDojo <noreply@clouddojo.tech>"


@pytest.mark.critical
class TestVisibilityTimeout:
    """Redelivery of messages that were received but never deleted"""

    def test_expired_message_is_redelivered_with_higher_receive_count(self, mock_redis):
        enqueue_email(make_message("m1"))
        first = receive_messages(visibility_timeout=30)[0]

        result = requeue_expired(now=time.time() + 60)

        assert result == {"requeued": 1, "dead_lettered": 0}
        assert not mock_redis.hexists(INFLIGHT_KEY, first.receipt_handle)

        second = receive_messages()[0]
        assert second.message_id == "m1"
        assert second.receive_count == 2
        assert second.receipt_handle != first.receipt_handle

    def test_unexpired_message_is_not_requeued(self, mock_redis):
        enqueue_email(make_message("m1"))
        record = receive_messages(visibility_timeout=300)[0]

        result = requeue_expired(now=time.time())

        assert result == {"requeued": 0, "dead_lettered": 0}
        assert mock_redis.hexists(INFLIGHT_KEY, record.receipt_handle)

    def test_deleted_message_is_never_redelivered(self, mock_redis):
        enqueue_email(make_message("m1"))
        record = receive_messages(visibility_timeout=30)[0]
        delete_message(record.receipt_handle)

        result = requeue_expired(now=time.time() + 60)

        assert result == {"requeued": 0, "dead_lettered": 0}
        assert receive_messages() == []

    def test_message_is_dead_lettered_after_max_receives(self, mock_redis):
        enqueue_email(make_message("poison"))

        for _ in range(2):
            receive_messages(visibility_timeout=1)
            requeue_expired(now=time.time() + 10, max_receive_count=3)

        receive_messages(visibility_timeout=1)
        result = requeue_expired(now=time.time() + 10, max_receive_count=3)

        assert result == {"requeued": 0, "dead_lettered": 1}
        assert mock_redis.llen(DEAD_LETTER_KEY) == 1
        dead = json.loads(mock_redis.lindex(DEAD_LETTER_KEY, 0))
        assert json.loads(dead["envelope"])["messageId"] == "poison"
        assert receive_messages() == []

    def test_queue_depths_counts_waiting_inflight_and_dead(self, mock_redis):
        enqueue_email(make_message("h", priority=EmailPriority.HIGH))
        enqueue_email(make_message("n1"))
        enqueue_email(make_message("n2"))
        receive_messages(max_messages=1)

        depths = queue_depths()

        assert depths == {"high": 0, "normal": 2, "low": 0, "inflight": 1, "dead": 0}
