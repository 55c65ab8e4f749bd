"""Prometheus metrics for the email pipeline"""
from prometheus_client import Counter, Gauge, REGISTRY

# Counters are re-created when test modules re-import the app; reuse the
# registered collector instead of failing on the duplicate name.

try:
    orchestrator_decisions_counter = Counter(
        'mailflow_orchestrator_decisions_total',
        'Orchestrator outcomes per domain event',
        ['outcome']
    )
except ValueError:
    orchestrator_decisions_counter = REGISTRY._names_to_collectors.get('mailflow_orchestrator_decisions_total')

try:
    emails_sent_counter = Counter(
        'mailflow_emails_sent_total',
        'Emails accepted by the delivery provider',
        ['email_type']
    )
except ValueError:
    emails_sent_counter = REGISTRY._names_to_collectors.get('mailflow_emails_sent_total')

try:
    email_send_failures_counter = Counter(
        'mailflow_email_send_failures_total',
        'Queue messages that failed processing',
        ['reason']
    )
except ValueError:
    email_send_failures_counter = REGISTRY._names_to_collectors.get('mailflow_email_send_failures_total')

try:
    webhook_events_counter = Counter(
        'mailflow_webhook_events_total',
        'Delivery webhook events received',
        ['event_type']
    )
except ValueError:
    webhook_events_counter = REGISTRY._names_to_collectors.get('mailflow_webhook_events_total')

try:
    dead_lettered_counter = Counter(
        'mailflow_dead_lettered_messages_total',
        'Queue messages moved to the dead-letter list'
    )
except ValueError:
    dead_lettered_counter = REGISTRY._names_to_collectors.get('mailflow_dead_lettered_messages_total')

try:
    late_completions_counter = Counter(
        'mailflow_late_completions_total',
        'Messages that finished sending after their batch reported them as timed out'
    )
except ValueError:
    late_completions_counter = REGISTRY._names_to_collectors.get('mailflow_late_completions_total')

try:
    queue_depth_gauge = Gauge(
        'mailflow_queue_depth',
        'Messages waiting in the email queue',
        ['priority']
    )
except ValueError:
    queue_depth_gauge = REGISTRY._names_to_collectors.get('mailflow_queue_depth')


def update_queue_depth_gauge(depths: dict) -> None:
    """Update the queue depth gauge from a {priority: depth} mapping"""
    for priority, depth in depths.items():
        queue_depth_gauge.labels(priority=priority).set(depth)
