"""OpenTelemetry wiring tests"""
import pytest
from unittest.mock import MagicMock, patch

from mailflow.core import otel
from mailflow.core.config import settings


@pytest.mark.medium
class TestPipelineTelemetry:
    """Resource attributes and stage spans"""

    def test_resource_describes_pipeline(self):
        attributes = otel.pipeline_resource().attributes

        assert attributes["service.name"] == settings.OTEL_SERVICE_NAME
        assert attributes["service.namespace"] == "mailflow"
        assert attributes["mailflow.email.provider"] == "resend"
        assert attributes["mailflow.queue.max_receive_count"] == settings.QUEUE_MAX_RECEIVE_COUNT

    def test_span_prefixes_attributes_and_skips_none(self):
        tracer = MagicMock()
        span = tracer.start_as_current_span.return_value.__enter__.return_value

        with patch.object(otel, 'tracer', tracer):
            with otel.pipeline_span("queue.message", message_id="m1", receive_count=2, user_id=None):
                pass

        tracer.start_as_current_span.assert_called_once_with("mailflow.queue.message")
        span.set_attribute.assert_any_call("mailflow.message_id", "m1")
        span.set_attribute.assert_any_call("mailflow.receive_count", 2)
        assert span.set_attribute.call_count == 2

    def test_span_without_exporter_is_harmless(self):
        with otel.pipeline_span("webhook.event", event_type="email.opened") as span:
            span.set_attribute("mailflow.matched_rows", 1)

    def test_exceptions_propagate_through_span(self):
        with pytest.raises(RuntimeError):
            with otel.pipeline_span("orchestrator.event"):
                raise RuntimeError("boom")

    def test_no_endpoint_disables_export(self):
        with patch.object(settings, 'OTEL_EXPORTER_OTLP_ENDPOINT', ""):
            assert otel.initialize_otel() is False
            assert otel.setup_otel_logging() is False
