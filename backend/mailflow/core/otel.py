"""OpenTelemetry wiring for the email pipeline

Exporters are configured only when OTEL_EXPORTER_OTLP_ENDPOINT is set. Until
then `tracer` hands out non-recording spans, so pipeline_span is safe to use
unconditionally.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from mailflow.core.config import settings

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("mailflow")


def pipeline_resource() -> Resource:
    """Resource describing this deployment of the pipeline"""
    return Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.namespace": "mailflow",
        "service.version": "1.0.0",
        "deployment.environment": settings.OTEL_ENVIRONMENT,
        "mailflow.email.provider": "resend",
        "mailflow.queue.backend": "redis",
        "mailflow.queue.max_receive_count": settings.QUEUE_MAX_RECEIVE_COUNT,
        "mailflow.queue.visibility_timeout_s": settings.QUEUE_VISIBILITY_TIMEOUT,
    })


@contextmanager
def pipeline_span(stage: str, **attributes) -> Iterator[trace.Span]:
    """Span for one pipeline stage, e.g. pipeline_span("queue.message", message_id=...)

    Attributes are prefixed with "mailflow." and None values are skipped.
    Exceptions raised inside are recorded on the span and re-raised.
    """
    with tracer.start_as_current_span(f"mailflow.{stage}") as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"mailflow.{key}", value)
        yield span


def initialize_otel() -> bool:
    """Configure trace and metric export, and trace the producer HTTP client

    Returns:
        True when exporters were configured, False when OTEL is disabled or failed
    """
    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT
    if not endpoint:
        return False

    try:
        resource = pipeline_resource()

        trace_provider = TracerProvider(resource=resource)
        trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
        trace.set_tracer_provider(trace_provider)

        metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=endpoint, insecure=True))
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

        HTTPXClientInstrumentor().instrument()
        return True
    except Exception as e:
        logger.warning(f"Failed to initialize OpenTelemetry: {e}")
        return False


def setup_otel_logging() -> bool:
    """Ship pipeline logs over OTLP alongside the console handler"""
    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT
    if not endpoint:
        return False

    try:
        from opentelemetry._logs import set_logger_provider
        from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
        from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
        from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

        logger_provider = LoggerProvider(resource=pipeline_resource())
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, insecure=True))
        )
        set_logger_provider(logger_provider)

        logging.getLogger().addHandler(LoggingHandler(level=logging.NOTSET, logger_provider=logger_provider))
        return True
    except Exception as e:
        logger.warning(f"Failed to setup OTEL logging: {e}")
        return False


def instrument_app(app) -> None:
    FastAPIInstrumentor.instrument_app(app)


def instrument_engine(engine) -> None:
    """Trace send log and preference queries"""
    try:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    except Exception as e:
        logger.warning(f"Failed to instrument SQLAlchemy: {e}")
