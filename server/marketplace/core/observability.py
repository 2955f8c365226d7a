"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging
from typing import Any

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Settings

SERVICE_NAME = "marketplace-payments-api"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
PAYMENT_INTENTS_CREATED = Counter(
    'payment_intents_created_total',
    'Payment intents created',
    ['booking_type', 'metadata_format'],
    registry=REGISTRY
)

WEBHOOK_DELIVERIES = Counter(
    'payment_webhook_deliveries_total',
    'Webhook deliveries by outcome',
    ['event_type', 'outcome'],
    registry=REGISTRY
)

BOOKINGS_MATERIALIZED = Counter(
    'bookings_materialized_total',
    'Bookings created from confirmed payments',
    ['category'],
    registry=REGISTRY
)

BOOKING_LINES_FAILED = Counter(
    'booking_lines_failed_total',
    'Paid booking lines that could not be materialized',
    ['reason'],
    registry=REGISTRY
)

SIDE_EFFECTS = Counter(
    'booking_side_effects_total',
    'Post-booking side effects by outcome',
    ['effect', 'outcome'],
    registry=REGISTRY
)

SIDE_EFFECTS_PENDING = Gauge(
    'booking_side_effects_pending',
    'Side effects queued but not yet run',
    registry=REGISTRY
)


def setup_structured_logging(settings: Settings) -> None:
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            # request_id is bound by RequestContextMiddleware
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource(settings: Settings) -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing(settings: Settings):
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource(settings))

    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics(settings: Settings):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(settings), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: AsyncEngine):
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_payment_intent(booking_type: str, metadata_format: str):
        PAYMENT_INTENTS_CREATED.labels(booking_type=booking_type, metadata_format=metadata_format).inc()

    @staticmethod
    def record_webhook(event_type: str, outcome: str):
        WEBHOOK_DELIVERIES.labels(event_type=event_type, outcome=outcome).inc()

    @staticmethod
    def record_booking_materialized(category: str):
        BOOKINGS_MATERIALIZED.labels(category=category).inc()

    @staticmethod
    def record_line_failed(reason: str):
        BOOKING_LINES_FAILED.labels(reason=reason).inc()

    @staticmethod
    def record_side_effect(effect: str, outcome: str):
        SIDE_EFFECTS.labels(effect=effect, outcome=outcome).inc()

    @staticmethod
    def set_side_effects_pending(count: int):
        SIDE_EFFECTS_PENDING.set(count)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logger with business context."""

    def __init__(self, logger: Any):
        self.logger = logger

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs):
        self.logger.error(message, exc_info=True, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def with_context(self, **kwargs) -> "StructuredLogger":
        """Return a logger with additional bound context."""
        return StructuredLogger(self.logger.bind(**kwargs))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(structlog.get_logger(name))
