"""
OpenTelemetry wiring.

The API's own spans come from FastAPI auto-instrumentation; AWSGateway opens
one child span per provider call through get_tracer().
"""

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.semconv.resource import ResourceAttributes

from app.shared.core.config import Settings, get_settings

logger = structlog.get_logger()

SERVICE_NAME = "cloudlens-api"


def build_span_exporter(settings: Settings) -> SpanExporter:
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        return OTLPSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=settings.OTEL_EXPORTER_OTLP_INSECURE,
        )
    return ConsoleSpanExporter()


def build_tracer_provider(settings: Settings) -> TracerProvider:
    provider = TracerProvider(resource=Resource.create({
        ResourceAttributes.SERVICE_NAME: SERVICE_NAME,
        ResourceAttributes.SERVICE_VERSION: settings.VERSION,
        "deployment.environment": settings.ENVIRONMENT,
    }))
    provider.add_span_processor(BatchSpanProcessor(build_span_exporter(settings)))
    return provider


def setup_tracing(app=None) -> bool:
    """Install the global tracer provider; returns False when skipped under TESTING."""
    settings = get_settings()
    if settings.TESTING:
        logger.info("tracing_skipped", reason="testing")
        return False

    trace.set_tracer_provider(build_tracer_provider(settings))
    logger.info(
        "tracing_configured",
        exporter="otlp" if settings.OTEL_EXPORTER_OTLP_ENDPOINT else "console",
        environment=settings.ENVIRONMENT,
    )

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
    return True


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)
