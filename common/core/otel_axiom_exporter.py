from typing import Dict
import functools
import asyncio
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from common.core.config import settings

# Configure logging at module level
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,  # This ensures it overrides any existing configuration
)

AXIOM_TRACES_ENDPOINT = "https://api.axiom.co/v1/traces"
AXIOM_LOGS_ENDPOINT = "https://api.axiom.co/v1/logs"

# Global flag to ensure initialization only happens once
_initialized = False
axiom_tracer = trace.get_tracer(settings.otel_service_name)


def _axiom_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.axiom_token}",
        "X-Axiom-Dataset": settings.axiom_dataset,
    }


def _initialize_telemetry():
    """Initialize telemetry once and only once."""
    global _initialized, axiom_tracer

    if _initialized:
        return

    resource = Resource(
        attributes={
            SERVICE_NAME: settings.otel_service_name,
            "service.version": settings.otel_service_version,
        }
    )

    # TRACING SETUP
    provider = TracerProvider(resource=resource)
    if settings.axiom_token:
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=AXIOM_TRACES_ENDPOINT, headers=_axiom_headers()
                )
            )
        )
    trace.set_tracer_provider(provider)
    axiom_tracer = trace.get_tracer(settings.otel_service_name)

    # LOGGING SETUP
    if settings.axiom_token:
        logger_provider = LoggerProvider(resource=resource)
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(
                OTLPLogExporter(endpoint=AXIOM_LOGS_ENDPOINT, headers=_axiom_headers())
            )
        )
        set_logger_provider(logger_provider)

    logging.getLogger().setLevel(logging.DEBUG if settings.debug else logging.INFO)

    _initialized = True
    logging.getLogger(__name__).info(
        f"Telemetry initialized (export={'axiom' if settings.axiom_token else 'off'})"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance. Ensures telemetry is initialized.
    Use this instead of logging.getLogger() directly.
    """
    if not _initialized:
        _initialize_telemetry()
    return logging.getLogger(name)


def _span_name(func, args) -> str:
    # Methods get "Class.method"
    if args and hasattr(args[0], func.__name__):
        return f"{args[0].__class__.__name__}.{func.__name__}"
    return func.__name__


def trace_span(func):
    """Decorator that automatically creates a span with the function name."""

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(_span_name(func, args)):
            return func(*args, **kwargs)

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(_span_name(func, args)):
            return await func(*args, **kwargs)

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper

