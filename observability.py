# meta-tracking/observability.py
import os
from enum import Enum
from functools import lru_cache
import logging
from typing import Optional

from django.conf import settings
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode
from contextlib import contextmanager

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("meta_tracking.utils")

# Global reference to the tracer provider for cleanup
_tracer_provider: Optional[TracerProvider] = None

# Set once a provider is installed; local runs and tests leave it False.
_TRACING_ACTIVE: bool = False


class MetaTrackingService(str, Enum):
    """Service names reported on spans."""
    WEB = "meta-tracking-web"
    WORKER = "meta-tracking-worker"


def tracing_enabled() -> bool:
    truthy = ("1", "true", "yes", "on")
    falsy = ("0", "false", "no", "off")

    user_flag = os.getenv("META_TRACKING_ENABLE_TRACING", "").lower()
    if user_flag in falsy:
        return False
    if user_flag in truthy:
        return True
    return bool(getattr(settings, "META_TRACKING_ENABLE_TRACING", False))


@lru_cache(maxsize=1)                    # make sure we initialize only once
def init_tracing(service_name: MetaTrackingService) -> None:
    """
    Initialize the OTEL tracer provider exactly once per process.
    Pass a `service_name` that distinguishes web vs. workers.

    Set OTEL_SPAN_PROCESSOR=simple for synchronous export (no background thread).
    """
    global _tracer_provider, _TRACING_ACTIVE

    if not tracing_enabled():
        logger.debug("OpenTelemetry: tracing disabled - skipping initialization for %s", service_name.value)
        return

    res = Resource.create(
        {
            "service.name": service_name.value,
            "service.version": os.getenv("META_TRACKING_VERSION", "dev"),
            "deployment.environment.name": os.getenv("META_TRACKING_RELEASE_ENV", "local"),
        }
    )

    try:
        provider = TracerProvider(resource=res)
        exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)

        processor_type = os.getenv("OTEL_SPAN_PROCESSOR", "batch").lower()
        if processor_type == "simple":
            span_processor = SimpleSpanProcessor(exporter)
        else:
            span_processor = BatchSpanProcessor(
                exporter,
                schedule_delay_millis=int(os.getenv("OTEL_BSP_SCHEDULE_DELAY", "500")),
                export_timeout_millis=int(os.getenv("OTEL_BSP_EXPORT_TIMEOUT", "5000")),
            )
        provider.add_span_processor(span_processor)
        logger.debug(f"OpenTelemetry: {processor_type} span processor added for {service_name.value}")

        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        _TRACING_ACTIVE = True

    except Exception as e:
        logger.error(f"Failed to initialize OTEL tracer: {e}")
        raise


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider, if one was installed."""
    global _tracer_provider

    if _tracer_provider is None:
        logger.debug("OpenTelemetry: No tracer provider to shutdown")
        return

    try:
        _tracer_provider.force_flush(timeout_millis=3000)
        _tracer_provider.shutdown()
    except Exception as e:
        logger.warning(f"OpenTelemetry: Error during tracer provider shutdown: {e}")
    finally:
        _tracer_provider = None


@contextmanager
def traced(name: str, **attrs):
    if _TRACING_ACTIVE:
        logger.debug(f"OpenTelemetry: Tracing {name} with attributes: {attrs}")

    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        for key, value in attrs.items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            mark_span_failed_with_exception(span, e)
            raise


def mark_span_failed_with_exception(span: Span, exc: Exception, message: Optional[str] = None) -> None:
    """
    Mark a span as failed with an exception.

    This sets the span status to ERROR and records the exception.
    """
    if not span.is_recording():
        return
    if message is None:
        message = str(exc)
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR, message))
    span.set_attribute("meta_tracking.error", True)
    span.set_attribute("error.type", type(exc).__name__)
    span.set_attribute("error.message", message)
