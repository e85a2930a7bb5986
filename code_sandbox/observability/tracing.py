"""
Centralized Tracing Utility

Provides OpenTelemetry-based tracing for the execution paths.
Supports configuration via settings and safe failure handling: if tracing
cannot be configured the sandbox keeps running with a no-op tracer.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer

from code_sandbox.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Global tracer provider
_tracer_provider: Optional[TracerProvider] = None
_tracing_configured = False


def configure_tracing(settings: Optional[Settings] = None) -> None:
    """
    Configure OpenTelemetry tracing.

    Settings:
    - TRACING_ENABLED: Enable/disable tracing (default: false)
    - TRACING_EXPORTER: console|none (default: console)
    - TRACING_SERVICE_NAME: Service name (default: code-sandbox)
    """
    global _tracer_provider, _tracing_configured

    if _tracing_configured:
        return

    settings = settings or default_settings

    try:
        if not settings.TRACING_ENABLED:
            logger.info("Tracing is disabled via TRACING_ENABLED=false")
            _tracing_configured = True
            return

        exporter_type = settings.TRACING_EXPORTER.lower()
        resource = Resource(attributes={SERVICE_NAME: settings.TRACING_SERVICE_NAME})
        provider = TracerProvider(resource=resource)

        if exporter_type == "console":
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            logger.info("Console tracing configured")
        elif exporter_type == "none":
            logger.info("Tracing exporter set to 'none' - no spans will be exported")
        else:
            logger.warning(f"Unknown exporter type: {exporter_type}. Tracing disabled.")
            _tracing_configured = True
            return

        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        _tracing_configured = True
        logger.info(f"Tracing configured successfully (service: {settings.TRACING_SERVICE_NAME})")

    except Exception as e:
        logger.error(f"Failed to configure tracing: {e}. Tracing will be disabled.")
        _tracer_provider = None
        _tracing_configured = True


def is_tracing_enabled() -> bool:
    return _tracer_provider is not None


def get_tracer(service_name: str) -> Tracer:
    """
    Get a tracer for the given component.

    The OpenTelemetry proxy tracer picks up the provider once
    configure_tracing() runs, so module-level tracers are safe.
    """
    return trace.get_tracer(service_name)


@contextmanager
def trace_span(tracer: Tracer, span_name: str, attributes: Optional[dict] = None):
    """
    Context manager for a traced span that records exceptions.

    Yields None when tracing is disabled.

    Example:
        with trace_span(tracer, "sandbox.execute", {"execution.id": eid}) as span:
            add_span_attributes(span, {"execution.status": "success"})
    """
    if not is_tracing_enabled():
        yield None
        return

    with tracer.start_as_current_span(span_name, record_exception=False, set_status_on_exception=False) as span:
        if attributes:
            add_span_attributes(span, attributes)
        try:
            yield span
        except Exception as e:
            set_span_error(span, e)
            raise


def set_span_error(span, error: Exception) -> None:
    if span and is_tracing_enabled():
        try:
            span.set_status(Status(StatusCode.ERROR, str(error)))
            span.record_exception(error)
        except Exception as e:
            logger.error(f"Error setting span error: {e}")


def add_span_attributes(span, attributes: dict) -> None:
    """
    Add attributes to a span safely. None values are skipped.
    """
    if span and is_tracing_enabled():
        try:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        except Exception as e:
            logger.error(f"Error adding span attributes: {e}")
