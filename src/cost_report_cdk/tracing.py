"""OpenTelemetry tracing for graph evaluation and stack synthesis.

Both entry points (``app.py`` and ``cost-report``) are short lived, so
spans are flushed explicitly with shutdown_tracing() before exit.
"""

import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import Settings


def setup_tracing(
    service_name: str = "cost_report_cdk",
    otlp_endpoint: Optional[str] = None,
    service_version: str = "0.1.0",
    deployment_environment: Optional[str] = None,
) -> TracerProvider:
    """Configure OpenTelemetry tracing with an OTLP exporter.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP collector endpoint (defaults to env var OTEL_EXPORTER_OTLP_ENDPOINT)
        service_version: Version reported on every span
        deployment_environment: config.yaml block being synthesized

    Returns:
        The installed tracer provider
    """
    endpoint = otlp_endpoint or os.getenv(
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "http://localhost:4317",
    )

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": deployment_environment or "unknown",
        }
    )

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
    )
    trace.set_tracer_provider(tracer_provider)
    return tracer_provider


def setup_tracing_from_settings(settings: Settings) -> Optional[TracerProvider]:
    """Install tracing when ``TRACING__ENABLED`` is set, otherwise do nothing.

    Example:
        >>> from cost_report_cdk.settings import get_settings
        >>> setup_tracing_from_settings(get_settings())
    """
    if not settings.tracing.enabled:
        return None
    return setup_tracing(
        service_name=settings.tracing.service_name,
        otlp_endpoint=settings.tracing.endpoint,
        service_version=settings.app_version,
        deployment_environment=settings.stack_environment,
    )


def shutdown_tracing() -> None:
    """Flush and close the SDK provider, if one was installed."""
    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.shutdown()


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance.

    Without setup_tracing() the global no-op provider is used.
    """
    return trace.get_tracer(name)


__all__ = [
    "setup_tracing",
    "setup_tracing_from_settings",
    "shutdown_tracing",
    "get_tracer",
]
