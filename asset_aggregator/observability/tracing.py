"""
OpenTelemetry distributed tracing for the asset aggregator.

Provides:
- setup_tracing(): Initialize TracerProvider with OTLP exporter
- get_tracer(): Get a named tracer instance
- traced(): Context manager for creating spans that record exceptions
- inject_trace_context() / extract_trace_context(): W3C traceparent
  propagation over HTTP headers
- add_trace_context(): structlog processor for log-trace correlation

Outgoing source requests carry the ``traceparent`` header so the bank,
securities and insurance services can attach their spans to the
aggregation request; the API reads it from incoming requests.

Usage:
    from asset_aggregator.observability.tracing import setup_tracing, get_tracer

    setup_tracing("asset-aggregator", "http://localhost:4317")
    tracer = get_tracer(__name__)

    with traced(tracer, "asset_aggregation.aggregate", {"customer_id": "C001"}):
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import SpanContext, StatusCode, TraceFlags, Tracer
from opentelemetry.trace.propagation import get_current_span

logger = logging.getLogger(__name__)

_tracing_enabled = False

TRACE_PARENT_HEADER = "traceparent"


def setup_tracing(
    service_name: str,
    otlp_endpoint: str | None = None,
    *,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """
    Initialize the OpenTelemetry TracerProvider.

    Uses OTLP gRPC exporter by default. Pass a custom exporter for testing
    (e.g., InMemorySpanExporter).

    Args:
        service_name: Logical service name (appears in Jaeger/Tempo).
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317").
        exporter: Optional custom exporter (overrides OTLP).

    Returns:
        The configured TracerProvider.
    """
    global _tracing_enabled

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    if exporter is None:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        exporter = OTLPSpanExporter(
            endpoint=otlp_endpoint or "http://localhost:4317",
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        # Synchronous export so tests can read spans immediately
        provider.add_span_processor(SimpleSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _tracing_enabled = True
    logger.info(
        "OpenTelemetry tracing initialized: service=%s endpoint=%s",
        service_name,
        otlp_endpoint or "(custom exporter)",
    )
    return provider


def get_tracer(name: str) -> Tracer:
    """
    Get a named tracer from the global TracerProvider.

    Safe to call even when tracing is not enabled; returns a no-op tracer.
    """
    return trace.get_tracer(name)


def is_tracing_enabled() -> bool:
    """Check whether tracing has been initialized."""
    return _tracing_enabled


# ── HTTP header trace context propagation ────────────────────────────


def inject_trace_context() -> dict[str, str]:
    """
    Render the current span as HTTP headers for an outgoing request.

    Returns a dict with a single ``traceparent`` key in W3C format, or an
    empty dict if no active span exists.
    """
    ctx = get_current_span().get_span_context()

    if not ctx.is_valid:
        return {}

    # version-trace_id-span_id-trace_flags
    traceparent = f"00-{ctx.trace_id:032x}-{ctx.span_id:016x}-{ctx.trace_flags:02x}"
    return {TRACE_PARENT_HEADER: traceparent}


def extract_trace_context(headers: Mapping[str, str]) -> Context | None:
    """
    Parse a W3C traceparent from incoming request headers.

    The returned context can be passed to ``traced(parent_context=...)``
    to link the aggregation span to the caller's span.

    Returns:
        OTel Context with a remote span context, or None if absent or malformed.
    """
    traceparent = headers.get(TRACE_PARENT_HEADER)
    if not traceparent:
        return None

    parts = traceparent.split("-")
    if len(parts) != 4:
        logger.debug("Malformed traceparent: %s", traceparent)
        return None

    try:
        remote_ctx = SpanContext(
            trace_id=int(parts[1], 16),
            span_id=int(parts[2], 16),
            is_remote=True,
            trace_flags=TraceFlags(int(parts[3], 16)),
        )
    except ValueError:
        logger.debug("Malformed traceparent: %s", traceparent)
        return None

    if not remote_ctx.is_valid:
        return None
    return trace.set_span_in_context(trace.NonRecordingSpan(remote_ctx))


# ── Convenience span helper ──────────────────────────────────────────


@contextmanager
def traced(
    tracer: Tracer,
    name: str,
    attributes: dict[str, Any] | None = None,
    parent_context: Context | None = None,
):
    """
    Context manager that creates a span and records exceptions.

    Usage:
        tracer = get_tracer("aggregation")
        with traced(tracer, "asset_aggregation.aggregate", {"customer_id": cid}):
            ...
    """
    kwargs: dict[str, Any] = {}
    if parent_context is not None:
        kwargs["context"] = parent_context

    with tracer.start_as_current_span(name, **kwargs) as span:
        if attributes:
            for k, v in attributes.items():
                span.set_attribute(k, v)
        try:
            yield span
        except Exception as exc:
            span.set_status(StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise


# ── Structlog processor for trace correlation ────────────────────────


def add_trace_context(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Structlog processor that injects the active OTel span ids into log entries.

    Uses ``otel_trace_id``/``otel_span_id`` so the business ``trace_id``
    bound by the aggregation request is left untouched.
    """
    ctx = get_current_span().get_span_context()

    if ctx.is_valid:
        event_dict["otel_trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["otel_span_id"] = f"{ctx.span_id:016x}"

    return event_dict
