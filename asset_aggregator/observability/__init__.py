"""Observability layer - logging, metrics, and tracing."""

from asset_aggregator.observability.logging import setup_logging
from asset_aggregator.observability.metrics import MetricsCollector, get_metrics
from asset_aggregator.observability.tracing import get_tracer, setup_tracing

__all__ = [
    "MetricsCollector",
    "get_metrics",
    "get_tracer",
    "setup_logging",
    "setup_tracing",
]
