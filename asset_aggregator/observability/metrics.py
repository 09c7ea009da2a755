"""
Prometheus metrics for monitoring asset aggregation.

Defines and exposes metrics for:
- Per-source outcome classification and fetch latency
- Raw document write outcomes and retries
- Aggregation request outcomes and latency
- Snapshot write latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging
from enum import Enum

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from asset_aggregator.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _label(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else value


class MetricsCollector:
    """
    Prometheus metrics collector for the asset aggregator.

    Pass a dedicated CollectorRegistry to keep metrics isolated
    (tests create one per collector; the default is the global REGISTRY).

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_source_outcome(SourceType.BANK, "SUCCESS")
        metrics.record_aggregation("success", latency=0.42)
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry if registry is not None else REGISTRY

        self.source_outcomes = Counter(
            "asset_aggregator_source_outcomes_total",
            "Per-source outcome classifications",
            ["source", "status"],  # status: SUCCESS, MISSING, FAILED, TIMEOUT
            registry=self._registry,
        )

        self.raw_writes = Counter(
            "asset_aggregator_raw_writes_total",
            "Raw source document writes",
            ["source", "status"],  # status: success, failure
            registry=self._registry,
        )

        self.raw_write_retries = Counter(
            "asset_aggregator_raw_write_retries_total",
            "Raw document write attempts that were retried",
            ["source"],
            registry=self._registry,
        )

        self.aggregations = Counter(
            "asset_aggregator_aggregations_total",
            "Aggregation requests by result",
            ["status"],  # success, failure
            registry=self._registry,
        )

        self.fetch_latency = Histogram(
            "asset_aggregator_fetch_latency_seconds",
            "Time to fetch and persist one source",
            ["source"],
            buckets=LATENCY_BUCKETS,
            registry=self._registry,
        )

        self.aggregation_latency = Histogram(
            "asset_aggregator_aggregation_latency_seconds",
            "End-to-end aggregation latency",
            ["status"],
            buckets=LATENCY_BUCKETS,
            registry=self._registry,
        )

        self.snapshot_write_latency = Histogram(
            "asset_aggregator_snapshot_write_latency_seconds",
            "Time to upsert the aggregated snapshot",
            buckets=LATENCY_BUCKETS,
            registry=self._registry,
        )

        self.source_health = Gauge(
            "asset_aggregator_source_health",
            "Source health status (1=healthy, 0=unhealthy)",
            ["source"],
            registry=self._registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        port = port or get_settings().metrics_port

        start_http_server(port, registry=self._registry)
        logger.info("Prometheus metrics server started on port %d", port)

    # Convenience methods

    def record_source_outcome(
        self,
        source: Enum | str,
        status: str,
        latency: float | None = None,
    ) -> None:
        """
        Record the terminal classification of one source.

        Args:
            source: Source type
            status: Component status value
            latency: Optional fetch latency in seconds
        """
        source_str = _label(source)
        self.source_outcomes.labels(source=source_str, status=status).inc()

        if latency is not None:
            self.fetch_latency.labels(source=source_str).observe(latency)

    def record_raw_write(self, source: Enum | str, success: bool) -> None:
        self.raw_writes.labels(
            source=_label(source),
            status="success" if success else "failure",
        ).inc()

    def record_raw_write_retry(self, source: Enum | str) -> None:
        self.raw_write_retries.labels(source=_label(source)).inc()

    def record_aggregation(self, status: str, latency: float | None = None) -> None:
        """
        Record an aggregation request result.

        Args:
            status: "success" or "failure"
            latency: Optional end-to-end latency in seconds
        """
        self.aggregations.labels(status=status).inc()
        if latency is not None:
            self.aggregation_latency.labels(status=status).observe(latency)

    def record_snapshot_write(self, latency: float) -> None:
        self.snapshot_write_latency.observe(latency)

    def set_source_health(self, source: Enum | str, healthy: bool) -> None:
        self.source_health.labels(source=_label(source)).set(1 if healthy else 0)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
