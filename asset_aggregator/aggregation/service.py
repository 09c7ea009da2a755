"""
Aggregation service: the per-request orchestrator.

Runs coordination, gates on failed sources, computes the aggregated
result and upserts the customer's snapshot. A request either returns a
COMPLETED/PARTIAL result or raises; FAILED is never stored.
"""

import time
import uuid
from collections.abc import Mapping

import structlog

from asset_aggregator.aggregation.computation import AggregationComputation
from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.coordinator import AggregationCoordinator
from asset_aggregator.aggregation.currency import CurrencyConverter
from asset_aggregator.aggregation.errors import AggregationFailedError, require_text
from asset_aggregator.aggregation.retry import DurableWriteRetrier
from asset_aggregator.aggregation.schemas import (
    AggregatedAssetResult,
    AssetSnapshot,
    SourceType,
)
from asset_aggregator.aggregation.writers import create_raw_writers
from asset_aggregator.clients.base import SourceClient
from asset_aggregator.observability.metrics import MetricsCollector, get_metrics
from asset_aggregator.observability.tracing import get_tracer, traced
from asset_aggregator.storage.database import Database
from asset_aggregator.storage.raw_repository import create_raw_repositories
from asset_aggregator.storage.snapshot_repository import SnapshotRepository

logger = structlog.get_logger(__name__)


class AggregationService:
    """
    Aggregate a customer's assets across all sources.

    Usage:
        service = build_aggregation_service(database, clients)
        result = await service.aggregate("C001")
    """

    def __init__(
        self,
        coordinator: AggregationCoordinator,
        computation: AggregationComputation,
        snapshot_repository: SnapshotRepository | None = None,
        config: AggregationConfig | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._coordinator = coordinator
        self._computation = computation
        self._snapshots = snapshot_repository
        self._config = config or AggregationConfig()
        self._metrics = metrics or get_metrics()
        self._tracer = get_tracer(__name__)

    async def aggregate(
        self, customer_id: str, trace_id: str | None = None
    ) -> AggregatedAssetResult:
        """
        Run one aggregation request.

        Args:
            customer_id: Customer to aggregate
            trace_id: Correlation id; a UUID4 is generated when absent

        Returns:
            Aggregated result with status COMPLETED or PARTIAL

        Raises:
            ValidationError: If customer_id is blank
            AggregationFailedError: If any source FAILED or TIMED OUT
            MissingRateError: If a component amount cannot be converted
        """
        require_text(customer_id, "customer_id")
        if trace_id is None or not trace_id.strip():
            trace_id = str(uuid.uuid4())

        log = logger.bind(customer_id=customer_id, trace_id=trace_id)
        start = time.monotonic()

        with traced(
            self._tracer,
            "asset_aggregation.aggregate",
            {"customer_id": customer_id, "trace_id": trace_id},
        ) as span:
            try:
                summary = await self._coordinator.coordinate(
                    customer_id, trace_id, self._config.timeout_seconds
                )

                if summary.has_failures:
                    root_cause = summary.first_error()
                    raise AggregationFailedError(
                        customer_id, summary.failed_sources, root_cause
                    ) from root_cause

                computed = self._computation.compute(customer_id, trace_id, summary)

                if self._config.persist_snapshot and self._snapshots is not None:
                    await self._persist_snapshot(computed.snapshot, log)

            except AggregationFailedError as e:
                latency = time.monotonic() - start
                self._metrics.record_aggregation("failure", latency=latency)
                span.set_attribute(
                    "aggregation.failed_sources", [s.value for s in e.failed_sources]
                )
                log.error(
                    "Aggregation failed",
                    failed_sources=[s.value for s in e.failed_sources],
                    error=str(e),
                    latency_ms=round(latency * 1000, 1),
                )
                raise
            except Exception as e:
                latency = time.monotonic() - start
                self._metrics.record_aggregation("failure", latency=latency)
                log.error(
                    "Aggregation aborted",
                    error_type=type(e).__name__,
                    error=str(e),
                    latency_ms=round(latency * 1000, 1),
                )
                raise

            latency = time.monotonic() - start
            self._metrics.record_aggregation("success", latency=latency)
            span.set_attribute("aggregation.status", computed.status.value)
            log.info(
                "Aggregation completed",
                status=computed.status.value,
                total_asset_value=str(computed.total_asset_value),
                base_currency=self._computation.base_currency,
                latency_ms=round(latency * 1000, 1),
            )
            return computed.result

    async def latest_snapshot(self, customer_id: str) -> AssetSnapshot | None:
        """Return the stored snapshot for a customer, if any."""
        require_text(customer_id, "customer_id")
        if self._snapshots is None:
            return None
        return await self._snapshots.find_by_customer_id(customer_id)

    async def _persist_snapshot(
        self, snapshot: AssetSnapshot, log: structlog.stdlib.BoundLogger
    ) -> AssetSnapshot:
        start = time.monotonic()

        existing = await self._snapshots.find_by_customer_id(snapshot.customer_id)
        if existing is not None:
            snapshot.id = existing.id
        stored = await self._snapshots.upsert(snapshot)

        latency = time.monotonic() - start
        self._metrics.record_snapshot_write(latency)
        log.info(
            "Snapshot persisted",
            snapshot_id=stored.id,
            updated=existing is not None,
            latency_ms=round(latency * 1000, 1),
        )
        return stored


def build_aggregation_service(
    database: Database,
    clients: Mapping[SourceType, SourceClient],
    config: AggregationConfig | None = None,
    metrics: MetricsCollector | None = None,
) -> AggregationService:
    """
    Wire repositories, writers, coordinator and computation into a service.

    Args:
        database: Connected database
        clients: One source client per SourceType
        config: Aggregation settings (loaded from the environment if None)
        metrics: Metrics collector (global collector if None)
    """
    config = config or AggregationConfig()
    metrics = metrics or get_metrics()

    retrier = DurableWriteRetrier.from_config(config)
    writers = create_raw_writers(create_raw_repositories(database), retrier, metrics)
    coordinator = AggregationCoordinator.from_components(clients, writers, metrics)
    computation = AggregationComputation.from_config(
        config, CurrencyConverter.from_config(config)
    )

    return AggregationService(
        coordinator=coordinator,
        computation=computation,
        snapshot_repository=SnapshotRepository(database),
        config=config,
        metrics=metrics,
    )
