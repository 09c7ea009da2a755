"""
Concurrent fetch-and-persist across all asset sources.

Each source runs as its own task: fetch (bounded by the shared timeout),
then persist the raw document through the source's writer. Every branch
ends in exactly one SourceOutcome; a single source's failure never
raises out of coordinate().
"""

import asyncio
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog

from asset_aggregator.aggregation.errors import ValidationError, require_text
from asset_aggregator.aggregation.payload import extract_asset_items
from asset_aggregator.aggregation.schemas import (
    ExecutionSummary,
    FetchResult,
    SourceMissing,
    SourceOutcome,
    SourceType,
)
from asset_aggregator.aggregation.writers import RawAssetWriter
from asset_aggregator.clients.base import SourceClient
from asset_aggregator.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)

# Payload keys holding the itemized assets, tried in order
DETAIL_KEYS: dict[SourceType, tuple[str, ...]] = {
    SourceType.BANK: ("bankAssets", "accounts"),
    SourceType.SECURITIES: ("securitiesAssets", "holdings"),
    SourceType.INSURANCE: ("insuranceAssets", "policies"),
}


@dataclass(frozen=True)
class SourceBinding:
    """Everything the coordinator needs to handle one source."""

    source: SourceType
    client: SourceClient
    writer: RawAssetWriter
    detail_keys: tuple[str, ...] = ()


class AggregationCoordinator:
    """
    Fan out to every source concurrently and classify each result.

    Usage:
        coordinator = AggregationCoordinator.from_components(clients, writers)
        summary = await coordinator.coordinate("C001", trace_id, timeout=3.0)
        if summary.has_failures:
            ...
    """

    def __init__(
        self,
        bindings: Iterable[SourceBinding],
        metrics: MetricsCollector | None = None,
    ):
        by_source = {b.source: b for b in bindings}
        missing = [s.value for s in SourceType if s not in by_source]
        if missing:
            raise ValueError(f"No client/writer bound for sources: {missing}")

        self._bindings = [by_source[s] for s in SourceType]
        self._metrics = metrics or get_metrics()

    @classmethod
    def from_components(
        cls,
        clients: Mapping[SourceType, SourceClient],
        writers: Mapping[SourceType, RawAssetWriter],
        metrics: MetricsCollector | None = None,
    ) -> "AggregationCoordinator":
        missing = [s.value for s in SourceType if s not in clients or s not in writers]
        if missing:
            raise ValueError(f"No client/writer bound for sources: {missing}")
        return cls(
            [
                SourceBinding(
                    source=source,
                    client=clients[source],
                    writer=writers[source],
                    detail_keys=DETAIL_KEYS[source],
                )
                for source in SourceType
            ],
            metrics=metrics,
        )

    async def coordinate(
        self, customer_id: str, trace_id: str, timeout: float
    ) -> ExecutionSummary:
        """
        Fetch and persist every source concurrently.

        Args:
            customer_id: Customer to aggregate
            trace_id: Request trace id, forwarded to clients and writers
            timeout: Per-source fetch deadline in seconds

        Returns:
            ExecutionSummary with one outcome per source

        Raises:
            ValidationError: If an argument is missing or the timeout is not positive
        """
        require_text(customer_id, "customer_id")
        require_text(trace_id, "trace_id")
        if timeout is None or timeout <= 0:
            raise ValidationError("timeout must be positive")

        log = logger.bind(customer_id=customer_id, trace_id=trace_id)

        outcomes = await asyncio.gather(
            *(
                self._run_source(binding, customer_id, trace_id, timeout, log)
                for binding in self._bindings
            )
        )
        summary = ExecutionSummary({o.source: o for o in outcomes})

        log.info(
            "Source coordination completed",
            statuses={s.value: o.status.value for s, o in summary.outcomes.items()},
            failed_sources=[s.value for s in summary.failed_sources],
        )
        return summary

    async def _run_source(
        self,
        binding: SourceBinding,
        customer_id: str,
        trace_id: str,
        timeout: float,
        log: structlog.stdlib.BoundLogger,
    ) -> SourceOutcome:
        start = time.monotonic()
        outcome = await self._fetch_and_persist(binding, customer_id, trace_id, timeout)
        latency = time.monotonic() - start

        self._metrics.record_source_outcome(
            binding.source, outcome.status.value, latency=latency
        )

        if outcome.is_failure:
            log.warning(
                "Source outcome",
                source=binding.source.value,
                status=outcome.status.value,
                raw_trace_id=outcome.raw_trace_id,
                latency_ms=round(latency * 1000, 1),
                error_type=type(outcome.error).__name__ if outcome.error else None,
                error=str(outcome.error) if outcome.error else None,
            )
        else:
            log.info(
                "Source outcome",
                source=binding.source.value,
                status=outcome.status.value,
                raw_trace_id=outcome.raw_trace_id,
                reference_id=outcome.reference_id,
                latency_ms=round(latency * 1000, 1),
            )
        return outcome

    async def _fetch_and_persist(
        self,
        binding: SourceBinding,
        customer_id: str,
        trace_id: str,
        timeout: float,
    ) -> SourceOutcome:
        source = binding.source

        try:
            fetched = await asyncio.wait_for(
                binding.client.fetch(customer_id, trace_id), timeout=timeout
            )
        except asyncio.TimeoutError:
            return SourceOutcome.timeout(
                source,
                TimeoutError(f"{source.value} fetch timed out after {timeout}s"),
                raw_trace_id=trace_id,
            )
        except Exception as e:
            return SourceOutcome.failed(source, e, raw_trace_id=trace_id)

        if isinstance(fetched, SourceMissing):
            return SourceOutcome.missing(source, raw_trace_id=trace_id)
        if not isinstance(fetched, FetchResult):
            return SourceOutcome.failed(
                source,
                TypeError(
                    f"{source.value} client returned {type(fetched).__name__}"
                ),
                raw_trace_id=trace_id,
            )

        raw_trace_id = fetched.trace_id or trace_id
        try:
            reference_id = await binding.writer.write(customer_id, fetched, trace_id)
        except Exception as e:
            return SourceOutcome.failed(
                source, e, raw_trace_id=raw_trace_id, fetched_at=fetched.fetched_at
            )

        return SourceOutcome.success(
            source=source,
            amount=fetched.amount,
            currency=fetched.currency,
            fetched_at=fetched.fetched_at,
            raw_trace_id=raw_trace_id,
            reference_id=reference_id,
            payload=fetched.payload,
            currency_summary=(
                fetched.currency_summary if source is SourceType.BANK else None
            ),
            asset_details=extract_asset_items(fetched.payload, *binding.detail_keys),
        )

