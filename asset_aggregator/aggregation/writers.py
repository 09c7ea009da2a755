"""Raw document writers, one per source."""

import logging
from collections.abc import Mapping

from asset_aggregator.aggregation.errors import ValidationError, require_text
from asset_aggregator.aggregation.retry import DurableWriteRetrier
from asset_aggregator.aggregation.schemas import FetchResult, RawAssetRecord, SourceType
from asset_aggregator.observability.metrics import MetricsCollector, get_metrics
from asset_aggregator.storage.raw_repository import RawAssetRepository

logger = logging.getLogger(__name__)


class RawAssetWriter:
    """
    Validate and persist one source's fetch result.

    The write goes through the shared DurableWriteRetrier so transient
    persistence failures are retried before the source is marked FAILED.
    """

    def __init__(
        self,
        source: SourceType,
        repository: RawAssetRepository,
        retrier: DurableWriteRetrier,
        metrics: MetricsCollector | None = None,
    ):
        self._source = source
        self._repository = repository
        self._retrier = retrier
        self._metrics = metrics or get_metrics()

    @property
    def source(self) -> SourceType:
        return self._source

    async def write(
        self, customer_id: str, result: FetchResult, trace_id: str
    ) -> str:
        """
        Persist the raw document for ``result``.

        Args:
            customer_id: Customer being aggregated
            result: Source fetch result
            trace_id: Request trace id, used when the source reported none

        Returns:
            Id of the stored raw document

        Raises:
            ValidationError: If a required field is missing
            DurableWriteError: If retryable failures exhausted the budget
        """
        require_text(customer_id, "customer_id")
        if result.payload is None:
            raise ValidationError(f"{self._source.value} payload must not be null")
        if result.amount is None:
            raise ValidationError(f"{self._source.value} total amount must not be null")
        if result.fetched_at is None:
            raise ValidationError(f"{self._source.value} fetched_at must not be null")

        record = RawAssetRecord(
            source=self._source,
            customer_id=customer_id,
            payload=dict(result.payload),
            total_amount=result.amount,
            currency=result.currency,
            currency_summary=dict(result.currency_summary),
            item_count=result.item_count,
            fetched_at=result.fetched_at,
            trace_id=result.trace_id or trace_id,
        )

        try:
            saved = await self._retrier.execute(
                f"Failed to persist {self._source.value.lower()} assets "
                f"for customer {customer_id}",
                lambda: self._repository.save(record),
                on_retry=self._on_retry,
            )
        except Exception:
            self._metrics.record_raw_write(self._source, success=False)
            raise

        self._metrics.record_raw_write(self._source, success=True)
        logger.debug(
            "Persisted %s raw document %s for customer %s",
            self._source.value,
            saved.id,
            customer_id,
        )
        return saved.id

    def _on_retry(self, attempt: int, error: BaseException) -> None:
        self._metrics.record_raw_write_retry(self._source)


def create_raw_writers(
    repositories: Mapping[SourceType, RawAssetRepository],
    retrier: DurableWriteRetrier,
    metrics: MetricsCollector | None = None,
) -> dict[SourceType, RawAssetWriter]:
    """One writer per source, sharing a single retrier."""
    return {
        source: RawAssetWriter(source, repositories[source], retrier, metrics)
        for source in SourceType
    }
