"""Shared fixtures for aggregation tests."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from asset_aggregator.aggregation.coordinator import AggregationCoordinator
from asset_aggregator.aggregation.retry import DurableWriteRetrier
from asset_aggregator.aggregation.schemas import FetchResult, SourceMissing, SourceType
from asset_aggregator.aggregation.writers import create_raw_writers
from asset_aggregator.clients.base import SourceClient
from asset_aggregator.storage.raw_repository import RawAssetRepository


class StubSourceClient(SourceClient):
    """Source client returning a canned result, raising, or stalling."""

    def __init__(
        self,
        source: SourceType,
        result: FetchResult | SourceMissing | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        super().__init__(source)
        self.result = result
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def fetch(self, customer_id: str, trace_id: str):
        self.calls.append((customer_id, trace_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def _make_raw_repository(source: SourceType) -> AsyncMock:
    repo = AsyncMock(spec=RawAssetRepository)
    repo.source = source
    # Echo the record back as if the insert returned it
    repo.save.side_effect = lambda record: record
    return repo


@pytest.fixture
def make_client():
    """Factory for StubSourceClient instances."""
    return StubSourceClient


@pytest.fixture
def raw_repositories() -> dict[SourceType, AsyncMock]:
    return {source: _make_raw_repository(source) for source in SourceType}


@pytest.fixture
def retrier() -> DurableWriteRetrier:
    return DurableWriteRetrier(max_attempts=3, backoff_seconds=0.0)


@pytest.fixture
def clients(bank_result, securities_result, insurance_result) -> dict[SourceType, StubSourceClient]:
    """All three sources answering successfully."""
    return {
        SourceType.BANK: StubSourceClient(SourceType.BANK, result=bank_result),
        SourceType.SECURITIES: StubSourceClient(SourceType.SECURITIES, result=securities_result),
        SourceType.INSURANCE: StubSourceClient(SourceType.INSURANCE, result=insurance_result),
    }


@pytest.fixture
def writers(raw_repositories, retrier, metrics):
    return create_raw_writers(raw_repositories, retrier, metrics)


@pytest.fixture
def coordinator(clients, writers, metrics) -> AggregationCoordinator:
    return AggregationCoordinator.from_components(clients, writers, metrics)
