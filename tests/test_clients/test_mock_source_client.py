"""Tests for MockSourceClient."""

from decimal import Decimal

import pytest

from asset_aggregator.aggregation.payload import extract_asset_items
from asset_aggregator.aggregation.schemas import FetchResult, SourceMissing, SourceType
from asset_aggregator.clients import MockSourceClient, create_source_clients
from asset_aggregator.clients.base import SourceClientError


class TestMockSourceClient:
    @pytest.mark.asyncio
    async def test_deterministic_per_customer(self):
        client = MockSourceClient(SourceType.BANK)

        first = await client.fetch("C001", "t1")
        second = await client.fetch("C001", "t2")

        assert first.amount == second.amount
        assert first.payload["bankAssets"] == second.payload["bankAssets"]

    @pytest.mark.asyncio
    async def test_bank_summary_matches_total(self):
        result = await MockSourceClient(SourceType.BANK).fetch("C001", "t1")

        assert isinstance(result, FetchResult)
        assert set(result.currency_summary) == {"TWD", "USD"}
        assert sum(result.currency_summary.values(), Decimal("0")) == result.amount
        assert result.item_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source,key,currency",
        [
            (SourceType.BANK, "bankAssets", "TWD"),
            (SourceType.SECURITIES, "securitiesAssets", "USD"),
            (SourceType.INSURANCE, "insuranceAssets", "TWD"),
        ],
    )
    async def test_payload_shape(self, source, key, currency):
        result = await MockSourceClient(source).fetch("C042", "trace")

        items = extract_asset_items(result.payload, key)
        assert len(items) == result.item_count
        assert result.currency == currency
        assert result.trace_id == "trace"
        assert result.amount > 0

    @pytest.mark.asyncio
    async def test_missing_customer(self):
        client = MockSourceClient(SourceType.INSURANCE, missing_customers=["C404"])

        assert isinstance(await client.fetch("C404", "t"), SourceMissing)
        assert isinstance(await client.fetch("C001", "t"), FetchResult)

    @pytest.mark.asyncio
    async def test_configured_failure(self):
        client = MockSourceClient(SourceType.SECURITIES, fail=True)

        with pytest.raises(SourceClientError):
            await client.fetch("C001", "t")

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await MockSourceClient(SourceType.BANK).health_check() is True

    def test_factory_builds_mock_clients(self):
        clients = create_source_clients(use_mock=True)

        assert list(clients) == list(SourceType)
        assert all(isinstance(c, MockSourceClient) for c in clients.values())
