"""Shared fixtures for API tests."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from asset_aggregator.aggregation.schemas import (
    AggregatedAssetResult,
    AggregatedComponent,
    AggregationStatus,
    ComponentStatus,
    CurrencyAmount,
    SourceType,
)
from asset_aggregator.aggregation.service import AggregationService
from asset_aggregator.api.app import create_app
from asset_aggregator.api.dependencies import get_aggregation_service

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _make_result(trace_id: str = "req-trace", **overrides) -> AggregatedAssetResult:
    """Helper to create a PARTIAL result with sensible defaults."""
    fields = {
        "customer_id": "C001",
        "base_currency": "TWD",
        "total_asset_value": Decimal("500000.00"),
        "currency_breakdown": [CurrencyAmount("TWD", Decimal("500000.00"))],
        "components": [
            AggregatedComponent(
                source=SourceType.BANK,
                status=ComponentStatus.SUCCESS,
                amount_in_base=Decimal("500000.00"),
                source_currency="TWD",
                exchange_rate=Decimal("1.0000"),
                raw_trace_id="bank-trace",
                fetched_at=NOW,
                asset_details=[{"accountId": "A1", "balance": "500000.00"}],
                reference_id="raw-bank-1",
            ),
            AggregatedComponent(
                source=SourceType.SECURITIES,
                status=ComponentStatus.MISSING,
                amount_in_base=Decimal("0.00"),
                source_currency="TWD",
                exchange_rate=Decimal("1.0000"),
                raw_trace_id=trace_id,
                fetched_at=NOW,
            ),
            AggregatedComponent(
                source=SourceType.INSURANCE,
                status=ComponentStatus.MISSING,
                amount_in_base=Decimal("0.00"),
                source_currency="TWD",
                exchange_rate=Decimal("1.0000"),
                raw_trace_id=trace_id,
                fetched_at=NOW,
            ),
        ],
        "aggregation_status": AggregationStatus.PARTIAL,
        "aggregated_at": NOW,
        "trace_id": trace_id,
    }
    fields.update(overrides)
    return AggregatedAssetResult(**fields)


@pytest.fixture
def sample_result() -> AggregatedAssetResult:
    return _make_result()


@pytest.fixture
def mock_service(sample_result) -> AsyncMock:
    service = AsyncMock(spec=AggregationService)
    service.aggregate.return_value = sample_result
    service.latest_snapshot.return_value = None
    return service


@pytest.fixture
def client(mock_service):
    """Test client with the aggregation service replaced by a mock."""
    app = create_app()
    app.dependency_overrides[get_aggregation_service] = lambda: mock_service
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()
