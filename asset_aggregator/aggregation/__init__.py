"""Aggregation core: coordination, conversion, computation and orchestration."""

from asset_aggregator.aggregation.schemas import (
    AggregatedAssetResult,
    AggregatedComponent,
    AggregationStatus,
    AssetEntry,
    AssetSnapshot,
    ComponentStatus,
    CurrencyAmount,
    ExecutionSummary,
    FetchResult,
    RawAssetRecord,
    SourceMissing,
    SourceOutcome,
    SourceType,
)
from asset_aggregator.aggregation.errors import (
    AggregationError,
    AggregationFailedError,
    DurableWriteError,
    MissingRateError,
    ValidationError,
)
from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.currency import ConversionResult, CurrencyConverter

__all__ = [
    "AggregatedAssetResult",
    "AggregatedComponent",
    "AggregationConfig",
    "AggregationError",
    "AggregationFailedError",
    "AggregationStatus",
    "AssetEntry",
    "AssetSnapshot",
    "ComponentStatus",
    "ConversionResult",
    "CurrencyAmount",
    "CurrencyConverter",
    "DurableWriteError",
    "ExecutionSummary",
    "FetchResult",
    "MissingRateError",
    "RawAssetRecord",
    "SourceMissing",
    "SourceOutcome",
    "SourceType",
    "ValidationError",
]
