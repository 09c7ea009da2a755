"""
Request and response models for the asset aggregation API.

Field names are snake_case in Python and camelCase on the wire.
"""

import datetime as dt
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CurrencyAmountModel(APIModel):
    currency: str = Field(..., description="ISO currency code")
    amount: Decimal = Field(..., description="Amount in that currency (2 dp)")


class ComponentModel(APIModel):
    """One source's contribution to the aggregated result."""

    source: str = Field(..., description="BANK, SECURITIES or INSURANCE")
    status: str = Field(..., description="SUCCESS, MISSING, FAILED or TIMEOUT")
    amount_in_base: Decimal = Field(..., description="Converted amount (2 dp)")
    source_currency: str
    exchange_rate: Decimal = Field(..., description="Applied rate (4 dp)")
    raw_trace_id: str
    fetched_at: dt.datetime
    asset_details: list[dict[str, Any]] = Field(default_factory=list)
    payload_ref_id: str | None = Field(
        default=None, description="Id of the persisted raw source document"
    )


class AggregatedAssetResponse(APIModel):
    """Response model for an aggregation request."""

    customer_id: str
    base_currency: str
    total_asset_value: Decimal = Field(..., description="Sum in base currency (2 dp)")
    currency_breakdown: list[CurrencyAmountModel]
    components: list[ComponentModel]
    aggregation_status: str = Field(..., description="COMPLETED or PARTIAL")
    aggregated_at: dt.datetime
    trace_id: str


class AssetEntryModel(APIModel):
    source: str
    asset_type: str | None = None
    asset_name: str | None = None
    currency: str
    amount: Decimal
    amount_in_base: Decimal
    exchange_rate: Decimal
    attributes: dict[str, Any] = Field(default_factory=dict)


class SnapshotResponse(AggregatedAssetResponse):
    """Response model for the stored snapshot of a customer."""

    id: str
    assets: list[AssetEntryModel] = Field(default_factory=list)
    updated_at: dt.datetime | None = None


class ComponentHealth(APIModel):
    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(APIModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    version: str


class ErrorResponse(APIModel):
    """Response model for errors."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] = Field(default_factory=dict)
    trace_id: str | None = None
