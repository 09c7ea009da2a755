"""Configuration for the aggregation pipeline."""

from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AggregationConfig(BaseSettings):
    """Base currency, timeout, write-retry policy and the static rate table."""

    model_config = SettingsConfigDict(
        env_prefix="AGGREGATION_",
        case_sensitive=False,
        extra="ignore",
    )

    base_currency: str = Field(
        default="TWD",
        min_length=1,
        description="Currency every component amount is normalized into",
    )
    timeout_seconds: float = Field(
        default=3.0,
        gt=0.0,
        le=60.0,
        description="Per-source fetch deadline shared by all three sources",
    )
    write_retry_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts for one raw document write",
    )
    write_retry_backoff_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=10.0,
        description="Fixed sleep between raw document write attempts",
    )
    currency_rates: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "USD:TWD": Decimal("32.0"),
            "EUR:TWD": Decimal("35.0"),
            "JPY:TWD": Decimal("0.22"),
        },
        description='Direct rates keyed "FROM:TO" (JSON object in the environment)',
    )
    persist_snapshot: bool = Field(
        default=True,
        description="Upsert the aggregated snapshot after each successful request",
    )

    @field_validator("base_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError("base_currency must not be blank")
        return normalized
