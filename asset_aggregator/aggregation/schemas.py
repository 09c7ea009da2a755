"""Schema definitions for asset aggregation.

Covers the three stages of one aggregation request:

- Fetch: what a source client returns (FetchResult or SourceMissing)
- Coordination: the per-source SourceOutcome and the ExecutionSummary
- Computation: AggregatedComponent, CurrencyAmount, AssetEntry and the
  two projections built from them (AggregatedAssetResult for the
  caller, AssetSnapshot for the ``asset_snapshots`` table)

Monetary values are Decimal throughout; rounding is applied only when
a value is surfaced.
"""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")
SIX_PLACES = Decimal("0.000001")
EIGHT_PLACES = Decimal("0.00000001")

ZERO = Decimal("0")
UNIT_RATE = Decimal("1.0000")


def round2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round4(value: Decimal) -> Decimal:
    return value.quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def round6(value: Decimal) -> Decimal:
    return value.quantize(SIX_PLACES, rounding=ROUND_HALF_UP)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SourceType(str, Enum):
    """Downstream asset sources. Declaration order drives every iteration."""

    BANK = "BANK"
    SECURITIES = "SECURITIES"
    INSURANCE = "INSURANCE"


class ComponentStatus(str, Enum):
    SUCCESS = "SUCCESS"
    MISSING = "MISSING"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


class AggregationStatus(str, Enum):
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


# ── Fetch stage ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchResult:
    """A successful response from one source client.

    Attributes:
        customer_id: Customer the payload belongs to.
        payload: Full response body as a JSON tree.
        amount: Source-reported total in ``currency``.
        currency: Source currency code (None means base currency).
        currency_summary: Per-currency subtotals (bank only, may be empty).
        item_count: Number of itemized accounts, holdings or policies.
        fetched_at: When the source answered.
        trace_id: Correlation id reported by the source, if any.
    """

    customer_id: str
    payload: dict[str, Any]
    amount: Decimal
    currency: str | None
    currency_summary: Mapping[str, Decimal] = field(default_factory=dict)
    item_count: int = 0
    fetched_at: datetime = field(default_factory=_utcnow)
    trace_id: str | None = None


@dataclass(frozen=True)
class SourceMissing:
    """A source explicitly reported that it holds no data for the customer."""

    reason: str = "No data available"


# ── Coordination stage ───────────────────────────────────────────────


@dataclass(frozen=True)
class SourceOutcome:
    """Classified result of fetching and persisting one source.

    Non-SUCCESS outcomes always carry a zero amount and no reference id.
    """

    source: SourceType
    status: ComponentStatus
    amount: Decimal = ZERO
    currency: str | None = None
    fetched_at: datetime | None = None
    raw_trace_id: str | None = None
    reference_id: str | None = None
    payload: Mapping[str, Any] | None = None
    currency_summary: Mapping[str, Decimal] = field(default_factory=dict)
    asset_details: tuple[dict[str, Any], ...] = ()
    error: BaseException | None = None

    def __post_init__(self) -> None:
        if self.status is ComponentStatus.SUCCESS:
            return
        if self.amount != ZERO:
            raise ValueError(
                f"{self.status.value} outcome for {self.source.value} "
                f"must carry a zero amount, got {self.amount}"
            )
        if self.reference_id is not None:
            raise ValueError(
                f"{self.status.value} outcome for {self.source.value} "
                "must not carry a reference id"
            )

    @property
    def is_failure(self) -> bool:
        return self.status in (ComponentStatus.FAILED, ComponentStatus.TIMEOUT)

    @classmethod
    def success(
        cls,
        source: SourceType,
        amount: Decimal,
        currency: str | None,
        fetched_at: datetime,
        raw_trace_id: str | None,
        reference_id: str,
        payload: Mapping[str, Any] | None = None,
        currency_summary: Mapping[str, Decimal] | None = None,
        asset_details: list[dict[str, Any]] | None = None,
    ) -> "SourceOutcome":
        return cls(
            source=source,
            status=ComponentStatus.SUCCESS,
            amount=amount,
            currency=currency,
            fetched_at=fetched_at,
            raw_trace_id=raw_trace_id,
            reference_id=reference_id,
            payload=payload,
            currency_summary=dict(currency_summary or {}),
            asset_details=tuple(asset_details or ()),
        )

    @classmethod
    def missing(
        cls, source: SourceType, raw_trace_id: str | None = None
    ) -> "SourceOutcome":
        return cls(
            source=source,
            status=ComponentStatus.MISSING,
            raw_trace_id=raw_trace_id,
        )

    @classmethod
    def failed(
        cls,
        source: SourceType,
        error: BaseException,
        raw_trace_id: str | None = None,
        fetched_at: datetime | None = None,
    ) -> "SourceOutcome":
        return cls(
            source=source,
            status=ComponentStatus.FAILED,
            fetched_at=fetched_at,
            raw_trace_id=raw_trace_id,
            error=error,
        )

    @classmethod
    def timeout(
        cls,
        source: SourceType,
        error: BaseException | None = None,
        raw_trace_id: str | None = None,
    ) -> "SourceOutcome":
        return cls(
            source=source,
            status=ComponentStatus.TIMEOUT,
            raw_trace_id=raw_trace_id,
            error=error,
        )


class ExecutionSummary:
    """Read-only view of the outcomes of one coordination run.

    Outcomes are ordered by SourceType declaration order regardless of
    the order in which the concurrent branches finished.
    """

    def __init__(self, outcomes: Mapping[SourceType, SourceOutcome]):
        missing = [s.value for s in SourceType if s not in outcomes]
        if missing:
            raise ValueError(f"ExecutionSummary needs every source, missing: {missing}")
        mismatched = [s.value for s in SourceType if outcomes[s].source is not s]
        if mismatched:
            raise ValueError(f"Outcome source does not match its key for: {mismatched}")

        ordered = {s: outcomes[s] for s in SourceType}
        self._outcomes: Mapping[SourceType, SourceOutcome] = MappingProxyType(ordered)

    @property
    def outcomes(self) -> Mapping[SourceType, SourceOutcome]:
        return self._outcomes

    def outcome(self, source: SourceType) -> SourceOutcome | None:
        return self._outcomes.get(source)

    @property
    def has_failures(self) -> bool:
        return any(o.is_failure for o in self._outcomes.values())

    @property
    def has_missing_data(self) -> bool:
        return any(
            o.status is ComponentStatus.MISSING for o in self._outcomes.values()
        )

    @property
    def failed_sources(self) -> list[SourceType]:
        return [s for s, o in self._outcomes.items() if o.is_failure]

    def first_error(self) -> BaseException | None:
        """First non-null error among failed sources, in SourceType order."""
        for outcome in self._outcomes.values():
            if outcome.is_failure and outcome.error is not None:
                return outcome.error
        return None

    def __len__(self) -> int:
        return len(self._outcomes)

    def __repr__(self) -> str:
        statuses = ", ".join(f"{s.value}={o.status.value}" for s, o in self._outcomes.items())
        return f"ExecutionSummary({statuses})"


# ── Computation stage ────────────────────────────────────────────────


@dataclass
class CurrencyAmount:
    currency: str
    amount: Decimal

    def __post_init__(self) -> None:
        self.currency = self.currency.strip().upper()

    def to_dict(self) -> dict[str, Any]:
        return {"currency": self.currency, "amount": str(round2(self.amount))}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrencyAmount":
        return cls(currency=data["currency"], amount=Decimal(str(data["amount"])))


@dataclass
class AggregatedComponent:
    """One source's contribution to the aggregated result.

    Attributes:
        source: Source the component describes.
        status: Outcome classification of the source.
        amount_in_base: Converted amount (2 dp); 0.00 unless SUCCESS.
        source_currency: Currency the source reported in.
        exchange_rate: Rate applied (4 dp); 1.0000 unless SUCCESS.
        raw_trace_id: Correlation id of the raw fetch.
        fetched_at: When the source answered.
        asset_details: Itemized entries from the source payload.
        reference_id: Id of the persisted raw document (SUCCESS only).
    """

    source: SourceType
    status: ComponentStatus
    amount_in_base: Decimal
    source_currency: str
    exchange_rate: Decimal
    raw_trace_id: str
    fetched_at: datetime
    asset_details: list[dict[str, Any]] = field(default_factory=list)
    reference_id: str | None = None

    def __post_init__(self) -> None:
        if self.reference_id is not None and not self.reference_id.strip():
            self.reference_id = None
        if self.status is ComponentStatus.SUCCESS and self.reference_id is None:
            raise ValueError(
                f"SUCCESS component for {self.source.value} requires a reference id"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "status": self.status.value,
            "amount_in_base": str(self.amount_in_base),
            "source_currency": self.source_currency,
            "exchange_rate": str(self.exchange_rate),
            "raw_trace_id": self.raw_trace_id,
            "fetched_at": _iso(self.fetched_at),
            "asset_details": self.asset_details,
            "reference_id": self.reference_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AggregatedComponent":
        fetched_at = data.get("fetched_at")
        if isinstance(fetched_at, str):
            fetched_at = datetime.fromisoformat(fetched_at)
        return cls(
            source=SourceType(data["source"]),
            status=ComponentStatus(data["status"]),
            amount_in_base=Decimal(str(data["amount_in_base"])),
            source_currency=data["source_currency"],
            exchange_rate=Decimal(str(data["exchange_rate"])),
            raw_trace_id=data["raw_trace_id"],
            fetched_at=fetched_at or _utcnow(),
            asset_details=list(data.get("asset_details") or []),
            reference_id=data.get("reference_id"),
        )


@dataclass
class AssetEntry:
    """One normalized account, holding or policy extracted from a payload.

    ``attributes`` holds the source-specific fields (account_id, symbol,
    holdings, risk_level, policy_number, premium_status, ...).
    """

    source: SourceType
    asset_type: str | None
    asset_name: str | None
    currency: str
    amount: Decimal
    amount_in_base: Decimal
    exchange_rate: Decimal
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "asset_type": self.asset_type,
            "asset_name": self.asset_name,
            "currency": self.currency,
            "amount": str(self.amount),
            "amount_in_base": str(self.amount_in_base),
            "exchange_rate": str(self.exchange_rate),
            **{
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.attributes.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetEntry":
        known = {
            "source",
            "asset_type",
            "asset_name",
            "currency",
            "amount",
            "amount_in_base",
            "exchange_rate",
        }
        return cls(
            source=SourceType(data["source"]),
            asset_type=data.get("asset_type"),
            asset_name=data.get("asset_name"),
            currency=data["currency"],
            amount=Decimal(str(data["amount"])),
            amount_in_base=Decimal(str(data["amount_in_base"])),
            exchange_rate=Decimal(str(data["exchange_rate"])),
            attributes={k: v for k, v in data.items() if k not in known},
        )


def _require_fields(obj: Any, names: tuple[str, ...]) -> None:
    missing = [n for n in names if getattr(obj, n) is None]
    if missing:
        raise ValueError(f"{type(obj).__name__} missing required fields: {missing}")


@dataclass
class AggregatedAssetResult:
    """Consolidated view of a customer's assets returned to the caller."""

    customer_id: str
    base_currency: str
    total_asset_value: Decimal
    currency_breakdown: list[CurrencyAmount]
    components: list[AggregatedComponent]
    aggregation_status: AggregationStatus
    aggregated_at: datetime
    trace_id: str

    def __post_init__(self) -> None:
        _require_fields(
            self,
            (
                "customer_id",
                "base_currency",
                "total_asset_value",
                "currency_breakdown",
                "components",
                "aggregation_status",
                "aggregated_at",
                "trace_id",
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "customer_id": self.customer_id,
            "base_currency": self.base_currency,
            "total_asset_value": str(self.total_asset_value),
            "currency_breakdown": [c.to_dict() for c in self.currency_breakdown],
            "components": [c.to_dict() for c in self.components],
            "aggregation_status": self.aggregation_status.value,
            "aggregated_at": _iso(self.aggregated_at),
            "trace_id": self.trace_id,
        }


@dataclass
class AssetSnapshot:
    """Latest aggregated view persisted per customer.

    ``id`` is None until the snapshot has been stored; an update keeps the
    id assigned on first insert.
    """

    customer_id: str
    base_currency: str
    components: list[AggregatedComponent]
    assets: list[AssetEntry]
    total_asset_value: Decimal
    currency_breakdown: list[CurrencyAmount]
    aggregation_status: AggregationStatus
    aggregated_at: datetime
    trace_id: str
    id: str | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "base_currency": self.base_currency,
            "components": [c.to_dict() for c in self.components],
            "assets": [a.to_dict() for a in self.assets],
            "total_asset_value": str(self.total_asset_value),
            "currency_breakdown": [c.to_dict() for c in self.currency_breakdown],
            "aggregation_status": self.aggregation_status.value,
            "aggregated_at": _iso(self.aggregated_at),
            "trace_id": self.trace_id,
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class RawAssetRecord:
    """Unmodified source payload persisted before any conversion.

    Maps 1:1 to the per-source raw tables (``bank_asset_raw``,
    ``securities_asset_raw``, ``insurance_asset_raw``).
    """

    source: SourceType
    customer_id: str
    payload: dict[str, Any]
    total_amount: Decimal
    currency: str | None
    fetched_at: datetime
    trace_id: str | None = None
    currency_summary: dict[str, Decimal] = field(default_factory=dict)
    item_count: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime | None = None
