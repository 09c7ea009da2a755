"""
Turn an execution summary into the aggregated result.

Every SUCCESS component is converted into the base currency and summed;
non-SUCCESS components are reported with a zero amount and unit rate.
The currency breakdown keeps original (unconverted) amounts per currency.
Both the caller-facing result and the snapshot are built from the same
computed values.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.currency import CurrencyConverter
from asset_aggregator.aggregation.errors import MissingRateError
from asset_aggregator.aggregation.payload import to_decimal
from asset_aggregator.aggregation.schemas import (
    ZERO,
    UNIT_RATE,
    AggregatedAssetResult,
    AggregatedComponent,
    AggregationStatus,
    AssetEntry,
    AssetSnapshot,
    ComponentStatus,
    CurrencyAmount,
    ExecutionSummary,
    SourceOutcome,
    SourceType,
    round2,
    round4,
    round6,
)

logger = logging.getLogger(__name__)


@dataclass
class ComputationResult:
    components: list[AggregatedComponent]
    currency_breakdown: list[CurrencyAmount]
    status: AggregationStatus
    total_asset_value: Decimal
    aggregated_at: datetime
    snapshot: AssetSnapshot
    result: AggregatedAssetResult


class AggregationComputation:
    """
    Currency normalization and status derivation for one request.

    Usage:
        computation = AggregationComputation(converter, base_currency="TWD")
        computed = computation.compute("C001", trace_id, summary)
        return computed.result
    """

    def __init__(self, converter: CurrencyConverter, base_currency: str = "TWD"):
        self._converter = converter
        self._base_currency = base_currency.strip().upper()

    @classmethod
    def from_config(
        cls,
        config: AggregationConfig,
        converter: CurrencyConverter | None = None,
    ) -> "AggregationComputation":
        return cls(
            converter or CurrencyConverter.from_config(config),
            base_currency=config.base_currency,
        )

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def compute(
        self,
        customer_id: str,
        trace_id: str,
        summary: ExecutionSummary,
        aggregated_at: datetime | None = None,
    ) -> ComputationResult:
        """
        Build the aggregated result from a failure-free summary.

        Raises:
            ValueError: If the summary contains FAILED or TIMEOUT outcomes
            MissingRateError: If a component amount cannot be converted
        """
        if summary.has_failures:
            raise ValueError(
                "Cannot compute an aggregation with failed sources: "
                f"{[s.value for s in summary.failed_sources]}"
            )

        aggregated_at = aggregated_at or datetime.now(timezone.utc)
        total = ZERO
        breakdown: dict[str, Decimal] = {}
        components: list[AggregatedComponent] = []
        assets: list[AssetEntry] = []

        for source in SourceType:
            outcome = summary.outcome(source)
            if outcome is None:
                continue

            source_currency = self._normalize(outcome.currency)
            raw_trace_id = outcome.raw_trace_id or trace_id
            fetched_at = outcome.fetched_at or aggregated_at

            if outcome.status is not ComponentStatus.SUCCESS:
                components.append(
                    AggregatedComponent(
                        source=source,
                        status=outcome.status,
                        amount_in_base=round2(ZERO),
                        source_currency=source_currency,
                        exchange_rate=UNIT_RATE,
                        raw_trace_id=raw_trace_id,
                        fetched_at=fetched_at,
                    )
                )
                continue

            conversion = self._converter.convert(
                outcome.amount, source_currency, self._base_currency
            )
            total += conversion.converted_amount

            if source is SourceType.BANK and outcome.currency_summary:
                for currency, amount in outcome.currency_summary.items():
                    self._merge(breakdown, currency, amount)
            else:
                self._merge(breakdown, source_currency, outcome.amount)

            components.append(
                AggregatedComponent(
                    source=source,
                    status=outcome.status,
                    amount_in_base=conversion.converted_amount,
                    source_currency=source_currency,
                    exchange_rate=conversion.exchange_rate,
                    raw_trace_id=raw_trace_id,
                    fetched_at=fetched_at,
                    asset_details=[dict(item) for item in outcome.asset_details],
                    reference_id=outcome.reference_id,
                )
            )
            assets.extend(self._asset_entries(customer_id, outcome, source_currency))

        status = (
            AggregationStatus.PARTIAL
            if summary.has_missing_data
            else AggregationStatus.COMPLETED
        )
        total_value = round2(total)
        currency_breakdown = [
            CurrencyAmount(currency=c, amount=round2(a)) for c, a in breakdown.items()
        ]

        snapshot = AssetSnapshot(
            customer_id=customer_id,
            base_currency=self._base_currency,
            components=components,
            assets=assets,
            total_asset_value=total_value,
            currency_breakdown=currency_breakdown,
            aggregation_status=status,
            aggregated_at=aggregated_at,
            trace_id=trace_id,
        )
        result = AggregatedAssetResult(
            customer_id=customer_id,
            base_currency=self._base_currency,
            total_asset_value=total_value,
            currency_breakdown=currency_breakdown,
            components=components,
            aggregation_status=status,
            aggregated_at=aggregated_at,
            trace_id=trace_id,
        )
        return ComputationResult(
            components=components,
            currency_breakdown=currency_breakdown,
            status=status,
            total_asset_value=total_value,
            aggregated_at=aggregated_at,
            snapshot=snapshot,
            result=result,
        )

    def _normalize(self, currency: Any) -> str:
        text = str(currency).strip() if currency is not None else ""
        return text.upper() if text else self._base_currency

    def _merge(self, breakdown: dict[str, Decimal], currency: str | None, amount: Decimal) -> None:
        key = self._normalize(currency)
        breakdown[key] = breakdown.get(key, ZERO) + amount

    # ── Asset entries ────────────────────────────────────────────────

    def _asset_entries(
        self, customer_id: str, outcome: SourceOutcome, source_currency: str
    ) -> list[AssetEntry]:
        entries: list[AssetEntry] = []
        for item in outcome.asset_details:
            try:
                entries.append(self._asset_entry(outcome.source, item, source_currency))
            except (ValueError, MissingRateError) as e:
                logger.warning(
                    "Skipping %s asset item for customer %s: %s",
                    outcome.source.value,
                    customer_id,
                    e,
                )
        return entries

    def _asset_entry(
        self, source: SourceType, item: dict[str, Any], source_currency: str
    ) -> AssetEntry:
        if source is SourceType.BANK:
            amount = to_decimal(item.get("balance"))
            asset_type = item.get("assetType") or "account"
            asset_name = item.get("accountId")
            attributes: dict[str, Any] = {
                "account_id": item.get("accountId"),
                "balance": round2(amount) if amount is not None else None,
            }
        elif source is SourceType.SECURITIES:
            amount = to_decimal(item.get("marketValue"))
            holdings = to_decimal(item.get("holdings"))
            asset_type = item.get("securityType") or item.get("assetType")
            asset_name = item.get("symbol") or item.get("securityType")
            attributes = {
                "symbol": item.get("symbol"),
                "market_value": round2(amount) if amount is not None else None,
                "holdings": round4(holdings) if holdings is not None else None,
                "risk_level": item.get("riskLevel"),
                "premium_status": item.get("premiumStatus"),
            }
        else:
            amount = to_decimal(item.get("coverage"))
            asset_type = item.get("policyType") or item.get("assetType")
            asset_name = item.get("policyNumber") or item.get("assetName")
            attributes = {
                "policy_number": item.get("policyNumber"),
                "policy_type": item.get("policyType"),
                "coverage": round2(amount) if amount is not None else None,
                "premium_status": item.get("premiumStatus"),
            }

        amount = amount if amount is not None else ZERO
        currency = self._normalize(item.get("currency") or source_currency)
        conversion = self._converter.convert(amount, currency, self._base_currency)

        return AssetEntry(
            source=source,
            asset_type=asset_type,
            asset_name=asset_name,
            currency=currency,
            amount=round2(amount),
            amount_in_base=conversion.converted_amount,
            exchange_rate=round6(conversion.applied_rate),
            attributes=attributes,
        )
