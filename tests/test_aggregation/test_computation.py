"""Tests for AggregationComputation."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from asset_aggregator.aggregation.computation import AggregationComputation
from asset_aggregator.aggregation.currency import CurrencyConverter
from asset_aggregator.aggregation.errors import MissingRateError
from asset_aggregator.aggregation.schemas import (
    AggregationStatus,
    ComponentStatus,
    CurrencyAmount,
    ExecutionSummary,
    SourceOutcome,
    SourceType,
)

FETCHED_AT = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
AGGREGATED_AT = datetime(2026, 3, 1, 8, 0, 5, tzinfo=timezone.utc)


def _success(
    source: SourceType,
    amount: str,
    currency: str | None,
    currency_summary: dict[str, Decimal] | None = None,
    asset_details: list[dict] | None = None,
) -> SourceOutcome:
    return SourceOutcome.success(
        source=source,
        amount=Decimal(amount),
        currency=currency,
        fetched_at=FETCHED_AT,
        raw_trace_id=f"{source.value.lower()}-trace",
        reference_id=f"{source.value.lower()}-ref",
        currency_summary=currency_summary,
        asset_details=asset_details,
    )


def _summary(*outcomes: SourceOutcome) -> ExecutionSummary:
    return ExecutionSummary({o.source: o for o in outcomes})


@pytest.fixture
def computation() -> AggregationComputation:
    return AggregationComputation(CurrencyConverter({"USD:TWD": "32.00"}), base_currency="TWD")


class TestComputeTotals:
    def test_bank_only_with_missing_sources(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "500000", "TWD"),
            SourceOutcome.missing(SourceType.SECURITIES),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert computed.status is AggregationStatus.PARTIAL
        assert computed.total_asset_value == Decimal("500000.00")
        assert computed.currency_breakdown == [CurrencyAmount("TWD", Decimal("500000.00"))]

        missing = [c for c in computed.components if c.status is ComponentStatus.MISSING]
        assert len(missing) == 2
        for component in missing:
            assert component.amount_in_base == Decimal("0.00")
            assert component.exchange_rate == Decimal("1.0000")
            assert component.reference_id is None
            assert component.raw_trace_id == "req-trace"
            assert component.fetched_at == AGGREGATED_AT

    def test_mixed_currency(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "500000", "TWD"),
            _success(SourceType.SECURITIES, "30000", "USD"),
            _success(SourceType.INSURANCE, "450000", "TWD"),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert computed.status is AggregationStatus.COMPLETED
        assert computed.total_asset_value == Decimal("1910000.00")
        assert computed.currency_breakdown == [
            CurrencyAmount("TWD", Decimal("950000.00")),
            CurrencyAmount("USD", Decimal("30000.00")),
        ]
        securities = computed.components[1]
        assert securities.source is SourceType.SECURITIES
        assert securities.amount_in_base == Decimal("960000.00")
        assert securities.exchange_rate == Decimal("32.0000")
        assert securities.reference_id == "securities-ref"

    def test_components_in_source_order(self, computation):
        summary = _summary(
            _success(SourceType.INSURANCE, "1", "TWD"),
            _success(SourceType.BANK, "1", "TWD"),
            SourceOutcome.missing(SourceType.SECURITIES),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert [c.source for c in computed.components] == list(SourceType)

    def test_bank_currency_summary_drives_breakdown(self, computation):
        summary = _summary(
            _success(
                SourceType.BANK,
                "1910000",
                "TWD",
                currency_summary={"TWD": Decimal("950000"), "usd": Decimal("30000")},
            ),
            _success(SourceType.SECURITIES, "100", "USD"),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert computed.currency_breakdown == [
            CurrencyAmount("TWD", Decimal("950000.00")),
            CurrencyAmount("USD", Decimal("30100.00")),
        ]
        assert computed.total_asset_value == Decimal("1913200.00")

    def test_null_source_currency_means_base(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "100", None),
            SourceOutcome.missing(SourceType.SECURITIES),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert computed.components[0].source_currency == "TWD"
        assert computed.components[0].exchange_rate == Decimal("1.0000")

    def test_all_missing_is_partial_with_zero_total(self, computation):
        summary = _summary(*(SourceOutcome.missing(s) for s in SourceType))

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert computed.status is AggregationStatus.PARTIAL
        assert computed.total_asset_value == Decimal("0.00")
        assert computed.currency_breakdown == []


class TestComputeFailures:
    def test_summary_lacking_a_source_cannot_complete(self):
        with pytest.raises(ValueError, match="missing"):
            _summary(
                _success(SourceType.BANK, "500000", "TWD"),
                _success(SourceType.SECURITIES, "100", "USD"),
                _success(SourceType.BANK, "1", "TWD"),
            )

    def test_failed_sources_rejected(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "1", "TWD"),
            SourceOutcome.failed(SourceType.SECURITIES, RuntimeError("down")),
            SourceOutcome.timeout(SourceType.INSURANCE),
        )

        with pytest.raises(ValueError, match="SECURITIES"):
            computation.compute("C001", "req-trace", summary)

    def test_missing_rate_propagates(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "1", "TWD"),
            _success(SourceType.SECURITIES, "100", "EUR"),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        with pytest.raises(MissingRateError) as exc_info:
            computation.compute("C001", "req-trace", summary)

        assert exc_info.value.from_currency == "EUR"
        assert exc_info.value.to_currency == "TWD"


class TestAssetEntries:
    def test_entries_per_source(self, computation):
        summary = _summary(
            _success(
                SourceType.BANK,
                "980000",
                "TWD",
                asset_details=[
                    {"accountId": "ACC-1", "balance": "950000", "currency": "TWD"},
                    {"accountId": "ACC-2", "balance": "30000", "currency": "USD"},
                ],
            ),
            _success(
                SourceType.SECURITIES,
                "15000",
                "USD",
                asset_details=[
                    {
                        "symbol": "AAPL",
                        "securityType": "STOCK",
                        "holdings": "100.123456",
                        "marketValue": "15000",
                        "riskLevel": "MEDIUM",
                    }
                ],
            ),
            _success(
                SourceType.INSURANCE,
                "500000",
                "TWD",
                asset_details=[
                    {
                        "policyNumber": "P-1",
                        "policyType": "LIFE",
                        "coverage": "500000",
                        "premiumStatus": "PAID",
                    }
                ],
            ),
        )

        assets = computation.compute("C001", "req-trace", summary, AGGREGATED_AT).snapshot.assets

        assert [a.source for a in assets] == [
            SourceType.BANK,
            SourceType.BANK,
            SourceType.SECURITIES,
            SourceType.INSURANCE,
        ]
        usd_account = assets[1]
        assert usd_account.asset_type == "account"
        assert usd_account.asset_name == "ACC-2"
        assert usd_account.amount == Decimal("30000.00")
        assert usd_account.amount_in_base == Decimal("960000.00")
        assert usd_account.exchange_rate == Decimal("32.000000")
        assert usd_account.attributes["account_id"] == "ACC-2"

        holding = assets[2]
        assert holding.asset_type == "STOCK"
        assert holding.asset_name == "AAPL"
        assert holding.currency == "USD"
        assert holding.attributes["holdings"] == Decimal("100.1235")
        assert holding.attributes["risk_level"] == "MEDIUM"

        policy = assets[3]
        assert policy.asset_type == "LIFE"
        assert policy.asset_name == "P-1"
        assert policy.attributes["premium_status"] == "PAID"

    def test_entry_rate_keeps_precision_of_applied_rate(self):
        computation = AggregationComputation(
            CurrencyConverter({"TWD:USD": "0.031"}), base_currency="TWD"
        )
        summary = _summary(
            _success(
                SourceType.BANK,
                "0",
                "TWD",
                asset_details=[{"accountId": "ACC-USD", "balance": "1000", "currency": "USD"}],
            ),
            SourceOutcome.missing(SourceType.SECURITIES),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        entry = computation.compute("C001", "req-trace", summary, AGGREGATED_AT).snapshot.assets[0]

        # 1 / 0.031 = 32.25806452 (8 dp), surfaced at 6 dp rather than 32.258100
        assert entry.exchange_rate == Decimal("32.258065")
        assert entry.amount_in_base == Decimal("32258.06")

    def test_malformed_item_skipped(self, computation):
        summary = _summary(
            _success(
                SourceType.BANK,
                "100",
                "TWD",
                asset_details=[
                    {"accountId": "ACC-BAD", "balance": "not-a-number"},
                    {"accountId": "ACC-EUR", "balance": "10", "currency": "EUR"},
                    {"accountId": "ACC-OK", "balance": "100"},
                ],
            ),
            SourceOutcome.missing(SourceType.SECURITIES),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)

        assert [a.asset_name for a in computed.snapshot.assets] == ["ACC-OK"]
        assert computed.total_asset_value == Decimal("100.00")


class TestProjections:
    def test_result_and_snapshot_agree(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "500000", "TWD"),
            _success(SourceType.SECURITIES, "30000", "USD"),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        computed = computation.compute("C001", "req-trace", summary, AGGREGATED_AT)
        result, snapshot = computed.result, computed.snapshot

        assert snapshot.id is None
        assert result.customer_id == snapshot.customer_id == "C001"
        assert result.trace_id == snapshot.trace_id == "req-trace"
        assert result.total_asset_value == snapshot.total_asset_value
        assert result.currency_breakdown == snapshot.currency_breakdown
        assert result.components == snapshot.components
        assert result.aggregation_status == snapshot.aggregation_status
        assert result.aggregated_at == AGGREGATED_AT

    def test_to_dict_is_json_ready(self, computation):
        summary = _summary(
            _success(SourceType.BANK, "500000", "TWD"),
            SourceOutcome.missing(SourceType.SECURITIES),
            SourceOutcome.missing(SourceType.INSURANCE),
        )

        data = computation.compute("C001", "req-trace", summary, AGGREGATED_AT).result.to_dict()

        assert data["total_asset_value"] == "500000.00"
        assert data["aggregation_status"] == "PARTIAL"
        assert data["components"][1]["amount_in_base"] == "0.00"
        assert data["aggregated_at"] == AGGREGATED_AT.isoformat()
