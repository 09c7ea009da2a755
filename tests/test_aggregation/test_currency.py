"""Tests for CurrencyConverter."""

from decimal import Decimal

import pytest

from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.currency import ConversionResult, CurrencyConverter
from asset_aggregator.aggregation.errors import MissingRateError, ValidationError


class TestSameCurrency:
    def test_identity_returns_unit_rate(self):
        converter = CurrencyConverter({})

        result = converter.convert(Decimal("1234.567"), "TWD", "TWD")

        assert result == ConversionResult(Decimal("1234.57"), Decimal("1.0000"), Decimal("1"))

    def test_identity_is_case_insensitive(self):
        result = CurrencyConverter({}).convert(Decimal("10"), " twd ", "TWD")

        assert result.exchange_rate == Decimal("1.0000")
        assert result.converted_amount == Decimal("10.00")

    def test_rounding_is_half_up(self):
        result = CurrencyConverter({}).convert(Decimal("1.005"), "USD", "USD")

        assert result.converted_amount == Decimal("1.01")


class TestDirectRate:
    def test_direct_rate_applied(self):
        converter = CurrencyConverter({"USD:TWD": "32.0"})

        result = converter.convert(Decimal("30000.00"), "USD", "TWD")

        assert result.converted_amount == Decimal("960000.00")
        assert result.exchange_rate == Decimal("32.0000")

    def test_codes_normalized_before_lookup(self):
        converter = CurrencyConverter({"USD:TWD": "32.0"})

        result = converter.convert(Decimal("100"), "usd", " twd")

        assert result.converted_amount == Decimal("3200.00")

    @pytest.mark.parametrize("key", [" usd : twd ", "usd:TWD", "USDTWD", "USD-TWD"])
    def test_key_format_tolerated(self, key):
        converter = CurrencyConverter({key: "32"})

        assert converter.convert(Decimal("1"), "USD", "TWD").converted_amount == Decimal("32.00")

    def test_direct_rate_preferred_over_inverse(self):
        converter = CurrencyConverter({"USD:TWD": "32", "TWD:USD": "0.05"})

        result = converter.convert(Decimal("1"), "USD", "TWD")

        assert result.exchange_rate == Decimal("32.0000")


class TestInverseRate:
    def test_inverse_rate_used_when_direct_missing(self):
        converter = CurrencyConverter({"USD:TWD": "32"})

        result = converter.convert(Decimal("1000"), "TWD", "USD")

        # 1/32 = 0.03125 at 8 dp; reported rate rounds half-up to 4 dp
        assert result.converted_amount == Decimal("31.25")
        assert result.exchange_rate == Decimal("0.0313")
        assert result.applied_rate == Decimal("0.03125000")

    def test_inverse_of_exact_rate(self):
        converter = CurrencyConverter({"TWD:USD": "0.03125"})

        result = converter.convert(Decimal("100"), "USD", "TWD")

        assert result.converted_amount == Decimal("3200.00")
        assert result.exchange_rate == Decimal("32.0000")


class TestMissingRate:
    def test_missing_pair_raises(self):
        converter = CurrencyConverter({"USD:TWD": "32"})

        with pytest.raises(MissingRateError) as exc_info:
            converter.convert(Decimal("1"), "EUR", "TWD")

        assert exc_info.value.from_currency == "EUR"
        assert exc_info.value.to_currency == "TWD"
        assert "EUR -> TWD" in str(exc_info.value)

    def test_find_rate_returns_none_for_unknown_pair(self):
        assert CurrencyConverter({}).find_rate("USD", "TWD") is None


class TestValidation:
    def test_null_currency_rejected(self):
        converter = CurrencyConverter({})

        with pytest.raises(ValidationError):
            converter.convert(Decimal("1"), None, "TWD")
        with pytest.raises(ValidationError):
            converter.convert(Decimal("1"), "TWD", None)

    def test_null_amount_rejected(self):
        with pytest.raises(ValidationError):
            CurrencyConverter({}).convert(None, "USD", "USD")

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            CurrencyConverter({}).convert(Decimal("1"), None, "TWD")

    @pytest.mark.parametrize("rate", ["0", "-1", "abc", "NaN"])
    def test_bad_rate_rejected_at_construction(self, rate):
        with pytest.raises(ValidationError):
            CurrencyConverter({"USD:TWD": rate})


class TestFromConfig:
    def test_uses_configured_rates(self):
        config = AggregationConfig(currency_rates={"JPY:TWD": Decimal("0.22")})
        converter = CurrencyConverter.from_config(config)

        result = converter.convert(Decimal("10000"), "JPY", "TWD")

        assert result.converted_amount == Decimal("2200.00")
        assert converter.known_pairs == ("JPY:TWD",)
