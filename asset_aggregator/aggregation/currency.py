"""
Currency conversion over a static rate table.

Rates are looked up directly ("USD:TWD"), then through the inverse pair
("TWD:USD" gives 1/rate at 8 dp). Converted amounts are rounded to 2 dp
and the applied rate to 4 dp, both half-up.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from types import MappingProxyType

from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.errors import MissingRateError, ValidationError
from asset_aggregator.aggregation.schemas import (
    EIGHT_PLACES,
    UNIT_RATE,
    round2,
    round4,
)

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def _rate_key(from_currency: str, to_currency: str) -> str:
    return _NON_ALNUM.sub("", f"{from_currency}{to_currency}".upper())


@dataclass(frozen=True)
class ConversionResult:
    converted_amount: Decimal
    exchange_rate: Decimal
    # Unrounded rate used for the multiplication (8 dp when inverted)
    applied_rate: Decimal


class CurrencyConverter:
    """
    Stateless converter over an immutable rate table.

    Keys are "FROM:TO", tolerant of case and whitespace around the colon.
    A delimiter-free key such as "USDTWD" also matches.

    Usage:
        converter = CurrencyConverter({"USD:TWD": "32.0"})
        result = converter.convert(Decimal("100"), "usd", "TWD")
        # result.converted_amount == Decimal("3200.00"), result.exchange_rate == Decimal("32.0000")
    """

    def __init__(self, rates: Mapping[str, Decimal | float | str] | None = None):
        parsed: dict[str, Decimal] = {}
        for raw_key, raw_rate in (rates or {}).items():
            try:
                rate = Decimal(str(raw_rate).strip())
            except InvalidOperation as e:
                raise ValidationError(
                    f"Exchange rate for {raw_key!r} is not a number: {raw_rate!r}"
                ) from e
            if not rate.is_finite() or rate <= 0:
                raise ValidationError(
                    f"Exchange rate for {raw_key!r} must be positive, got {raw_rate!r}"
                )
            parsed[_NON_ALNUM.sub("", raw_key.upper())] = rate

        self._rates: Mapping[str, Decimal] = MappingProxyType(parsed)
        self._known_pairs = tuple(sorted(k.strip().upper() for k in (rates or {})))

    @classmethod
    def from_config(cls, config: AggregationConfig) -> "CurrencyConverter":
        return cls(config.currency_rates)

    @property
    def known_pairs(self) -> tuple[str, ...]:
        return self._known_pairs

    def find_rate(self, from_currency: str, to_currency: str) -> Decimal | None:
        """Return the configured direct rate for the ordered pair, if any."""
        return self._rates.get(_rate_key(from_currency, to_currency))

    def convert(
        self,
        amount: Decimal,
        from_currency: str | None,
        to_currency: str | None,
    ) -> ConversionResult:
        """
        Convert ``amount`` from one currency to another.

        Args:
            amount: Amount in ``from_currency``
            from_currency: Source currency code
            to_currency: Target currency code

        Returns:
            Converted amount (2 dp), the rate rounded to 4 dp, and the
            unrounded rate that was applied

        Raises:
            ValidationError: If a currency code or the amount is None
            MissingRateError: If neither the pair nor its inverse is configured
        """
        if from_currency is None or to_currency is None:
            raise ValidationError("Currency codes must not be null")
        if amount is None:
            raise ValidationError("Amount must not be null")

        source = from_currency.strip().upper()
        target = to_currency.strip().upper()

        if source == target:
            return ConversionResult(round2(amount), UNIT_RATE, Decimal(1))

        rate = self.find_rate(source, target)
        if rate is None:
            inverse = self.find_rate(target, source)
            if inverse is not None:
                rate = (Decimal(1) / inverse).quantize(
                    EIGHT_PLACES, rounding=ROUND_HALF_UP
                )

        if rate is None:
            logger.warning(
                "No exchange rate for %s -> %s (known pairs: %s)",
                source,
                target,
                ", ".join(self._known_pairs) or "none",
            )
            raise MissingRateError(source, target)

        return ConversionResult(round2(amount * rate), round4(rate), rate)
