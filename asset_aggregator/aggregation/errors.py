"""Exception hierarchy for asset aggregation."""

from collections.abc import Sequence

from asset_aggregator.aggregation.schemas import SourceType


class AggregationError(Exception):
    """Base class for aggregation domain errors."""


class ValidationError(AggregationError, ValueError):
    """A required input was missing or blank."""


class MissingRateError(AggregationError):
    """No direct or inverse exchange rate exists for a currency pair."""

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"No exchange rate configured for {from_currency} -> {to_currency}"
        )


class DurableWriteError(AggregationError):
    """A raw document write failed after exhausting its retry budget."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class AggregationFailedError(AggregationError):
    """One or more sources failed or timed out; no result was produced.

    Attributes:
        customer_id: Customer whose aggregation failed.
        failed_sources: Failed or timed-out sources in SourceType order.
        root_cause: First underlying error among the failed sources.
    """

    def __init__(
        self,
        customer_id: str,
        failed_sources: Sequence[SourceType],
        root_cause: BaseException | None = None,
    ):
        self.customer_id = customer_id
        self.failed_sources = list(failed_sources)
        self.root_cause = root_cause
        reason = str(root_cause) if root_cause is not None else "unknown error"
        if root_cause is not None and not reason:
            reason = type(root_cause).__name__
        super().__init__(
            f"Failed to aggregate assets for customer {customer_id} due to {reason}"
        )


def require_text(value: str | None, name: str) -> str:
    """Return ``value`` unchanged, or raise ValidationError if None or blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} must not be blank")
    return value
