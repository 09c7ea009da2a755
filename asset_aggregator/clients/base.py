"""
Source client interface.

Each downstream source (bank, securities, insurance) is reached through a
SourceClient whose fetch() either returns the customer's data or reports
that the source holds none. Transport and protocol failures are raised.
"""

from abc import ABC, abstractmethod

from asset_aggregator.aggregation.schemas import FetchResult, SourceMissing, SourceType


class SourceClientError(Exception):
    """A source could not be reached or answered with an unusable response."""

    def __init__(
        self,
        source: SourceType,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.source = source
        self.status_code = status_code
        self.response_body = response_body


class SourceClient(ABC):
    """Abstract client for one asset source."""

    def __init__(self, source: SourceType):
        self._source = source

    @property
    def source(self) -> SourceType:
        return self._source

    @abstractmethod
    async def fetch(
        self, customer_id: str, trace_id: str
    ) -> FetchResult | SourceMissing:
        """
        Fetch the customer's assets from the source.

        Returns:
            FetchResult with the payload, or SourceMissing if the source
            has no data for the customer

        Raises:
            SourceClientError: On transport or protocol failures
        """

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release any resources held by the client."""
