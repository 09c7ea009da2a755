"""
HTTP source clients built on httpx.

Each source exposes ``GET {base_url}/{bank|securities|insurance}/customers/{id}/assets``.
A 404 means the source holds no data for the customer; any other error
status, a transport failure or an unusable body raises SourceClientError.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from asset_aggregator.aggregation.payload import to_decimal
from asset_aggregator.aggregation.schemas import FetchResult, SourceMissing, SourceType
from asset_aggregator.clients.base import SourceClient, SourceClientError
from asset_aggregator.observability.tracing import inject_trace_context

logger = logging.getLogger(__name__)

TRACE_ID_HEADER = "X-Trace-Id"

_PATH_SEGMENTS: dict[SourceType, str] = {
    SourceType.BANK: "bank",
    SourceType.SECURITIES: "securities",
    SourceType.INSURANCE: "insurance",
}


def _items(body: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = body.get(key) or []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _sum_field(items: list[dict[str, Any]], field_name: str) -> Decimal:
    total = Decimal("0")
    for item in items:
        value = to_decimal(item.get(field_name))
        if value is not None:
            total += value
    return total


def _currency(body: dict[str, Any], items: list[dict[str, Any]]) -> str | None:
    currency = body.get("currency")
    if not currency:
        currency = next((i["currency"] for i in items if i.get("currency")), None)
    return str(currency).strip().upper() if currency else None


def _parse_bank(body: dict[str, Any]) -> tuple[Decimal, str | None, dict[str, Decimal], int]:
    items = _items(body, "bankAssets")
    currency = _currency(body, items)

    summary: dict[str, Decimal] = {}
    for item in items:
        balance = to_decimal(item.get("balance"))
        if balance is None:
            continue
        item_currency = str(item.get("currency") or currency or "").strip().upper()
        if not item_currency:
            continue
        summary[item_currency] = summary.get(item_currency, Decimal("0")) + balance

    total = to_decimal(body.get("totalBalance"))
    if total is None:
        total = _sum_field(items, "balance")
    return total, currency, summary, len(items)


def _parse_securities(body: dict[str, Any]) -> tuple[Decimal, str | None, dict[str, Decimal], int]:
    items = _items(body, "securitiesAssets")
    total = to_decimal(body.get("totalMarketValue"))
    if total is None:
        total = _sum_field(items, "marketValue")
    return total, _currency(body, items), {}, len(items)


def _parse_insurance(body: dict[str, Any]) -> tuple[Decimal, str | None, dict[str, Decimal], int]:
    items = _items(body, "insuranceAssets")
    total = to_decimal(body.get("totalCoverage"))
    if total is None:
        total = _sum_field(items, "coverage")
    return total, _currency(body, items), {}, len(items)


_PARSERS: dict[
    SourceType,
    Callable[[dict[str, Any]], tuple[Decimal, str | None, dict[str, Decimal], int]],
] = {
    SourceType.BANK: _parse_bank,
    SourceType.SECURITIES: _parse_securities,
    SourceType.INSURANCE: _parse_insurance,
}


class HttpSourceClient(SourceClient):
    """
    Source client over HTTP.

    Example:
        client = HttpSourceClient(SourceType.BANK, "http://bank:8081")
        result = await client.fetch("C001", trace_id)
        await client.close()
    """

    def __init__(
        self,
        source: SourceType,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(source)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def url_for(self, customer_id: str) -> str:
        return f"{self._base_url}/{_PATH_SEGMENTS[self._source]}/customers/{customer_id}/assets"

    async def fetch(
        self, customer_id: str, trace_id: str
    ) -> FetchResult | SourceMissing:
        url = self.url_for(customer_id)
        headers = {"Accept": "application/json", TRACE_ID_HEADER: trace_id}
        headers.update(inject_trace_context())

        try:
            response = await self._http().get(url, headers=headers)
        except httpx.HTTPError as e:
            raise SourceClientError(
                self._source,
                f"{self._source.value} request failed: {type(e).__name__}: {e}",
            ) from e

        if response.status_code == 404:
            logger.info(
                "%s has no assets for customer %s", self._source.value, customer_id
            )
            return SourceMissing(reason=f"{self._source.value} returned 404")

        if response.status_code >= 400:
            raise SourceClientError(
                self._source,
                f"{self._source.value} request failed with status {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        if not response.content:
            raise SourceClientError(
                self._source,
                f"{self._source.value} returned an empty body",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SourceClientError(
                self._source,
                f"{self._source.value} returned invalid JSON",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

        if not isinstance(body, dict):
            raise SourceClientError(
                self._source,
                f"{self._source.value} returned a non-object body",
                status_code=response.status_code,
            )

        try:
            amount, currency, summary, item_count = _PARSERS[self._source](body)
        except ValueError as e:
            raise SourceClientError(
                self._source,
                f"{self._source.value} returned malformed amounts: {e}",
                status_code=response.status_code,
            ) from e

        source_trace = body.get("traceId")
        return FetchResult(
            customer_id=str(body.get("customerId") or customer_id),
            payload=body,
            amount=amount,
            currency=currency,
            currency_summary=summary,
            item_count=item_count,
            fetched_at=datetime.now(timezone.utc),
            trace_id=source_trace if source_trace and str(source_trace).strip() else trace_id,
        )

    async def health_check(self) -> bool:
        try:
            response = await self._http().get(f"{self._base_url}/health")
        except httpx.HTTPError as e:
            logger.warning("%s health check failed: %s", self._source.value, e)
            return False
        return response.status_code < 500

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
