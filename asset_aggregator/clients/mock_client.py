"""
Mock source client for testing and development.

Generates synthetic bank, securities and insurance payloads shaped like
the real source responses. Output is deterministic per (source, customer)
so repeated aggregations of the same customer agree.

Useful for:
- Running the aggregator without the downstream services
- Exercising MISSING, FAILED and TIMEOUT paths on demand
"""

import asyncio
import random
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from asset_aggregator.aggregation.schemas import FetchResult, SourceMissing, SourceType
from asset_aggregator.clients.base import SourceClient, SourceClientError

SECURITY_SYMBOLS = [
    ("AAPL", "STOCK", "USD"),
    ("VT", "ETF", "USD"),
    ("US10Y", "BOND", "USD"),
]

POLICY_TYPES = ["LIFE", "MEDICAL", "ACCIDENT", "ANNUITY"]

RISK_LEVELS = ["LOW", "MEDIUM", "HIGH"]


def _money(rng: random.Random, low: int, high: int) -> Decimal:
    return Decimal(rng.randint(low * 100, high * 100)) / 100


class MockSourceClient(SourceClient):
    """
    Synthetic source client.

    Args:
        source: Source to impersonate
        delay_seconds: Simulated network latency per fetch
        missing_customers: Customers for which SourceMissing is returned
        fail: Raise SourceClientError on every fetch
    """

    def __init__(
        self,
        source: SourceType,
        delay_seconds: float = 0.0,
        missing_customers: Iterable[str] = (),
        fail: bool = False,
    ):
        super().__init__(source)
        self._delay_seconds = delay_seconds
        self._missing = frozenset(missing_customers)
        self._fail = fail

    async def fetch(
        self, customer_id: str, trace_id: str
    ) -> FetchResult | SourceMissing:
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)
        if self._fail:
            raise SourceClientError(
                self._source, f"{self._source.value} mock configured to fail"
            )
        if customer_id in self._missing:
            return SourceMissing(reason=f"{self._source.value} mock has no data")

        rng = random.Random(f"{self._source.value}:{customer_id}")
        if self._source is SourceType.BANK:
            return self._bank(rng, customer_id, trace_id)
        if self._source is SourceType.SECURITIES:
            return self._securities(rng, customer_id, trace_id)
        return self._insurance(rng, customer_id, trace_id)

    def _bank(self, rng: random.Random, customer_id: str, trace_id: str) -> FetchResult:
        accounts: list[dict[str, Any]] = [
            {
                "accountId": f"{customer_id}-TWD-{rng.randint(1000, 9999)}",
                "balance": str(_money(rng, 10_000, 2_000_000)),
                "currency": "TWD",
            },
            {
                "accountId": f"{customer_id}-USD-{rng.randint(1000, 9999)}",
                "balance": str(_money(rng, 100, 50_000)),
                "currency": "USD",
            },
        ]
        summary: dict[str, Decimal] = {}
        for account in accounts:
            summary[account["currency"]] = summary.get(
                account["currency"], Decimal("0")
            ) + Decimal(account["balance"])
        total = sum(summary.values(), Decimal("0"))
        payload = {
            "customerId": customer_id,
            "bankAssets": accounts,
            "totalBalance": str(total),
            "currency": "TWD",
            "traceId": trace_id,
        }
        return FetchResult(
            customer_id=customer_id,
            payload=payload,
            amount=total,
            currency="TWD",
            currency_summary=summary,
            item_count=len(accounts),
            fetched_at=datetime.now(timezone.utc),
            trace_id=trace_id,
        )

    def _securities(
        self, rng: random.Random, customer_id: str, trace_id: str
    ) -> FetchResult:
        picks = rng.sample(SECURITY_SYMBOLS, k=2)
        holdings: list[dict[str, Any]] = []
        for symbol, security_type, currency in picks:
            quantity = Decimal(rng.randint(1, 500))
            price = _money(rng, 20, 400)
            holdings.append({
                "securityType": security_type,
                "symbol": symbol,
                "holdings": str(quantity),
                "marketValue": str(quantity * price),
                "currency": currency,
                "riskLevel": rng.choice(RISK_LEVELS),
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
            })
        total = sum((Decimal(h["marketValue"]) for h in holdings), Decimal("0"))
        payload = {
            "customerId": customer_id,
            "securitiesAssets": holdings,
            "totalMarketValue": str(total),
            "currency": "USD",
            "traceId": trace_id,
        }
        return FetchResult(
            customer_id=customer_id,
            payload=payload,
            amount=total,
            currency="USD",
            item_count=len(holdings),
            fetched_at=datetime.now(timezone.utc),
            trace_id=trace_id,
        )

    def _insurance(
        self, rng: random.Random, customer_id: str, trace_id: str
    ) -> FetchResult:
        policies: list[dict[str, Any]] = [
            {
                "policyNumber": f"P-{customer_id}-{rng.randint(100000, 999999)}",
                "policyType": rng.choice(POLICY_TYPES),
                "coverage": str(_money(rng, 100_000, 5_000_000)),
                "premiumStatus": rng.choice(["PAID", "DUE"]),
                "currency": "TWD",
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
            }
        ]
        total = Decimal(policies[0]["coverage"])
        payload = {
            "customerId": customer_id,
            "insuranceAssets": policies,
            "totalCoverage": str(total),
            "currency": "TWD",
            "traceId": trace_id,
        }
        return FetchResult(
            customer_id=customer_id,
            payload=payload,
            amount=total,
            currency="TWD",
            item_count=len(policies),
            fetched_at=datetime.now(timezone.utc),
            trace_id=trace_id,
        )
