"""Database repository for aggregated asset snapshots (one row per customer)."""

import json
import logging
import uuid
from decimal import Decimal
from typing import Any

from asset_aggregator.aggregation.schemas import (
    AggregatedComponent,
    AggregationStatus,
    AssetEntry,
    AssetSnapshot,
    CurrencyAmount,
)
from asset_aggregator.storage.database import Database, PersistenceError

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS asset_snapshots (
    id                 TEXT PRIMARY KEY,
    customer_id        TEXT NOT NULL UNIQUE,
    base_currency      TEXT NOT NULL,
    components         JSONB NOT NULL DEFAULT '[]',
    assets             JSONB NOT NULL DEFAULT '[]',
    total_asset_value  NUMERIC(20, 2) NOT NULL,
    currency_breakdown JSONB NOT NULL DEFAULT '[]',
    aggregation_status TEXT NOT NULL,
    aggregated_at      TIMESTAMPTZ NOT NULL,
    trace_id           TEXT NOT NULL,
    updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

# The id column is never updated so a customer's snapshot keeps its first id.
_UPSERT_SQL = """
INSERT INTO asset_snapshots (
    id, customer_id, base_currency, components, assets,
    total_asset_value, currency_breakdown, aggregation_status,
    aggregated_at, trace_id
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
ON CONFLICT (customer_id) DO UPDATE SET
    base_currency = EXCLUDED.base_currency,
    components = EXCLUDED.components,
    assets = EXCLUDED.assets,
    total_asset_value = EXCLUDED.total_asset_value,
    currency_breakdown = EXCLUDED.currency_breakdown,
    aggregation_status = EXCLUDED.aggregation_status,
    aggregated_at = EXCLUDED.aggregated_at,
    trace_id = EXCLUDED.trace_id,
    updated_at = NOW()
RETURNING *
"""


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_snapshot(row: Any) -> AssetSnapshot:
    """Convert an asyncpg Record to an AssetSnapshot dataclass."""
    return AssetSnapshot(
        id=row["id"],
        customer_id=row["customer_id"],
        base_currency=row["base_currency"],
        components=[
            AggregatedComponent.from_dict(c) for c in _load_json(row["components"]) or []
        ],
        assets=[AssetEntry.from_dict(a) for a in _load_json(row["assets"]) or []],
        total_asset_value=Decimal(str(row["total_asset_value"])),
        currency_breakdown=[
            CurrencyAmount.from_dict(c)
            for c in _load_json(row["currency_breakdown"]) or []
        ],
        aggregation_status=AggregationStatus(row["aggregation_status"]),
        aggregated_at=row["aggregated_at"],
        trace_id=row["trace_id"],
        updated_at=row["updated_at"],
    )


class SnapshotRepository:
    """Lookup and upsert of the latest snapshot per customer."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the asset_snapshots table (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Asset snapshots table ensured")

    async def find_by_customer_id(self, customer_id: str) -> AssetSnapshot | None:
        row = await self._db.fetchrow(
            "SELECT * FROM asset_snapshots WHERE customer_id = $1", customer_id
        )
        return _row_to_snapshot(row) if row else None

    async def upsert(self, snapshot: AssetSnapshot) -> AssetSnapshot:
        """Insert or replace the customer's snapshot, keeping its stored id."""
        document = snapshot.to_document()
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            snapshot.id or str(uuid.uuid4()),
            snapshot.customer_id,
            snapshot.base_currency,
            json.dumps(document["components"]),
            json.dumps(document["assets"]),
            snapshot.total_asset_value,
            json.dumps(document["currency_breakdown"]),
            snapshot.aggregation_status.value,
            snapshot.aggregated_at,
            snapshot.trace_id,
        )
        if row is None:
            raise PersistenceError(
                f"Snapshot upsert returned no row for customer {snapshot.customer_id}"
            )
        stored = _row_to_snapshot(row)
        logger.info(
            "Snapshot upserted for customer %s (id=%s)", stored.customer_id, stored.id
        )
        return stored
