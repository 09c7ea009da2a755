"""Database repository for raw per-source asset documents.

Each source has its own table with an identical layout; one repository
instance serves one source.
"""

import json
import logging
from decimal import Decimal
from typing import Any

from asset_aggregator.aggregation.schemas import RawAssetRecord, SourceType
from asset_aggregator.storage.database import Database, PersistenceError

logger = logging.getLogger(__name__)

RAW_TABLES: dict[SourceType, str] = {
    SourceType.BANK: "bank_asset_raw",
    SourceType.SECURITIES: "securities_asset_raw",
    SourceType.INSURANCE: "insurance_asset_raw",
}

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id               TEXT PRIMARY KEY,
    customer_id      TEXT NOT NULL,
    payload          JSONB NOT NULL,
    total_amount     NUMERIC(20, 2) NOT NULL,
    currency         TEXT,
    currency_summary JSONB NOT NULL DEFAULT '{{}}',
    item_count       INTEGER NOT NULL DEFAULT 0,
    fetched_at       TIMESTAMPTZ NOT NULL,
    trace_id         TEXT,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_{table}_customer
    ON {table}(customer_id, fetched_at DESC);
"""

_INSERT_SQL = """
INSERT INTO {table} (
    id, customer_id, payload, total_amount, currency,
    currency_summary, item_count, fetched_at, trace_id
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
ON CONFLICT (id) DO UPDATE SET id = EXCLUDED.id
RETURNING *
"""


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_record(source: SourceType, row: Any) -> RawAssetRecord:
    """Convert an asyncpg Record to a RawAssetRecord dataclass."""
    summary = _load_json(row["currency_summary"]) or {}
    return RawAssetRecord(
        id=row["id"],
        source=source,
        customer_id=row["customer_id"],
        payload=_load_json(row["payload"]) or {},
        total_amount=Decimal(str(row["total_amount"])),
        currency=row["currency"],
        currency_summary={k: Decimal(str(v)) for k, v in summary.items()},
        item_count=row["item_count"],
        fetched_at=row["fetched_at"],
        trace_id=row["trace_id"],
        created_at=row["created_at"],
    )


class RawAssetRepository:
    """Insert and read raw documents for one source."""

    def __init__(self, database: Database, source: SourceType) -> None:
        self._db = database
        self._source = source
        self._table = RAW_TABLES[source]

    @property
    def source(self) -> SourceType:
        return self._source

    async def create_table(self) -> None:
        """Create the raw table and index for this source (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL.format(table=self._table))
        logger.info("Raw asset table %s ensured", self._table)

    async def save(self, record: RawAssetRecord) -> RawAssetRecord:
        """
        Insert a raw document and return it as stored.

        Re-saving the same record id returns the row already stored, so a
        retry after a commit whose reply was lost does not fail.
        """
        row = await self._db.fetchrow(
            _INSERT_SQL.format(table=self._table),
            record.id,
            record.customer_id,
            json.dumps(record.payload, default=str),
            record.total_amount,
            record.currency,
            json.dumps({k: str(v) for k, v in record.currency_summary.items()}),
            record.item_count,
            record.fetched_at,
            record.trace_id,
        )
        if row is None:
            raise PersistenceError(
                f"Insert into {self._table} returned no row for customer {record.customer_id}"
            )
        return _row_to_record(self._source, row)

    async def get_by_id(self, record_id: str) -> RawAssetRecord | None:
        row = await self._db.fetchrow(
            f"SELECT * FROM {self._table} WHERE id = $1", record_id
        )
        return _row_to_record(self._source, row) if row else None

    async def list_by_customer(
        self, customer_id: str, limit: int = 20
    ) -> list[RawAssetRecord]:
        """Most recent raw documents for a customer, newest first."""
        rows = await self._db.fetch(
            f"""
            SELECT * FROM {self._table}
            WHERE customer_id = $1
            ORDER BY fetched_at DESC
            LIMIT $2
            """,
            customer_id,
            limit,
        )
        return [_row_to_record(self._source, r) for r in rows]


def create_raw_repositories(database: Database) -> dict[SourceType, RawAssetRepository]:
    """One repository per source, in SourceType order."""
    return {source: RawAssetRepository(database, source) for source in SourceType}
