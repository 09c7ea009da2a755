"""
asyncpg pool shared by the raw document and snapshot repositories.

Repositories only issue single statements, so the pool exposes just
``execute``, ``fetch`` and ``fetchrow``. Driver and network failures
surface as PersistenceError with the original error as ``__cause__``,
which keeps them retryable for the raw document writer.
"""

import logging
from types import TracebackType
from typing import Any

import asyncpg

from asset_aggregator.config.settings import get_settings

logger = logging.getLogger(__name__)

# OSError covers refused/reset connections and command timeouts
DRIVER_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
)


class PersistenceError(RuntimeError):
    """Driver-independent persistence failure raised by the storage layer."""

    def __init__(self, message: str, statement: str | None = None):
        super().__init__(message)
        self.statement = statement


def _statement(query: str) -> str:
    """Leading SQL keyword of ``query`` (INSERT, SELECT, ...), for messages."""
    words = query.split(None, 1)
    return words[0].upper() if words else "QUERY"


class Database:
    """
    Connection pool for the asset aggregator tables.

    Usage:
        async with Database() as db:
            rows = await db.fetch("SELECT * FROM bank_asset_raw WHERE customer_id = $1", "C001")
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float = 30.0,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(
            self._database_url,
            min_size=self._min_size,
            max_size=self._max_size,
            command_timeout=self._command_timeout,
        )
        logger.info("Database pool ready (%d-%d connections)", self._min_size, self._max_size)

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise PersistenceError("Database not connected. Call connect() first.")
        return self._pool

    async def _run(self, method: str, query: str, *args: Any) -> Any:
        statement = _statement(query)
        try:
            async with self.pool.acquire() as conn:
                return await getattr(conn, method)(query, *args)
        except DRIVER_ERRORS as e:
            logger.warning("%s statement failed: %s", statement, e)
            raise PersistenceError(f"{statement} failed: {e}", statement=statement) from e

    async def execute(self, query: str, *args: Any) -> str:
        return await self._run("execute", query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self._run("fetch", query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self._run("fetchrow", query, *args)

    async def health_check(self) -> bool:
        """True if a trivial query round-trips through the pool."""
        try:
            row = await self.fetchrow("SELECT 1 AS ok")
        except PersistenceError as e:
            logger.warning("Database health check failed: %s", e)
            return False
        return row is not None and row["ok"] == 1
