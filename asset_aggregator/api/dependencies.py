"""
Dependency injection for FastAPI endpoints.
"""

from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.schemas import SourceType
from asset_aggregator.aggregation.service import (
    AggregationService,
    build_aggregation_service,
)
from asset_aggregator.clients import SourceClient, create_source_clients
from asset_aggregator.storage.database import Database

# Global instances (initialized on first request)
_database: Database | None = None
_source_clients: dict[SourceType, SourceClient] | None = None
_aggregation_service: AggregationService | None = None


async def get_database() -> Database:
    """Get the shared database connection pool."""
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


async def get_source_clients() -> dict[SourceType, SourceClient]:
    """Get one HTTP client per source, built from settings."""
    global _source_clients

    if _source_clients is None:
        _source_clients = create_source_clients()

    return _source_clients


async def get_aggregation_service() -> AggregationService:
    """
    Get aggregation service instance.

    Creates a singleton service over the shared database and source clients.
    """
    global _aggregation_service

    if _aggregation_service is None:
        _aggregation_service = build_aggregation_service(
            database=await get_database(),
            clients=await get_source_clients(),
            config=AggregationConfig(),
        )

    return _aggregation_service


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _source_clients, _aggregation_service

    _aggregation_service = None

    if _source_clients is not None:
        for client in _source_clients.values():
            await client.close()
        _source_clients = None

    if _database is not None:
        await _database.close()
        _database = None
