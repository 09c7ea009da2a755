"""Storage layer for raw source documents and aggregated snapshots."""

from asset_aggregator.storage.database import Database, PersistenceError
from asset_aggregator.storage.raw_repository import (
    RawAssetRepository,
    create_raw_repositories,
)
from asset_aggregator.storage.snapshot_repository import SnapshotRepository

__all__ = [
    "Database",
    "PersistenceError",
    "RawAssetRepository",
    "SnapshotRepository",
    "create_raw_repositories",
]
