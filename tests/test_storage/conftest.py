"""Shared fixtures for storage tests."""

from unittest.mock import AsyncMock

import pytest


@pytest.fixture
def mock_db() -> AsyncMock:
    """Mock Database instance matching the Database API."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="CREATE TABLE")
    return db
