"""
Health check endpoint covering the database and every asset source.
"""

import asyncio
import time

import structlog
from fastapi import APIRouter, Depends

from asset_aggregator import __version__
from asset_aggregator.aggregation.schemas import SourceType
from asset_aggregator.api.dependencies import get_database, get_source_clients
from asset_aggregator.api.models import ComponentHealth, HealthResponse
from asset_aggregator.clients.base import SourceClient
from asset_aggregator.observability.metrics import get_metrics
from asset_aggregator.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    healthy = await db.health_check()
    latency_ms = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        status="healthy" if healthy else "unhealthy",
        latency_ms=round(latency_ms, 2),
    )


async def _check_source(client: SourceClient) -> ComponentHealth:
    start = time.perf_counter()
    healthy = await client.health_check()
    latency_ms = (time.perf_counter() - start) * 1000
    get_metrics().set_source_health(client.source, healthy)
    return ComponentHealth(
        status="healthy" if healthy else "unhealthy",
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its dependencies.",
)
async def health_check(
    db: Database = Depends(get_database),
    clients: dict[SourceType, SourceClient] = Depends(get_source_clients),
) -> HealthResponse:
    """
    Check database and source health.

    Status logic:
    - unhealthy: database is down
    - degraded: one or more sources are down (aggregation will fail)
    - healthy: all components operational
    """
    db_health, *source_health = await asyncio.gather(
        _check_database(db),
        *(_check_source(clients[s]) for s in SourceType),
    )

    components: dict[str, ComponentHealth] = {"database": db_health}
    for source, health in zip(SourceType, source_health):
        components[source.value.lower()] = health

    if db_health.status == "unhealthy":
        status = "unhealthy"
    elif any(h.status == "unhealthy" for h in source_health):
        status = "degraded"
    else:
        status = "healthy"

    if status != "healthy":
        logger.warning(
            "Health check degraded",
            status=status,
            components={k: v.status for k, v in components.items()},
        )

    return HealthResponse(status=status, components=components, version=__version__)
