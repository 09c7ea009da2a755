"""
Command-line interface for asset-aggregator.

Provides commands to aggregate a customer's assets, run the API server,
initialize the database, and run diagnostic checks.

Usage:
    asset-aggregator aggregate C001       # Aggregate one customer, print JSON
    asset-aggregator aggregate C001 --mock
    asset-aggregator serve                # Run the API server
    asset-aggregator init-db              # Initialize database
    asset-aggregator health               # Check service health
"""

import asyncio
import json
import sys

import click

from asset_aggregator.config.settings import get_settings
from asset_aggregator.observability.logging import setup_logging
from asset_aggregator.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Asset Aggregator - consolidated bank, securities and insurance assets."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    settings = get_settings()
    if settings.tracing_enabled:
        from asset_aggregator.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
@click.argument("customer_id")
@click.option("--mock", is_flag=True, help="Use mock source clients")
@click.option("--trace-id", default=None, help="Correlation id (generated if omitted)")
@click.option("--no-persist", is_flag=True, help="Skip the snapshot upsert")
def aggregate(customer_id: str, mock: bool, trace_id: str | None, no_persist: bool) -> None:
    """Aggregate one customer's assets and print the result as JSON."""
    from asset_aggregator.aggregation.config import AggregationConfig
    from asset_aggregator.aggregation.errors import AggregationError
    from asset_aggregator.aggregation.service import build_aggregation_service
    from asset_aggregator.clients import create_source_clients
    from asset_aggregator.storage.database import Database

    async def run() -> int:
        config = AggregationConfig()
        if no_persist:
            config = config.model_copy(update={"persist_snapshot": False})

        clients = create_source_clients(use_mock=mock)
        async with Database() as db:
            service = build_aggregation_service(db, clients, config=config)
            try:
                result = await service.aggregate(customer_id, trace_id=trace_id)
            except AggregationError as e:
                click.echo(click.style(f"Aggregation failed: {e}", fg="red"), err=True)
                return 1
            finally:
                for client in clients.values():
                    await client.close()

        click.echo(json.dumps(result.to_dict(), indent=2))
        return 0

    sys.exit(asyncio.run(run()))


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the aggregation API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "asset_aggregator.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from asset_aggregator.storage.database import Database
    from asset_aggregator.storage.raw_repository import create_raw_repositories
    from asset_aggregator.storage.snapshot_repository import SnapshotRepository

    async def run():
        async with Database() as db:
            for repo in create_raw_repositories(db).values():
                await repo.create_table()
            await SnapshotRepository(db).create_table()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.option("--mock", is_flag=True, help="Check mock source clients")
def health(mock: bool) -> None:
    """Check health of all dependencies."""
    import asyncpg
    import structlog

    from asset_aggregator.clients import create_source_clients
    from asset_aggregator.storage.database import Database

    logger = structlog.get_logger()

    async def check() -> int:
        results: dict[str, bool] = {}

        db = Database()
        try:
            await db.connect()
            results["postgres"] = await db.health_check()
        except (OSError, asyncpg.PostgresError) as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))
        finally:
            await db.close()

        clients = create_source_clients(use_mock=mock)
        for source, client in clients.items():
            results[source.value.lower()] = await client.health_check()
            await client.close()

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

        click.echo("-" * 40)

        if all(results.values()):
            click.echo(click.style("All dependencies healthy!", fg="green"))
            return 0
        click.echo(click.style("Some dependencies unhealthy!", fg="red"))
        return 1

    sys.exit(asyncio.run(check()))


if __name__ == "__main__":
    main()
