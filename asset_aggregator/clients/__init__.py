"""Source clients for the bank, securities and insurance services."""

from asset_aggregator.aggregation.schemas import SourceType
from asset_aggregator.clients.base import SourceClient, SourceClientError
from asset_aggregator.clients.http_client import HttpSourceClient
from asset_aggregator.clients.mock_client import MockSourceClient
from asset_aggregator.config.settings import Settings, get_settings


def create_source_clients(
    settings: Settings | None = None, use_mock: bool = False
) -> dict[SourceType, SourceClient]:
    """Build one client per source, in SourceType order."""
    if use_mock:
        return {source: MockSourceClient(source) for source in SourceType}

    settings = settings or get_settings()
    base_urls = {
        SourceType.BANK: settings.bank_base_url,
        SourceType.SECURITIES: settings.securities_base_url,
        SourceType.INSURANCE: settings.insurance_base_url,
    }
    return {
        source: HttpSourceClient(
            source,
            base_urls[source],
            timeout=settings.source_http_timeout_seconds,
        )
        for source in SourceType
    }


__all__ = [
    "HttpSourceClient",
    "MockSourceClient",
    "SourceClient",
    "SourceClientError",
    "create_source_clients",
]
