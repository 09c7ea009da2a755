"""
FastAPI asset aggregation service.

Provides REST API for:
- GET /assets/customers/{customer_id} - Aggregate a customer's assets
- GET /assets/customers/{customer_id}/snapshot - Latest stored snapshot
- GET /health - Service health check
"""

from asset_aggregator.api.app import create_app

__all__ = ["create_app"]
