"""Asset aggregation endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from asset_aggregator.aggregation.schemas import (
    AggregatedAssetResult,
    AggregatedComponent,
    AssetSnapshot,
)
from asset_aggregator.aggregation.service import AggregationService
from asset_aggregator.api.dependencies import get_aggregation_service
from asset_aggregator.api.models import (
    AggregatedAssetResponse,
    AssetEntryModel,
    ComponentModel,
    CurrencyAmountModel,
    ErrorResponse,
    SnapshotResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


def _component_to_model(c: AggregatedComponent) -> ComponentModel:
    return ComponentModel(
        source=c.source.value,
        status=c.status.value,
        amount_in_base=c.amount_in_base,
        source_currency=c.source_currency,
        exchange_rate=c.exchange_rate,
        raw_trace_id=c.raw_trace_id,
        fetched_at=c.fetched_at,
        asset_details=c.asset_details,
        payload_ref_id=c.reference_id,
    )


def _result_to_response(result: AggregatedAssetResult) -> AggregatedAssetResponse:
    return AggregatedAssetResponse(
        customer_id=result.customer_id,
        base_currency=result.base_currency,
        total_asset_value=result.total_asset_value,
        currency_breakdown=[
            CurrencyAmountModel(currency=c.currency, amount=c.amount)
            for c in result.currency_breakdown
        ],
        components=[_component_to_model(c) for c in result.components],
        aggregation_status=result.aggregation_status.value,
        aggregated_at=result.aggregated_at,
        trace_id=result.trace_id,
    )


def _snapshot_to_response(snapshot: AssetSnapshot) -> SnapshotResponse:
    return SnapshotResponse(
        id=snapshot.id,
        customer_id=snapshot.customer_id,
        base_currency=snapshot.base_currency,
        total_asset_value=snapshot.total_asset_value,
        currency_breakdown=[
            CurrencyAmountModel(currency=c.currency, amount=c.amount)
            for c in snapshot.currency_breakdown
        ],
        components=[_component_to_model(c) for c in snapshot.components],
        assets=[
            AssetEntryModel(
                source=a.source.value,
                asset_type=a.asset_type,
                asset_name=a.asset_name,
                currency=a.currency,
                amount=a.amount,
                amount_in_base=a.amount_in_base,
                exchange_rate=a.exchange_rate,
                attributes=a.attributes,
            )
            for a in snapshot.assets
        ],
        aggregation_status=snapshot.aggregation_status.value,
        aggregated_at=snapshot.aggregated_at,
        trace_id=snapshot.trace_id,
        updated_at=snapshot.updated_at,
    )


@router.get(
    "/assets/customers/{customer_id}",
    response_model=AggregatedAssetResponse,
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
    summary="Aggregate a customer's assets",
    description=(
        "Fetch bank, securities and insurance assets concurrently, convert "
        "them into the base currency and return the consolidated view."
    ),
)
async def aggregate_assets(
    customer_id: str,
    request: Request,
    service: AggregationService = Depends(get_aggregation_service),
) -> AggregatedAssetResponse:
    trace_id = getattr(request.state, "trace_id", None)
    result = await service.aggregate(customer_id, trace_id=trace_id)
    return _result_to_response(result)


@router.get(
    "/assets/customers/{customer_id}/snapshot",
    response_model=SnapshotResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Latest stored snapshot for a customer",
)
async def get_snapshot(
    customer_id: str,
    service: AggregationService = Depends(get_aggregation_service),
) -> SnapshotResponse:
    snapshot = await service.latest_snapshot(customer_id)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No snapshot for customer {customer_id}",
        )
    return _snapshot_to_response(snapshot)
