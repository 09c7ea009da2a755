"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import asyncpg
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from asset_aggregator import __version__
from asset_aggregator.aggregation.errors import (
    AggregationFailedError,
    DurableWriteError,
    MissingRateError,
    ValidationError,
)
from asset_aggregator.api.dependencies import cleanup_dependencies
from asset_aggregator.api.models import ErrorResponse
from asset_aggregator.api.routes import assets, health
from asset_aggregator.config.settings import get_settings
from asset_aggregator.observability.logging import bind_context, clear_context
from asset_aggregator.storage.database import PersistenceError

logger = structlog.get_logger(__name__)

TRACE_ID_HEADER = "X-Trace-Id"

DATA_ACCESS_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    PersistenceError,
    DurableWriteError,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Asset aggregator API starting up")

    settings = get_settings()
    if settings.tracing_enabled:
        from asset_aggregator.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )

    yield

    logger.info("Asset aggregator API shutting down")
    await cleanup_dependencies()


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        code=code,
        message=message,
        details=details or {},
        trace_id=getattr(request.state, "trace_id", None),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "assets", "description": "Customer asset aggregation"},
    ]

    app = FastAPI(
        title="Asset Aggregator API",
        description="""
Consolidated view of a customer's bank, securities and insurance assets,
normalized into a single base currency.

Every response carries an `X-Trace-Id` header; send one to correlate the
request with downstream source calls.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[TRACE_ID_HEADER],
    )

    # Request logging, trace id, and tracing middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        from asset_aggregator.observability.tracing import (
            extract_trace_context,
            get_tracer,
            is_tracing_enabled,
        )

        trace_id = request.headers.get(TRACE_ID_HEADER) or str(uuid.uuid4())
        request.state.trace_id = trace_id

        bind_context(trace_id=trace_id)

        start_time = time.perf_counter()

        try:
            if is_tracing_enabled():
                tracer = get_tracer("asset-aggregator.api")
                with tracer.start_as_current_span(
                    f"{request.method} {request.url.path}",
                    context=extract_trace_context(request.headers),
                    attributes={
                        "http.method": request.method,
                        "http.url": str(request.url),
                        "http.route": request.url.path,
                        "http.trace_id": trace_id,
                    },
                ) as span:
                    response = await call_next(request)
                    duration = time.perf_counter() - start_time
                    span.set_attribute("http.status_code", response.status_code)
                    span.set_attribute("http.duration_ms", round(duration * 1000, 2))
            else:
                response = await call_next(request)
                duration = time.perf_counter() - start_time

            response.headers[TRACE_ID_HEADER] = trace_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            clear_context()

    # Exception handlers

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error_response(
            request, status.HTTP_400_BAD_REQUEST, "BAD_REQUEST", str(exc)
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "BAD_REQUEST",
            "Request validation failed",
            {"errors": [str(e.get("msg")) for e in exc.errors()]},
        )

    @app.exception_handler(AggregationFailedError)
    async def aggregation_failed_handler(request: Request, exc: AggregationFailedError):
        return _error_response(
            request,
            status.HTTP_504_GATEWAY_TIMEOUT,
            "ASSET_AGGREGATION_FAILED",
            str(exc),
            {"failedSources": [s.value for s in exc.failed_sources]},
        )

    @app.exception_handler(MissingRateError)
    async def missing_rate_handler(request: Request, exc: MissingRateError):
        logger.error("Missing exchange rate", error=str(exc))
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "MISSING_EXCHANGE_RATE",
            str(exc),
            {"fromCurrency": exc.from_currency, "toCurrency": exc.to_currency},
        )

    for error_type in DATA_ACCESS_ERRORS:

        @app.exception_handler(error_type)
        async def data_access_handler(request: Request, exc: Exception):
            logger.error("Data access failure", error_type=type(exc).__name__, error=str(exc))
            return _error_response(
                request,
                status.HTTP_502_BAD_GATEWAY,
                "DATA_ACCESS_ERROR",
                "Failed to access asset storage",
            )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = "NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else "HTTP_ERROR"
        return _error_response(request, exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", error=str(exc), exc_info=True)
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_SERVER_ERROR",
            "Internal server error",
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(assets.router, tags=["assets"])

    return app
