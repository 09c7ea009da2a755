"""
Structured logging for the aggregator.

Services, the coordinator and the API log through structlog; storage,
retry, writers and currency conversion use stdlib ``logging``. Both are
rendered by one ProcessorFormatter so every line carries the request
``trace_id`` bound at the HTTP edge (and the OTel ids when tracing is on),
as JSON in production and as console output elsewhere.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from asset_aggregator.config.settings import Settings, get_settings
from asset_aggregator.observability.tracing import add_trace_context

QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def _pre_chain(settings: Settings) -> list[Processor]:
    """Processors run on every entry, structlog or stdlib, before rendering."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.tracing_enabled:
        processors.append(add_trace_context)
    return processors


def build_formatter(settings: Settings | None = None) -> structlog.stdlib.ProcessorFormatter:
    """Formatter for the root handler; renders stdlib and structlog records alike."""
    settings = settings or get_settings()

    if settings.is_production:
        renderers: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(settings),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Aggregation completed", customer_id="C001", status="COMPLETED")
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            *_pre_chain(settings),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings))
    logging.basicConfig(handlers=[handler], level=getattr(logging, settings.log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Bind request-scoped fields (trace_id, customer_id) to later log lines."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
