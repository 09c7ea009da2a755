"""
Fixed-backoff retry for durable raw document writes.

Only persistence-layer failures are retried. The decision looks at the
root cause of the raised exception so that wrapped driver errors still
qualify.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import asyncpg

from asset_aggregator.aggregation.config import AggregationConfig
from asset_aggregator.aggregation.errors import DurableWriteError, ValidationError
from asset_aggregator.storage.database import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    ConnectionError,
    PersistenceError,
)


def root_cause(exc: BaseException) -> BaseException:
    """
    Follow the explicit ``raise ... from`` chain to the innermost exception.

    Implicit ``__context__`` is ignored: an error raised while handling a
    driver failure is a new failure of its own.
    """
    seen = {id(exc)}
    current = exc
    while True:
        nxt = current.__cause__
        if nxt is None or id(nxt) in seen:
            return current
        seen.add(id(nxt))
        current = nxt


def is_retryable(exc: BaseException) -> bool:
    return isinstance(root_cause(exc), RETRYABLE_ERRORS)


class DurableWriteRetrier:
    """
    Retry an async write with a fixed sleep between attempts.

    Usage:
        retrier = DurableWriteRetrier(max_attempts=3, backoff_seconds=0.1)
        saved = await retrier.execute(
            "Failed to persist bank assets for customer C001",
            lambda: repository.save(record),
        )
    """

    def __init__(self, max_attempts: int = 3, backoff_seconds: float = 0.1):
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        if backoff_seconds < 0:
            raise ValidationError("backoff_seconds must not be negative")

        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds

    @classmethod
    def from_config(cls, config: AggregationConfig) -> "DurableWriteRetrier":
        return cls(
            max_attempts=config.write_retry_max_attempts,
            backoff_seconds=config.write_retry_backoff_seconds,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def backoff_seconds(self) -> float:
        return self._backoff_seconds

    async def execute(
        self,
        failure_message: str,
        action: Callable[[], Awaitable[T]],
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """
        Run ``action`` until it succeeds or the attempt budget is spent.

        Args:
            failure_message: Prefix of the DurableWriteError message
            action: Zero-argument callable returning an awaitable
            on_retry: Called with (attempt, error) before each retry sleep

        Returns:
            Whatever ``action`` returns on its first successful attempt

        Raises:
            DurableWriteError: Retryable failures exhausted the budget, or
                the backoff sleep was cancelled
            Exception: Any non-retryable error, unchanged
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await action()
            except Exception as e:
                if not is_retryable(e):
                    raise
                if attempt >= self._max_attempts:
                    raise DurableWriteError(
                        f"{failure_message} after {attempt} attempts",
                        attempts=attempt,
                    ) from e

                logger.warning(
                    "Write attempt %d/%d failed, retrying in %.3fs: %s",
                    attempt,
                    self._max_attempts,
                    self._backoff_seconds,
                    e,
                )
                if on_retry is not None:
                    on_retry(attempt, e)

            try:
                await asyncio.sleep(self._backoff_seconds)
            except asyncio.CancelledError as e:
                raise DurableWriteError(
                    f"{failure_message}: retry interrupted",
                    attempts=attempt,
                ) from e
