"""Bounded fixed-delay retry around a completion attempt."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .config import get_settings
from .exceptions import error_kind
from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Re-run an async operation on transient failures.

    ``max_retries`` counts re-attempts, so the operation runs at most
    ``max_retries + 1`` times. Failures whose kind is not retryable
    (cancellation, remote errors, protocol and validation failures) are
    raised straight away without consuming the budget.
    """

    def __init__(self, max_retries: int = 3, delay: float = 1.0) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.delay = delay

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        settings = get_settings()
        return cls(
            max_retries=settings.retry_max_retries,
            delay=settings.retry_delay_seconds,
        )

    async def attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                kind = error_kind(exc)
                if not kind.retryable or attempt >= total_attempts:
                    raise
                logger.warning(
                    "completion_retry",
                    attempt=attempt,
                    max_retries=self.max_retries,
                    delay=self.delay,
                    error_kind=kind.value,
                    error=str(exc),
                )
            await asyncio.sleep(self.delay)

        raise AssertionError("unreachable")  # pragma: no cover
