"""Retry utilities for asynchronous operations using Tenacity."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import (
    DEFAULT_MAX_RETRY_ATTEMPTS,
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_MAX_BACKOFF_SECONDS,
)
from ..errors.internal import NetworkError

T = TypeVar("T")


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    context: str,
    max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
) -> T:
    """Run ``operation`` retrying only on NetworkError with exponential backoff.

    Other exceptions propagate on the first occurrence. When every attempt
    fails the last NetworkError is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine factory.
        context: Short label used in retry log lines.
        max_attempts: Maximum number of attempts.
    """

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logging.info(
            f"🔁 Retrying {context} attempt={retry_state.attempt_number + 1}/{max_attempts} error={str(exc)}"
        )

    async def _attempt() -> T:
        return await operation()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=RETRY_BACKOFF_MULTIPLIER, max=RETRY_MAX_BACKOFF_SECONDS),
        retry=retry_if_exception_type(NetworkError),
        before_sleep=_before_sleep,
        reraise=True,
    )
    return await retrying(_attempt)
