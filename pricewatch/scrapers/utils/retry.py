"""Retry policy for transient fetch failures."""

import logging
from typing import Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pricewatch.core.exceptions import FetchError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """True for fetch failures worth another attempt (network, timeout, 408/429/5xx)."""
    return isinstance(exc, FetchError) and exc.retryable


def fetch_retrying(max_retries: int, max_wait: float = 30.0) -> AsyncRetrying:
    """Build the tenacity controller used around a single fetch.

    Args:
        max_retries: Additional attempts after the first one
        max_wait: Upper bound for the exponential backoff in seconds
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=1, min=1, max=max_wait),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


async def call_with_retry(
    func: Callable[[], Awaitable[T]], max_retries: int
) -> T:
    """Await ``func()`` and retry it on retryable FetchError.

    With ``max_retries`` of 0 the call is made exactly once.
    """
    if max_retries <= 0:
        return await func()
    async for attempt in fetch_retrying(max_retries):
        with attempt:
            return await func()
    raise AssertionError("unreachable")  # pragma: no cover
