"""HTTP client utilities and helpers."""

from asyncio import sleep
from contextlib import asynccontextmanager
from functools import wraps

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import httpx

from activity_monitor.helpers.constants import (
    BACKFILL_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from activity_monitor.helpers.logging import get_logger


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def backoff_delay(
    attempt: int,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
) -> float:
    """Exponential delay for a zero-based attempt number, capped at max_delay.

    Example:
        >>> backoff_delay(0, 1.0, 60.0), backoff_delay(3, 1.0, 60.0)
        (1.0, 8.0)
    """
    return min(base_delay * (2**attempt), max_delay)


def retry_with_backoff(
    max_retries: int = BACKFILL_MAX_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    retry_on: tuple[type[Exception], ...] = (httpx.HTTPError,),
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to retry async functions with exponential backoff.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately. When every attempt fails the last exception is
    re-raised unchanged so callers can classify it.

    Args:
        max_retries: Maximum number of attempts (default: 5)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between retries (default: 60.0)
        retry_on: Exception types that trigger another attempt
        log_errors: Whether to log retry attempts (default: True)

    Returns:
        Decorated function that retries on the given exception types

    Example:
        ```python
        from activity_monitor.core.errors import RateLimitedError
        from activity_monitor.helpers.http import retry_with_backoff

        fetch = retry_with_backoff(
            max_retries=3, base_delay=2.0, retry_on=(RateLimitedError,)
        )(client.fetch_normal)
        batch = await fetch(address)

        # Will retry up to 3 times with delays of 2s, 4s
        ```
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        name = getattr(func, "__name__", repr(func))

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if log_errors and attempt < max_retries - 1:
                        logger.warning(
                            "%s %s (attempt %d/%d): %s",
                            name,
                            type(e).__name__,
                            attempt + 1,
                            max_retries,
                            e,
                        )

                # Don't sleep after the last attempt
                if attempt < max_retries - 1:
                    await sleep(backoff_delay(attempt, base_delay, max_delay))

            if last_exception:
                if log_errors:
                    logger.error("%s failed after %d attempts", name, max_retries)
                raise last_exception

            # Only reachable with max_retries < 1
            msg = f"{name} failed without exception"
            raise RuntimeError(msg)

        return wrapper

    return decorator


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Args:
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs

    Returns:
        Configured AsyncClient instance
    """
    return httpx.AsyncClient(timeout=timeout, **kwargs)


@asynccontextmanager
async def log_and_suppress_errors(
    operation_name: str,
    *,
    log_level: str = "warning",
    suppress: bool = True,
) -> AsyncIterator[None]:
    """Context manager to log and optionally suppress errors.

    Args:
        operation_name: Description of the operation for logging
        log_level: Logging level ("debug", "info", "warning", "error")
        suppress: If True, suppress exceptions; if False, re-raise after logging

    Example:
        ```python
        async with log_and_suppress_errors("close indexer client"):
            await client.aclose()
        ```
    """
    try:
        yield
    except Exception as e:
        log_method = getattr(logger, log_level, logger.warning)
        log_method("%s failed: %s", operation_name, e)

        if not suppress:
            raise


__all__ = [
    "backoff_delay",
    "create_http_client",
    "log_and_suppress_errors",
    "retry_with_backoff",
]
