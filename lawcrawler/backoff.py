"""Retry-with-backoff executor for network-dependent steps."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    *,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run *operation* up to *attempts* times.

    After a failed attempt ``i`` (0-based) the executor waits
    ``base_delay * 2 ** i`` seconds before trying again, so the delays are
    1, 2, 4, ... with the default base. The last exception is re-raised
    unchanged once all attempts are spent. Exceptions outside *retry_on*
    propagate immediately.

    Args:
        operation: Zero-argument callable returning an awaitable.
        attempts: Maximum number of attempts (>= 1).
        base_delay: Delay unit in seconds.
        retry_on: Exception types that trigger a retry.
        sleep: Awaitable sleep function (injectable for tests).

    Raises:
        ValueError: If *attempts* is smaller than 1.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base_delay),
        retry=retry_if_exception_type(retry_on),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(operation)
