"""Retry with exponential backoff for embedding calls and external processes."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _backoff(base_delay: float, attempt: int) -> float:
    # 0-based attempt: base, 2*base, 4*base, ...
    return base_delay * (2**attempt)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    description: str = "operation",
) -> T:
    """Await func() until it succeeds or attempts run out.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts including the first
        base_delay: Delay in seconds before the first retry
        retry_on: Exception types that may be retried
        should_retry: Optional predicate; returning False re-raises immediately
        description: Label used in log messages

    Returns:
        The result of the first successful call

    Raises:
        The last exception raised by func
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return await func()
        except retry_on as e:
            if should_retry is not None and not should_retry(e):
                raise
            if attempt == max_attempts - 1:
                logger.error(f"{description} failed after {max_attempts} attempts: {e}")
                raise
            wait_time = _backoff(base_delay, attempt)
            logger.warning(
                f"{description} failed (attempt {attempt + 1}/{max_attempts}): {e}; "
                f"retrying in {wait_time}s..."
            )
            await asyncio.sleep(wait_time)

    raise AssertionError("unreachable")


def retry_call(
    func: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    description: str = "operation",
) -> T:
    """Synchronous twin of retry_async."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return func()
        except retry_on as e:
            if should_retry is not None and not should_retry(e):
                raise
            if attempt == max_attempts - 1:
                logger.error(f"{description} failed after {max_attempts} attempts: {e}")
                raise
            wait_time = _backoff(base_delay, attempt)
            logger.warning(
                f"{description} failed (attempt {attempt + 1}/{max_attempts}): {e}; "
                f"retrying in {wait_time}s..."
            )
            time.sleep(wait_time)

    raise AssertionError("unreachable")
