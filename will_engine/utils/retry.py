"""
Backoff for startup work against a store that may not be reachable yet.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar

from ..domain.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE: Tuple[Type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
    TransientStoreError,
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.5  # fraction of the delay added at random; 0 disables
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (0-indexed)."""
        delay = min(self.base_delay * self.exponential_base**attempt, self.max_delay)
        if self.jitter:
            delay += delay * random.uniform(0, self.jitter)
        return delay

    def delays(self) -> Iterator[float]:
        for attempt in range(self.max_attempts - 1):
            yield self.delay(attempt)


def async_retry(
    policy: Optional[RetryPolicy] = None,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
    **overrides,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Retry an async function on ``policy.retry_on`` errors with exponential backoff.

    Usage:
        @async_retry(max_attempts=5, base_delay=0.5)
        async def connect():
            await init_database()

    Keyword overrides build a policy when none is given. The last error is
    re-raised once attempts run out; other exceptions propagate at once.
    """
    policy = policy or RetryPolicy(**overrides)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt, delay in enumerate(policy.delays(), start=1):
                try:
                    return await func(*args, **kwargs)
                except policy.retry_on as e:
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{policy.max_attempts}): "
                        f"{type(e).__name__}: {e}; retrying in {delay:.2f}s"
                    )
                    if on_retry:
                        on_retry(e, attempt)
                    await asyncio.sleep(delay)

            try:
                return await func(*args, **kwargs)
            except policy.retry_on as e:
                logger.error(
                    f"{func.__name__} gave up after {policy.max_attempts} attempts: "
                    f"{type(e).__name__}: {e}"
                )
                raise

        return wrapper

    return decorator
