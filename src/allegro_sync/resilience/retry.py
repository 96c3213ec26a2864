"""RetryPolicy and RetryExecutor — bounded retries with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..primitives.exceptions import RemoteUnreachableError

logger = logging.getLogger("allegro_sync.retry")

T = TypeVar("T")


class RetryPolicy:
    """Configurable retry with exponential backoff and optional jitter."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: bool = False,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of attempts (including the first).
            base_delay: Delay in seconds before the first retry.
            max_delay: Cap on delay in seconds.
            jitter: If True, scale delays by a random factor in [0.5, 1.5].
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed (attempt is 1-based)."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        """Return delay in seconds after the given 1-based attempt failed.

        base_delay * 2^(attempt-1), capped by max_delay.
        """
        if attempt < 1:
            return 0.0
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        return float(max(0.0, delay))


class RetryExecutor:
    """Runs a coroutine function under a :class:`RetryPolicy`.

    Only exceptions matching *retry_on* are retried; everything else
    propagates on the first failure. Once attempts are exhausted the last
    error is re-raised unchanged.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        retry_on: tuple[type[BaseException], ...] = (RemoteUnreachableError,),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.retry_on = retry_on
        self._sleep = sleep

    async def execute(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        operation: str | None = None,
        **kwargs: Any,
    ) -> T:
        name = operation or getattr(fn, "__name__", "operation")
        attempt = 1
        while True:
            try:
                return await fn(*args, **kwargs)
            except self.retry_on as exc:
                if not self.policy.should_retry(attempt):
                    logger.error(
                        "%s failed after %d attempt(s): %s", name, attempt, exc
                    )
                    raise
                delay = self.policy.delay_for_attempt(attempt)
                logger.warning(
                    "%s attempt %d/%d failed (%s); retrying in %.2fs",
                    name,
                    attempt,
                    self.policy.max_attempts,
                    exc,
                    delay,
                )
                if delay > 0:
                    await self._sleep(delay)
                attempt += 1
