"""Bounded exponential-backoff retries for a single geocoding operation."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

FailedAttemptHook = Callable[[Exception, int, int], None]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry every failure up to ``retries`` times.

    The delay before retry ``k`` (1-based) is
    ``min(min_delay * factor ** (k - 1), max_delay)`` seconds. The error type
    is never inspected here; ``BmltGeoError.is_retryable`` exists for callers
    deciding whether to repeat a whole call.
    """

    retries: int = 3
    factor: float = 2.0
    min_delay: float = 1.0
    max_delay: float = 10.0

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must not be negative")
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ValueError("delays must satisfy 0 <= min_delay <= max_delay")

    def delay_for(self, retry_number: int) -> float:
        return min(self.min_delay * self.factor ** (retry_number - 1), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        on_failed_attempt: Optional[FailedAttemptHook] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> T:
        """Run ``operation`` until it succeeds or the retry budget is spent.

        ``on_failed_attempt`` receives the error, the 1-based attempt number
        and the retries left, and is only called when another attempt follows.
        The final failure is re-raised unchanged.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if attempt > self.retries:
                    raise
                retries_left = self.retries - attempt + 1
                if on_failed_attempt is not None:
                    on_failed_attempt(exc, attempt, retries_left)
                await sleep(self.delay_for(attempt))
