"""Bounded retry helper built on tenacity.

Connection recovery retries a step a fixed number of times with a fixed
pause in between. The pause goes through an injectable sleep function so
tests can run the policy without waiting.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-interval retry policy.

    Attributes:
        attempts: Total number of attempts, including the first one.
        interval: Seconds to sleep between attempts.
    """

    attempts: int = 3
    interval: float = 1.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: type[BaseException] | tuple[type[BaseException], ...],
        sleep: SleepFunc | None = None,
        label: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds or the attempts run out.

        Only exceptions matching ``retry_on`` are retried; anything else
        propagates immediately. When every attempt fails the last
        exception is re-raised unchanged.

        Args:
            operation: Zero-argument coroutine function to call.
            retry_on: Exception type(s) that trigger another attempt.
            sleep: Coroutine used to wait between attempts.
            label: Name used in retry log entries.

        Returns:
            Whatever ``operation`` returns on its first successful call.
        """

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "retrying",
                operation=label,
                attempt=retry_state.attempt_number,
                max_attempts=self.attempts,
                wait_seconds=self.interval,
                error=str(error),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.interval),
            retry=retry_if_exception_type(retry_on),
            sleep=sleep or asyncio.sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        return await retrying(operation)
