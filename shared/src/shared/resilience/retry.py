"""
Retry pattern with configurable backoff and jitter.

Provides automatic retry logic for transient failures of async operations
(ledger queries, bridge calls) with backoff strategies that keep retries
from piling onto a rate-limited endpoint.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class BackoffStrategy(str, Enum):
    """Backoff strategy for retries."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    """Maximum number of attempts (including initial attempt)"""

    initial_delay: float = 0.5
    """Delay before the first retry in seconds"""

    max_delay: float = 30.0
    """Maximum delay between retries in seconds"""

    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    """Backoff strategy: exponential, linear, or constant"""

    backoff_multiplier: float = 2.0
    """Multiplier for exponential backoff, increment for linear backoff"""

    jitter: bool = True
    """Add random jitter to prevent thundering herd"""

    jitter_factor: float = 0.1
    """Jitter factor (0.0-1.0). 0.1 means +/-10% randomness"""

    retry_on: tuple = (Exception,)
    """Exception types to retry on"""


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


class Retry:
    """
    Async retry handler with configurable backoff strategies.

    Non-retryable exceptions propagate unchanged on the first attempt.
    Once attempts are exhausted, RetryError is raised with the last
    exception attached (also chained as ``__cause__``).

    Example:
        retry = Retry(
            RetryConfig(max_attempts=3, retry_on=(FetchTimeoutError,)),
            name="fetch_record",
        )
        record = await retry.execute_async(fetcher.fetch, "42")
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        name: str = "operation",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self.name = name
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt.

        Args:
            attempt: Failed attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        if self.config.backoff_strategy == BackoffStrategy.EXPONENTIAL:
            delay = self.config.initial_delay * (
                self.config.backoff_multiplier**attempt
            )
        elif self.config.backoff_strategy == BackoffStrategy.LINEAR:
            delay = self.config.initial_delay + (
                self.config.backoff_multiplier * attempt
            )
        else:  # CONSTANT
            delay = self.config.initial_delay

        delay = min(delay, self.config.max_delay)

        if self.config.jitter and delay > 0:
            jitter_range = delay * self.config.jitter_factor
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay

    def _should_retry_exception(self, exception: BaseException) -> bool:
        """Check if exception should trigger retry."""
        return isinstance(exception, self.config.retry_on)

    async def execute_async(
        self, func: Callable[..., Awaitable[Any]], *args, **kwargs
    ) -> Any:
        """
        Execute async function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Function result

        Raises:
            RetryError: When all attempts exhausted
            Exception: Any non-retryable exception raised by func
        """
        for attempt in range(self.config.max_attempts):
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                if not self._should_retry_exception(e):
                    raise

                if attempt >= self.config.max_attempts - 1:
                    raise RetryError(
                        f"{self.name}: all {self.config.max_attempts} attempts "
                        f"exhausted. Last error: {type(e).__name__}: {e}",
                        attempts=self.config.max_attempts,
                        last_exception=e,
                    ) from e

                delay = self.calculate_delay(attempt)
                logger.debug(
                    f"{self.name}: {type(e).__name__}: {e}. "
                    f"Attempt {attempt + 1}/{self.config.max_attempts}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await self._sleep(delay)
                continue

            if attempt > 0:
                logger.debug(
                    f"{self.name} succeeded on attempt "
                    f"{attempt + 1}/{self.config.max_attempts}"
                )
            return result

        raise RetryError(
            f"{self.name}: no attempts configured",
            attempts=self.config.max_attempts,
        )

    def decorator(self, func: Callable[..., Awaitable[Any]]) -> Callable:
        """
        Decorator for retry logic on coroutine functions.

        Example:
            retry = Retry(RetryConfig(max_attempts=3))

            @retry.decorator
            async def load():
                return await client.get_record_count()
        """

        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.execute_async(func, *args, **kwargs)

        return wrapper


def with_retry(config: Optional[RetryConfig] = None, name: str = "operation"):
    """
    Decorator factory for retry logic.

    Example:
        @with_retry(RetryConfig(max_attempts=5, initial_delay=0.5))
        async def fetch_count():
            return await ledger.get_record_count()
    """
    return Retry(config or RetryConfig(), name=name).decorator


__all__ = [
    "Retry",
    "RetryConfig",
    "RetryError",
    "BackoffStrategy",
    "with_retry",
]
