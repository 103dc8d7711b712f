"""
Timeout protection for async operations.

Races a coroutine against a deadline on the running event loop. The
awaited operation is cancelled when the deadline passes.
"""

import asyncio
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class TimeoutError(Exception):
    """Raised when operation exceeds timeout."""

    def __init__(self, operation: str, timeout: float):
        """
        Initialize timeout error.

        Args:
            operation: Name of operation that timed out
            timeout: Timeout duration in seconds
        """
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"Operation '{operation}' exceeded timeout of {timeout} seconds"
        )


async def run_with_timeout(
    awaitable: Awaitable[T],
    seconds: Optional[float],
    operation: str = "operation",
) -> T:
    """
    Await an operation, failing if it does not finish in time.

    Args:
        awaitable: Coroutine or future to await
        seconds: Timeout in seconds (None = wait forever)
        operation: Operation name for error messages

    Returns:
        Result of the awaitable

    Raises:
        TimeoutError: If operation exceeds timeout

    Example:
        >>> data = await run_with_timeout(ledger.get_record("7"), 5.0, "get_record")
    """
    if seconds is None:
        return await awaitable

    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise TimeoutError(operation, seconds) from None


def with_timeout(seconds: float, operation: Optional[str] = None) -> Callable:
    """
    Decorator applying run_with_timeout to a coroutine function.

    Args:
        seconds: Timeout in seconds
        operation: Operation name (defaults to function name)
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable:
        name = operation or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await run_with_timeout(func(*args, **kwargs), seconds, name)

        return wrapper

    return decorator


__all__ = [
    "TimeoutError",
    "run_with_timeout",
    "with_timeout",
]
