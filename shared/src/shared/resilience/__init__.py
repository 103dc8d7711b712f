"""
Resilience patterns for remote calls.

This module provides the resilience patterns shared by Greffier components:
- Timeout Protection: Prevents hanging operations
- Retry: Automatic retry with configurable backoff
"""

from shared.resilience.retry import (
    BackoffStrategy,
    Retry,
    RetryConfig,
    RetryError,
    with_retry,
)
from shared.resilience.timeout import (
    TimeoutError,
    run_with_timeout,
    with_timeout,
)

__all__ = [
    # Timeout
    "TimeoutError",
    "run_with_timeout",
    "with_timeout",
    # Retry
    "Retry",
    "RetryConfig",
    "RetryError",
    "BackoffStrategy",
    "with_retry",
]
