"""
Ledger error classification.

Maps raw collaborator failures onto the typed ledger errors by matching
their error signature (message text, error code, HTTP status).
"""

import asyncio
from typing import Optional

from greffier.domain.exceptions import (
    FetchTimeoutError,
    LedgerError,
    RateLimitedError,
    RecordNotFoundError,
    UnexpectedLedgerError,
)
from shared.resilience import TimeoutError as OperationTimeoutError

NOT_FOUND_MARKERS = ("missing revert data", "CALL_EXCEPTION")
NOT_FOUND_CODES = ("CALL_EXCEPTION",)

RATE_LIMIT_MARKERS = ("429", "Non-200 status code")
RATE_LIMIT_CODES = (-32603, -32005)
RATE_LIMIT_STATUS = 429

_CLASSIFIED = (
    RecordNotFoundError,
    RateLimitedError,
    FetchTimeoutError,
    UnexpectedLedgerError,
)


def _signature(error: BaseException) -> str:
    parts = [str(error)]
    message = getattr(error, "message", None)
    if isinstance(message, str):
        parts.append(message)
    return " ".join(parts)


def _codes(error: BaseException) -> set:
    codes = set()
    for attr in ("raw_code", "code"):
        value = getattr(error, attr, None)
        if value is None:
            continue
        codes.add(value)
        if isinstance(value, str):
            try:
                codes.add(int(value))
            except ValueError:
                pass
    return codes


def is_not_found_error(error: BaseException) -> bool:
    """True if the error means the record id does not exist."""
    if isinstance(error, RecordNotFoundError):
        return True
    text = _signature(error)
    if any(marker in text for marker in NOT_FOUND_MARKERS):
        return True
    return any(code in _codes(error) for code in NOT_FOUND_CODES)


def is_rate_limit_error(error: BaseException) -> bool:
    """True if the error means the endpoint rejected the call for rate."""
    if isinstance(error, RateLimitedError):
        return True
    if getattr(error, "status_code", None) == RATE_LIMIT_STATUS:
        return True
    text = _signature(error)
    if any(marker in text for marker in RATE_LIMIT_MARKERS):
        return True
    if "rate limit" in text.lower():
        return True
    return any(code in _codes(error) for code in RATE_LIMIT_CODES)


def is_timeout_error(error: BaseException) -> bool:
    """True if the error is a timeout of any flavor."""
    return isinstance(
        error, (FetchTimeoutError, OperationTimeoutError, asyncio.TimeoutError)
    )


def classify_ledger_error(
    error: BaseException,
    operation: str,
    record_id: Optional[str] = None,
    timeout: float = 0.0,
    cooldown_seconds: float = 30.0,
) -> LedgerError:
    """
    Classify a collaborator failure.

    Order matters: not-found signatures win over rate limit ones, since a
    reverted call may carry a generic error code.

    Args:
        error: Raised exception
        operation: Operation name used in the resulting error
        record_id: Record id the call was about, if any
        timeout: Timeout applied to the call (for FetchTimeoutError)
        cooldown_seconds: Retry-after hint for RateLimitedError

    Returns:
        RecordNotFoundError, RateLimitedError, FetchTimeoutError or
        UnexpectedLedgerError
    """
    if isinstance(error, _CLASSIFIED):
        return error

    if is_timeout_error(error):
        return FetchTimeoutError(operation, getattr(error, "timeout", timeout))

    if is_not_found_error(error):
        return RecordNotFoundError(record_id if record_id is not None else "?")

    if is_rate_limit_error(error):
        return RateLimitedError(operation, retry_after=cooldown_seconds)

    return UnexpectedLedgerError(operation, error)
