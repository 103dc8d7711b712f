"""
Ledger-related exceptions.

Defines the failure taxonomy for reads against the escrow ledger.
"""

from typing import Optional

from greffier.domain.exceptions.base import GreffierException


class LedgerError(GreffierException):
    """Base exception for ledger query operations."""


class LedgerCallError(LedgerError):
    """
    Raw failure reported by the ledger query collaborator.

    Carries the collaborator's error signature so it can be classified
    into one of the typed ledger errors below.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str | int] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        """
        Initialize ledger call error.

        Args:
            message: Error message from the collaborator
            code: Collaborator error code (e.g. "CALL_EXCEPTION", -32603)
            status_code: HTTP status code, if the call went over HTTP
            details: Extra context (operation, params)
        """
        super().__init__(message, code=str(code) if code is not None else None)
        self.raw_code = code
        self.status_code = status_code
        self.details = details or {}


class RecordNotFoundError(LedgerError):
    """Raised when an id does not correspond to any ledger record."""

    def __init__(self, record_id: str):
        super().__init__(f"Escrow {record_id} does not exist", code="NOT_FOUND")
        self.record_id = record_id


class FetchTimeoutError(LedgerError):
    """Raised when a ledger query gets no response in time."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"Ledger query '{operation}' timed out after {timeout}s",
            code="TIMEOUT",
        )
        self.operation = operation
        self.timeout = timeout


class RateLimitedError(LedgerError):
    """Raised when the ledger endpoint rejects a call for rate limiting."""

    def __init__(self, operation: str, retry_after: float):
        super().__init__(
            f"Ledger query '{operation}' was rate limited "
            f"(retry after {retry_after:.0f}s)",
            code="RATE_LIMITED",
        )
        self.operation = operation
        self.retry_after = retry_after


class UnexpectedLedgerError(LedgerError):
    """Raised for any ledger failure outside the known signatures."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(
            f"Unexpected ledger error in '{operation}': "
            f"{type(cause).__name__}: {cause}",
            code="UNEXPECTED",
        )
        self.operation = operation
        self.cause = cause
