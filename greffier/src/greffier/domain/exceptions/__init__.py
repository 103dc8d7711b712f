"""
Domain exceptions package.
"""

from greffier.domain.exceptions.base import (
    GreffierException,
    ResolutionFailedError,
)
from greffier.domain.exceptions.ledger import (
    FetchTimeoutError,
    LedgerCallError,
    LedgerError,
    RateLimitedError,
    RecordNotFoundError,
    UnexpectedLedgerError,
)

__all__ = [
    # Base
    "GreffierException",
    "ResolutionFailedError",
    # Ledger
    "LedgerError",
    "LedgerCallError",
    "RecordNotFoundError",
    "FetchTimeoutError",
    "RateLimitedError",
    "UnexpectedLedgerError",
]
