"""
Fetch escrow record use case.

Reads one escrow through the cache, the shared rate gate and the ledger,
turning collaborator failures into typed ledger errors.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from greffier.domain.entities.escrow_record import EscrowRecord
from greffier.domain.exceptions import (
    FetchTimeoutError,
    LedgerError,
    RateLimitedError,
    RecordNotFoundError,
    UnexpectedLedgerError,
)
from greffier.domain.services.error_classifier import classify_ledger_error
from greffier.domain.services.i_ledger_query_service import ILedgerQueryService
from greffier.domain.services.record_normalizer import (
    ETHER_DECIMALS,
    normalize_record,
)
from greffier.infrastructure.cache import BoundedCache
from greffier.infrastructure.monitoring import metrics
from greffier.infrastructure.rate_limiting import RateGate
from shared.resilience import run_with_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OUTCOMES = {
    RecordNotFoundError: "not_found",
    RateLimitedError: "rate_limited",
    FetchTimeoutError: "timeout",
}


class RecordFetcher:
    """
    Use case for fetching a single escrow record.

    Flow:
    1. Cache lookup (hit returns immediately, no ledger call)
    2. Wait for a rate gate slot
    3. Query the ledger, raced against the fetch timeout
    4. Normalize; cache unless the record is terminal

    Errors:
    - RecordNotFoundError: id does not exist (debug log only)
    - RateLimitedError: endpoint throttled us; gate cooldown triggered
    - FetchTimeoutError: no answer within timeout
    - UnexpectedLedgerError: anything else (logged once, here)
    """

    def __init__(
        self,
        ledger: ILedgerQueryService,
        cache: BoundedCache,
        rate_gate: RateGate,
        timeout: float = 5.0,
        cooldown_seconds: float = 30.0,
        amount_decimals: int = ETHER_DECIMALS,
    ):
        """
        Initialize use case.

        Args:
            ledger: Ledger query collaborator
            cache: Shared escrow cache
            rate_gate: Shared rate gate
            timeout: Per-query timeout in seconds
            cooldown_seconds: Gate cooldown after a rate limit rejection
            amount_decimals: Decimals of the ledger's base currency unit
        """
        self.ledger = ledger
        self.cache = cache
        self.rate_gate = rate_gate
        self.timeout = timeout
        self.cooldown_seconds = cooldown_seconds
        self.amount_decimals = amount_decimals

    @staticmethod
    def cache_key(record_id: Any) -> str:
        """Cache key for an escrow id."""
        return f"escrow-{record_id}"

    async def query(
        self,
        operation: str,
        call: Callable[..., Awaitable[T]],
        *args: Any,
        record_id: Optional[str] = None,
    ) -> T:
        """
        Run one ledger query through the rate gate and timeout.

        Args:
            operation: Operation name for logs, metrics and errors
            call: Collaborator coroutine function
            *args: Arguments for call
            record_id: Escrow id the query is about, if any

        Returns:
            Raw collaborator result

        Raises:
            LedgerError: Classified failure
        """
        await self.rate_gate.await_slot()

        started = time.monotonic()
        try:
            result = await run_with_timeout(call(*args), self.timeout, operation)
        except Exception as e:
            error = classify_ledger_error(
                e,
                operation,
                record_id=record_id,
                timeout=self.timeout,
                cooldown_seconds=self.cooldown_seconds,
            )
            self._observe_failure(operation, error)
            if error is e:
                raise
            raise error from e
        finally:
            metrics.ledger_request_duration_seconds.labels(
                operation=operation
            ).observe(time.monotonic() - started)

        metrics.ledger_requests_total.labels(
            operation=operation, outcome="ok"
        ).inc()
        return result

    def _observe_failure(self, operation: str, error: LedgerError) -> None:
        outcome = _OUTCOMES.get(type(error), "error")
        metrics.ledger_requests_total.labels(
            operation=operation, outcome=outcome
        ).inc()

        if isinstance(error, RecordNotFoundError):
            logger.debug(f"{operation}: escrow {error.record_id} not found")
        elif isinstance(error, RateLimitedError):
            metrics.rate_limited_total.inc()
            self.rate_gate.trigger_cooldown(self.cooldown_seconds)
        elif isinstance(error, FetchTimeoutError):
            logger.info(f"{operation} timed out after {error.timeout}s")
        else:
            logger.warning(error.message)

    def _cached(self, key: str) -> Optional[EscrowRecord]:
        try:
            cached = self.cache.get(key)
        except Exception as e:
            logger.debug(f"Cache read failed for {key}: {e}")
            return None
        return cached if isinstance(cached, EscrowRecord) else None

    async def fetch(self, record_id: Any) -> EscrowRecord:
        """
        Fetch one escrow record.

        Args:
            record_id: Escrow identifier

        Returns:
            Fully populated EscrowRecord

        Raises:
            RecordNotFoundError: If id does not exist
            RateLimitedError: If the endpoint rejected the call
            FetchTimeoutError: If the ledger did not answer in time
            UnexpectedLedgerError: For any other failure
        """
        record_id = str(record_id)
        key = self.cache_key(record_id)

        cached = self._cached(key)
        if cached is not None:
            return cached

        raw = await self.query(
            "get_record", self.ledger.get_record, record_id, record_id=record_id
        )

        try:
            record = normalize_record(record_id, raw, self.amount_decimals)
        except ValueError as e:
            error = UnexpectedLedgerError("get_record", e)
            self._observe_failure("get_record", error)
            raise error from e

        # Terminal records are never served from cache
        if not record.funds_disbursed:
            self.cache.set(key, record)

        return record

    async def fetch_or_none(self, record_id: Any) -> Optional[EscrowRecord]:
        """
        Fetch one escrow record, mapping a missing id to None.

        Other ledger errors still propagate.
        """
        try:
            return await self.fetch(record_id)
        except RecordNotFoundError:
            return None

    def invalidate(self, record_id: Any) -> None:
        """
        Drop a record from the cache after a write touched it.

        Args:
            record_id: Escrow identifier
        """
        self.cache.delete(self.cache_key(record_id))
        logger.debug(f"Invalidated cached escrow {record_id}")
