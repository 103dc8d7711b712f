"""
Synchronize user escrows use case.

Loads every escrow involving a user in rate-limit-friendly chunks,
publishing progress after each record so a partially loaded collection
is usable while the run continues.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from greffier.application.dto.sync_snapshot import SyncOutcome, SyncUpdate
from greffier.application.use_cases.fetch_escrow_record import RecordFetcher
from greffier.application.use_cases.resolve_user_records import (
    MembershipResolver,
)
from greffier.domain.entities.escrow_record import EscrowRecord
from greffier.domain.exceptions import (
    FetchTimeoutError,
    LedgerError,
    RateLimitedError,
    ResolutionFailedError,
)
from greffier.domain.services.reconciler import merge, sort_newest_first, upsert
from greffier.domain.value_objects import LoadProgress, RoleStatistics, SyncStatus
from greffier.infrastructure.monitoring import log_performance, metrics, set_run_id
from shared.resilience import BackoffStrategy, Retry, RetryConfig, RetryError

logger = logging.getLogger(__name__)

Publisher = Callable[[SyncUpdate], None]


class _RunCancelled(Exception):
    """Stops a record's retry loop once its run is cancelled."""


class CancellationToken:
    """Cooperative cancellation flag for one batch run."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class _RunState:
    records: List[EscrowRecord] = field(default_factory=list)
    progress: LoadProgress = field(default_factory=LoadProgress)


class BatchSynchronizer:
    """
    Use case for loading all of a user's escrows.

    State machine:
        idle -> resolving -> loading -> completed | cancelled | failed

    Flow:
    1. Resolve ids via the membership resolver
    2. Publish a placeholder per id
    3. Fetch chunk by chunk (concurrent within a chunk, paused between
       chunks), publishing after each record resolves
    4. Publish the reconciled, sorted collection of active records with
       role statistics

    Per-id failures are counted, never fatal. Only resolution failure and
    cancellation end a run early.
    """

    def __init__(
        self,
        resolver: MembershipResolver,
        fetcher: RecordFetcher,
        chunk_size: int = 5,
        chunk_delay: float = 0.5,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize use case.

        Args:
            resolver: Membership resolver
            fetcher: Record fetcher
            chunk_size: Ids fetched concurrently per chunk
            chunk_delay: Pause between chunks in seconds
            max_attempts: Fetch attempts per id for transient failures
            retry_delay: Base delay of the linear retry backoff
            clock: Wall clock used to stamp last_updated
            sleep: Async sleep used for chunk delays and retries
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        self.resolver = resolver
        self.fetcher = fetcher
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self._clock = clock
        self._sleep = sleep
        self._token: Optional[CancellationToken] = None
        self._status = SyncStatus.IDLE

        self._retry = Retry(
            RetryConfig(
                max_attempts=max_attempts,
                initial_delay=retry_delay,
                backoff_strategy=BackoffStrategy.LINEAR,
                backoff_multiplier=retry_delay,
                jitter=False,
                retry_on=(FetchTimeoutError, RateLimitedError),
            ),
            name="fetch_record",
            sleep=sleep,
        )

    @property
    def status(self) -> SyncStatus:
        """State of the latest run."""
        return self._status

    def cancel(self) -> None:
        """
        Cancel the active run, if any.

        In-flight fetches may still complete; their results are discarded
        and nothing further is published for the cancelled run.
        """
        if self._token is not None and not self._token.cancelled:
            self._token.cancel()
            logger.info("Batch run cancellation requested")

    async def run(
        self, user_address: str, publish: Optional[Publisher] = None
    ) -> SyncOutcome:
        """
        Run one batch synchronization for user_address.

        A run started while another is active cancels the older one.

        Args:
            user_address: Account identifier
            publish: Callback receiving incremental updates

        Returns:
            SyncOutcome of the run
        """
        self.cancel()
        token = CancellationToken()
        self._token = token
        run_id = set_run_id()
        started = time.monotonic()

        def emit(update: SyncUpdate) -> None:
            if token.cancelled:
                return
            self._status = update.status
            if publish is not None:
                publish(update)

        emit(SyncUpdate(status=SyncStatus.RESOLVING, clear_error=True))
        logger.info(f"Batch run started for {user_address}")

        try:
            ids = await self.resolver.resolve_ids(user_address)
        except ResolutionFailedError as e:
            if token.cancelled:
                return self._cancelled(run_id, user_address, _RunState())
            emit(SyncUpdate(status=SyncStatus.FAILED, error=e.message))
            metrics.sync_runs_total.labels(status=SyncStatus.FAILED.value).inc()
            return SyncOutcome(
                run_id=run_id,
                user_address=user_address,
                status=SyncStatus.FAILED,
                error=e.message,
            )

        if token.cancelled:
            return self._cancelled(run_id, user_address, _RunState())

        state = _RunState(
            records=[EscrowRecord.placeholder_for(record_id) for record_id in ids],
            progress=LoadProgress.start(len(ids)),
        )
        emit(
            SyncUpdate(
                status=SyncStatus.LOADING,
                records=tuple(state.records),
                progress=state.progress,
            )
        )

        for index in range(0, len(ids), self.chunk_size):
            if index > 0 and self.chunk_delay > 0:
                await self._sleep(self.chunk_delay)
            if token.cancelled:
                break

            chunk = ids[index : index + self.chunk_size]
            await asyncio.gather(
                *(self._load_one(record_id, token, state, emit) for record_id in chunk)
            )

        if token.cancelled:
            return self._cancelled(run_id, user_address, state)

        outcome = self._finish(run_id, user_address, state, emit)
        log_performance(logger, f"batch run ({outcome.progress.summary})", started)
        return outcome

    async def _load_one(
        self,
        record_id: str,
        token: CancellationToken,
        state: _RunState,
        emit: Publisher,
    ) -> None:
        async def attempt() -> EscrowRecord:
            # Checked before every attempt: a cancelled run issues no new queries
            if token.cancelled:
                raise _RunCancelled(record_id)
            return await self.fetcher.fetch(record_id)

        try:
            record = await self._retry.execute_async(attempt)
        except _RunCancelled:
            return
        except (LedgerError, RetryError) as e:
            if token.cancelled:
                return
            cause = e.last_exception if isinstance(e, RetryError) else e
            logger.debug(f"Escrow {record_id} failed: {cause}")
            state.progress = state.progress.record_failed()
            state.records = upsert(state.records, EscrowRecord.failed(record_id))
            metrics.sync_records_total.labels(result="failed").inc()
        else:
            if token.cancelled:
                return
            state.progress = state.progress.record_loaded()
            if record.funds_disbursed:
                state.records = [r for r in state.records if r.id != record.id]
                metrics.sync_records_total.labels(result="terminal").inc()
            else:
                state.records = upsert(state.records, record)
                metrics.sync_records_total.labels(result="loaded").inc()

        emit(
            SyncUpdate(
                status=SyncStatus.LOADING,
                records=tuple(state.records),
                progress=state.progress,
            )
        )

    def _finish(
        self,
        run_id: str,
        user_address: str,
        state: _RunState,
        emit: Publisher,
    ) -> SyncOutcome:
        progress = state.progress
        active = sort_newest_first(r for r in merge(state.records) if r.is_active)
        stats = RoleStatistics.from_records(active, user_address)

        status = SyncStatus.COMPLETED
        error = progress.summary if progress.failed else None

        emit(
            SyncUpdate(
                status=status,
                records=tuple(active),
                progress=progress,
                stats=stats,
                error=error,
                last_updated=self._clock(),
                clear_error=error is None,
            )
        )
        metrics.sync_runs_total.labels(status=status.value).inc()

        if progress.failed:
            logger.warning(f"Batch run finished for {user_address}: {progress.summary}")
        else:
            logger.info(f"Batch run finished for {user_address}: {progress.summary}")

        return SyncOutcome(
            run_id=run_id,
            user_address=user_address,
            status=status,
            records=tuple(active),
            progress=progress,
            stats=stats,
            error=error,
        )

    def _cancelled(
        self, run_id: str, user_address: str, state: _RunState
    ) -> SyncOutcome:
        metrics.sync_runs_total.labels(status=SyncStatus.CANCELLED.value).inc()
        logger.info(
            f"Batch run cancelled for {user_address} "
            f"({state.progress.resolved}/{state.progress.total} resolved)"
        )
        if self._token is not None and self._token.cancelled:
            self._status = SyncStatus.CANCELLED
        return SyncOutcome(
            run_id=run_id,
            user_address=user_address,
            status=SyncStatus.CANCELLED,
            records=tuple(state.records),
            progress=state.progress,
        )
