"""
Escrow synchronization session.

Owns the published escrow state for one user-facing session: the record
collection, progress, role statistics, run status and the rate limit
notice. Decides when a refresh is due and keeps a single batch run
active at a time.
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from greffier.application.dto.sync_snapshot import (
    SyncOutcome,
    SyncSnapshot,
    SyncUpdate,
)
from greffier.application.use_cases.synchronize_user_escrows import (
    BatchSynchronizer,
)
from greffier.domain.entities.escrow_record import (
    EscrowRecord,
    EscrowRole,
    same_account,
)
from greffier.domain.services.staleness import DEFAULT_MAX_AGE, is_stale
from greffier.domain.value_objects import RateLimitNotice, SyncStatus
from greffier.infrastructure.rate_limiting import RateGate, RateGateInfo

logger = logging.getLogger(__name__)

Subscriber = Callable[[SyncSnapshot], None]


class EscrowSyncSession:
    """
    Observable escrow state with refresh policy.

    Usage:
        session = EscrowSyncSession(synchronizer, rate_gate)
        session.subscribe(render)
        await session.refresh_if_stale(address, WALLET_CONNECT_MAX_AGE)
    """

    def __init__(
        self,
        synchronizer: BatchSynchronizer,
        rate_gate: RateGate,
        default_max_age: float = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize session.

        Args:
            synchronizer: Batch synchronizer
            rate_gate: Shared rate gate (source of rate limit notices)
            default_max_age: Freshness threshold in seconds
            clock: Wall clock, same time base as the synchronizer's
        """
        self.synchronizer = synchronizer
        self.rate_gate = rate_gate
        self.default_max_age = default_max_age
        self._clock = clock
        self._snapshot = SyncSnapshot()
        self._subscribers: List[Subscriber] = []
        self._task: Optional[asyncio.Task] = None
        self._notice_dismissed_until = 0.0

    # ================================================================
    # Observation
    # ================================================================

    @property
    def snapshot(self) -> SyncSnapshot:
        """Current published state (expired notices dropped)."""
        notice = self._snapshot.rate_limit_notice
        if notice is not None and notice.is_expired(self._clock()):
            self._snapshot = replace(self._snapshot, rate_limit_notice=None)
        return self._snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback invoked with every new snapshot.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set(self, snapshot: SyncSnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Snapshot subscriber failed: {e}", exc_info=True)

    def _apply(self, update: SyncUpdate) -> None:
        snapshot = self._snapshot.apply(update)
        notice = self._current_notice()
        if notice is not None:
            snapshot = replace(snapshot, rate_limit_notice=notice)
        self._set(snapshot)

    def _current_notice(self) -> Optional[RateLimitNotice]:
        remaining = self.rate_gate.cooldown_remaining()
        if remaining <= 0:
            return None
        now = self._clock()
        retry_at = now + remaining
        if retry_at <= self._notice_dismissed_until + 1.0:
            return None
        existing = self._snapshot.rate_limit_notice
        if existing is not None and abs(existing.retry_at - retry_at) < 1.0:
            return existing
        return RateLimitNotice(retry_at=retry_at, cooldown_seconds=remaining)

    def records_by_role(
        self, role: EscrowRole, address: Optional[str] = None
    ) -> Tuple[EscrowRecord, ...]:
        """
        Published records in which an account holds role.

        Args:
            role: Buyer, seller or arbiter
            address: Account to match (defaults to the session's user)

        Returns:
            Matching records, newest first
        """
        snapshot = self.snapshot
        address = address or snapshot.user_address
        if not address:
            return ()
        return snapshot.records_by_role(address, role)

    def rate_limit_info(self) -> RateGateInfo:
        """Current rate gate usage."""
        return self.rate_gate.info()

    # ================================================================
    # Refresh policy
    # ================================================================

    @property
    def is_running(self) -> bool:
        """True while a batch run is in flight."""
        return self._task is not None and not self._task.done()

    def is_stale(self, max_age: Optional[float] = None) -> bool:
        """Check whether published data is older than max_age."""
        return is_stale(
            self._snapshot.last_updated,
            self.default_max_age if max_age is None else max_age,
            now=self._clock(),
        )

    async def refresh_if_stale(
        self, user_address: str, max_age: Optional[float] = None
    ) -> bool:
        """
        Run a batch if published data is stale or empty.

        Data belonging to another address always counts as stale.

        Args:
            user_address: Account identifier
            max_age: Freshness threshold (defaults to default_max_age)

        Returns:
            True if a run happened
        """
        if not user_address:
            return False

        if self.is_running:
            logger.debug("Refresh skipped: batch run already in progress")
            return False

        same_user = same_account(self._snapshot.user_address or "", user_address)
        if same_user and self._snapshot.has_data and not self.is_stale(max_age):
            logger.debug("Refresh skipped: data is fresh")
            return False

        if not same_user:
            self._set(SyncSnapshot(user_address=user_address))

        await self._run(user_address)
        return True

    async def force_refresh(self, user_address: str) -> SyncOutcome:
        """
        Discard published data and run a batch unconditionally.

        Args:
            user_address: Account identifier

        Returns:
            SyncOutcome of the new run
        """
        await self.cancel()
        self._set(SyncSnapshot(user_address=user_address))
        return await self._run(user_address)

    async def _run(self, user_address: str) -> SyncOutcome:
        await self.cancel()
        if self._snapshot.user_address != user_address:
            self._set(replace(self._snapshot, user_address=user_address))

        task = asyncio.get_running_loop().create_task(
            self.synchronizer.run(user_address, publish=self._apply),
            name="greffier-batch-run",
        )
        self._task = task
        outcome = await task

        if outcome.status == SyncStatus.CANCELLED and self._task is task:
            self._set(replace(self._snapshot, status=SyncStatus.CANCELLED))
        return outcome

    async def cancel(self) -> None:
        """Cancel the in-flight run and wait for it to wind down."""
        task = self._task
        if task is None or task.done():
            return

        self.synchronizer.cancel()
        await asyncio.shield(task)

    # ================================================================
    # Housekeeping
    # ================================================================

    def clear_data(self) -> None:
        """Drop all published data (e.g. on wallet disconnect)."""
        self.synchronizer.cancel()
        self._task = None
        self._notice_dismissed_until = 0.0
        self._set(SyncSnapshot())
        logger.info("Escrow data cleared")

    def dismiss_rate_limit_notice(self) -> None:
        """Hide the current rate limit notice; the cooldown still applies."""
        notice = self._snapshot.rate_limit_notice
        if notice is None:
            return
        self._notice_dismissed_until = notice.retry_at
        self._set(replace(self._snapshot, rate_limit_notice=None))
