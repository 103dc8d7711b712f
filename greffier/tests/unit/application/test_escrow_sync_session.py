"""
Unit tests for EscrowSyncSession service.

Tests the refresh policy, subscriber notification, cancellation and
the rate limit notice lifecycle.

Usage:
    pytest greffier/tests/unit/application/test_escrow_sync_session.py
"""

import asyncio
from typing import List

import pytest

from greffier.application.dto.sync_snapshot import SyncSnapshot
from greffier.application.services.escrow_sync_session import EscrowSyncSession
from greffier.domain.entities import EscrowRole
from greffier.domain.value_objects import SyncStatus

USER = "0xUser000000000000000000000000000000000001"
OTHER = "0x0the000000000000000000000000000000000009"
SELLER = "0xSe11000000000000000000000000000000000002"
ARBITER = "0xA4b1000000000000000000000000000000000003"


@pytest.fixture
def session(synchronizer, rate_gate, clock) -> EscrowSyncSession:
    """Session on the fake clock with a 60s freshness window."""
    return EscrowSyncSession(
        synchronizer=synchronizer,
        rate_gate=rate_gate,
        default_max_age=60,
        clock=clock,
    )


async def _wait_for_calls(ledger) -> None:
    for _ in range(1000):
        if ledger.record_calls:
            return
        await asyncio.sleep(0)
    raise AssertionError("ledger was never queried")


class TestEscrowSyncSession:
    """Unit tests for EscrowSyncSession."""

    # ================================================================
    # Helper Methods
    # ================================================================

    def _seed(self, ledger, ids, user: str = USER) -> None:
        for record_id in ids:
            ledger.add(record_id, buyer=user, seller=SELLER, arbiter=ARBITER)

    # ================================================================
    # Refresh policy
    # ================================================================

    @pytest.mark.asyncio
    async def test_refresh_when_empty(self, session, ledger, clock):
        """Test first refresh runs and publishes the collection."""
        self._seed(ledger, [1, 2])

        ran = await session.refresh_if_stale(USER)

        snapshot = session.snapshot
        assert ran is True
        assert snapshot.status == SyncStatus.COMPLETED
        assert [r.id for r in snapshot.records] == ["2", "1"]
        assert snapshot.last_updated == clock()
        assert snapshot.user_address == USER
        assert snapshot.loading is False
        assert snapshot.summary == "Loaded 2/2 escrows"

    @pytest.mark.asyncio
    async def test_fresh_data_skips_run(self, session, ledger, clock):
        """Test data younger than max_age is not refreshed."""
        self._seed(ledger, [1])
        await session.refresh_if_stale(USER)
        index_calls = len(ledger.index_calls)

        clock.advance(30)

        assert await session.refresh_if_stale(USER) is False
        assert len(ledger.index_calls) == index_calls

    @pytest.mark.asyncio
    async def test_stale_data_refreshed(self, session, ledger, clock):
        """Test data older than max_age triggers a run."""
        self._seed(ledger, [1])
        await session.refresh_if_stale(USER)

        clock.advance(61)

        assert session.is_stale() is True
        assert await session.refresh_if_stale(USER) is True
        assert session.snapshot.last_updated == clock()

    @pytest.mark.asyncio
    async def test_explicit_max_age(self, session, ledger, clock):
        """Test caller threshold overrides the default."""
        self._seed(ledger, [1])
        await session.refresh_if_stale(USER)

        clock.advance(31)

        assert await session.refresh_if_stale(USER, max_age=120) is False
        assert await session.refresh_if_stale(USER, max_age=30) is True

    @pytest.mark.asyncio
    async def test_empty_address_ignored(self, session, ledger):
        """Test refresh without an address does nothing."""
        assert await session.refresh_if_stale("") is False
        assert ledger.index_calls == []

    @pytest.mark.asyncio
    async def test_empty_collection_always_refreshed(self, session, ledger):
        """Test fresh but empty data still counts as stale."""
        await session.refresh_if_stale(USER)
        assert await session.refresh_if_stale(USER) is True

    @pytest.mark.asyncio
    async def test_different_user_resets(self, session, ledger):
        """Test switching users discards the previous user's data."""
        self._seed(ledger, [1])
        self._seed(ledger, [2], user=OTHER)
        await session.refresh_if_stale(USER)
        snapshots: List[SyncSnapshot] = []
        session.subscribe(snapshots.append)

        assert await session.refresh_if_stale(OTHER) is True

        assert snapshots[0].records == ()
        assert snapshots[0].user_address == OTHER
        assert [r.id for r in session.snapshot.records] == ["2"]

    @pytest.mark.asyncio
    async def test_same_user_any_case(self, session, ledger):
        """Test address comparison ignores case."""
        self._seed(ledger, [1])
        await session.refresh_if_stale(USER)
        assert await session.refresh_if_stale(USER.lower()) is False

    @pytest.mark.asyncio
    async def test_force_refresh(self, session, ledger):
        """Test force refresh runs even with fresh data."""
        self._seed(ledger, [1])
        await session.refresh_if_stale(USER)
        calls = len(ledger.index_calls)

        outcome = await session.force_refresh(USER)

        assert outcome.status == SyncStatus.COMPLETED
        assert outcome.summary == "Loaded 1/1 escrows"
        assert len(ledger.index_calls) == calls + 1

    @pytest.mark.asyncio
    async def test_refresh_skipped_while_running(self, session, ledger):
        """Test only one batch run is active at a time."""
        self._seed(ledger, [1])
        ledger.hanging.add("1")

        first = asyncio.ensure_future(session.refresh_if_stale(USER))
        await _wait_for_calls(ledger)

        assert session.is_running is True
        assert await session.refresh_if_stale(USER) is False
        assert await first is True
        assert session.is_running is False

    # ================================================================
    # Subscribers
    # ================================================================

    @pytest.mark.asyncio
    async def test_subscribers_notified(self, session, ledger):
        """Test every update reaches subscribers until unsubscribed."""
        self._seed(ledger, [1, 2])
        snapshots: List[SyncSnapshot] = []
        unsubscribe = session.subscribe(snapshots.append)

        await session.refresh_if_stale(USER)

        statuses = [s.status for s in snapshots]
        assert SyncStatus.RESOLVING in statuses
        assert SyncStatus.LOADING in statuses
        assert statuses[-1] == SyncStatus.COMPLETED
        assert any(s.loading and s.progress.resolved > 0 for s in snapshots)
        assert not snapshots[-1].is_partially_loaded

        unsubscribe()
        count = len(snapshots)
        await session.force_refresh(USER)
        assert len(snapshots) == count

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self, session, ledger):
        """Test a raising subscriber does not break the run."""
        self._seed(ledger, [1])
        seen: List[SyncSnapshot] = []

        def broken(snapshot: SyncSnapshot) -> None:
            raise RuntimeError("render failed")

        session.subscribe(broken)
        session.subscribe(seen.append)

        await session.refresh_if_stale(USER)

        assert seen[-1].status == SyncStatus.COMPLETED

    # ================================================================
    # Cancellation and clearing
    # ================================================================

    @pytest.mark.asyncio
    async def test_cancel(self, session, ledger):
        """Test cancelling marks the session cancelled."""
        self._seed(ledger, range(3))
        ledger.hanging.update({"0", "1", "2"})

        run = asyncio.ensure_future(session.refresh_if_stale(USER))
        await _wait_for_calls(ledger)
        await session.cancel()

        assert await run is True
        assert session.snapshot.status == SyncStatus.CANCELLED
        assert session.is_running is False

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, session):
        """Test cancel without a run is a no-op."""
        await session.cancel()
        assert session.snapshot.status == SyncStatus.IDLE

    @pytest.mark.asyncio
    async def test_clear_data(self, session, ledger):
        """Test clearing drops everything published."""
        self._seed(ledger, [1])
        await session.refresh_if_stale(USER)

        session.clear_data()

        snapshot = session.snapshot
        assert snapshot == SyncSnapshot()
        assert snapshot.to_dict()["escrows"] == []
        assert session.is_stale() is True

    # ================================================================
    # Role views
    # ================================================================

    @pytest.mark.asyncio
    async def test_records_by_role(self, session, ledger):
        """Test published records filtered by the user's role."""
        ledger.add(1, buyer=USER, seller=SELLER, arbiter=ARBITER)
        ledger.add(2, buyer=OTHER, seller=USER.lower(), arbiter=ARBITER)
        ledger.add(3, buyer=OTHER, seller=SELLER, arbiter=USER)
        ledger.add(4, buyer=USER, seller=SELLER, arbiter=ARBITER)
        await session.refresh_if_stale(USER)

        as_buyer = session.records_by_role(EscrowRole.BUYER)
        assert [r.id for r in as_buyer] == ["4", "1"]
        assert [r.id for r in session.records_by_role(EscrowRole.SELLER)] == ["2"]
        assert [r.id for r in session.records_by_role(EscrowRole.ARBITER)] == ["3"]

    @pytest.mark.asyncio
    async def test_records_by_role_other_address(self, session, ledger):
        """Test an explicit address overrides the session's user."""
        ledger.add(1, buyer=USER, seller=SELLER, arbiter=ARBITER)
        await session.refresh_if_stale(USER)

        as_seller = session.records_by_role(EscrowRole.SELLER, SELLER)
        assert [r.id for r in as_seller] == ["1"]
        assert session.records_by_role(EscrowRole.BUYER, OTHER) == ()

    def test_records_by_role_without_user(self, session):
        """Test an idle session has no role view."""
        assert session.records_by_role(EscrowRole.ARBITER) == ()

    @pytest.mark.asyncio
    async def test_partially_loaded_after_failure(self, session, ledger):
        """Test a run with a failed id publishes partially loaded data."""
        self._seed(ledger, [1, 2])
        ledger.failures["2"] = KeyError("bad payload")

        await session.refresh_if_stale(USER)

        snapshot = session.snapshot
        assert snapshot.status == SyncStatus.COMPLETED
        assert snapshot.is_partially_loaded is True
        assert [r.id for r in snapshot.records] == ["1"]
        assert snapshot.error == "Loaded 1/2 escrows (1 failed)"

    # ================================================================
    # Rate limit notice
    # ================================================================

    def _cooldown_during_fetch(self, ledger, rate_gate) -> None:
        def throttle(record_id: str) -> None:
            rate_gate.trigger_cooldown(30)

        ledger.on_get_record = throttle

    @pytest.mark.asyncio
    async def test_notice_published_and_expires(
        self, session, ledger, rate_gate, clock
    ):
        """Test cooldown surfaces as a notice that expires on its own."""
        self._seed(ledger, [1])
        self._cooldown_during_fetch(ledger, rate_gate)

        await session.refresh_if_stale(USER)

        notice = session.snapshot.rate_limit_notice
        assert notice is not None
        assert notice.seconds_remaining(clock()) == 30
        payload = session.snapshot.to_dict(now=clock())
        assert payload["rateLimitNotice"]["secondsRemaining"] == 30
        assert session.rate_limit_info().cooldown_remaining == 30

        clock.advance(30)

        assert session.snapshot.rate_limit_notice is None

    @pytest.mark.asyncio
    async def test_notice_dismissal(self, session, ledger, rate_gate):
        """Test dismissed notice stays hidden while the cooldown lasts."""
        self._seed(ledger, [1])
        self._cooldown_during_fetch(ledger, rate_gate)
        await session.refresh_if_stale(USER)
        ledger.on_get_record = None

        session.dismiss_rate_limit_notice()

        assert session.snapshot.rate_limit_notice is None
        assert rate_gate.cooldown_remaining() > 0

        snapshots: List[SyncSnapshot] = []
        session.subscribe(snapshots.append)
        await session.force_refresh(USER)

        assert all(s.rate_limit_notice is None for s in snapshots)
