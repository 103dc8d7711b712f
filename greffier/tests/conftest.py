"""
Test fixtures and configuration.

Provides a fake clock (drives cache expiry, the rate gate and every
sleep), an in-memory ledger, and the wired-up use cases on top of them.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from greffier.application.use_cases.fetch_escrow_record import RecordFetcher
from greffier.application.use_cases.resolve_user_records import (
    MembershipResolver,
)
from greffier.application.use_cases.synchronize_user_escrows import (
    BatchSynchronizer,
)
from greffier.domain.services.i_ledger_query_service import (
    ILedgerQueryService,
    RawEscrow,
)
from greffier.infrastructure.cache.bounded_cache import BoundedCache
from greffier.infrastructure.rate_limiting.rate_gate import RateGate

ALICE = "0xA11cE00000000000000000000000000000000001"
BOB = "0xB0B0000000000000000000000000000000000002"
CAROL = "0xCa201000000000000000000000000000000000003"
DAVE = "0xDa7e000000000000000000000000000000000004"

ONE_ETHER = 10**18


class FakeClock:
    """Manually advanced clock with a matching async sleep."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class FakeLedger(ILedgerQueryService):
    """
    In-memory ledger collaborator.

    Records are stored as the positional tuples the ledger returns.
    Per-id failures raise the configured exception; hanging ids never
    answer (the fetcher's timeout fires).
    """

    def __init__(self):
        self.records: Dict[str, RawEscrow] = {}
        self.user_index: Optional[Dict[str, List[Any]]] = {}
        self.index_error: Optional[Exception] = None
        self.count_error: Optional[Exception] = None
        self.failures: Dict[str, Exception] = {}
        self.hanging: set = set()
        self.on_get_record: Optional[Callable[[str], None]] = None
        self.record_calls: List[str] = []
        self.index_calls: List[str] = []
        self.count_calls = 0
        self.closed = False

    def add(
        self,
        record_id: Any,
        buyer: str = ALICE,
        seller: str = BOB,
        arbiter: str = CAROL,
        amount: Any = ONE_ETHER,
        disbursed: bool = False,
        disputed: bool = False,
        index: bool = True,
    ) -> None:
        """Store an escrow and (optionally) index it for its parties."""
        record_id = str(record_id)
        self.records[record_id] = (
            buyer,
            seller,
            arbiter,
            amount,
            disbursed,
            disputed,
        )
        if index and self.user_index is not None:
            for party in {buyer.lower(), seller.lower(), arbiter.lower()}:
                self.user_index.setdefault(party, []).append(int(record_id))

    async def get_record(self, record_id: str) -> RawEscrow:
        self.record_calls.append(record_id)
        if self.on_get_record is not None:
            self.on_get_record(record_id)
        if record_id in self.hanging:
            await asyncio.Event().wait()
        if record_id in self.failures:
            raise self.failures[record_id]
        if record_id not in self.records:
            raise RuntimeError(
                "execution reverted: missing revert data (code=CALL_EXCEPTION)"
            )
        return self.records[record_id]

    async def get_record_count(self) -> int:
        self.count_calls += 1
        if self.count_error is not None:
            raise self.count_error
        return len(self.records)

    async def get_user_record_ids(self, address: str) -> Sequence[Any]:
        self.index_calls.append(address)
        if self.index_error is not None:
            raise self.index_error
        if self.user_index is None:
            raise NotImplementedError("user index not available")
        return list(self.user_index.get(address.lower(), []))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def ledger() -> FakeLedger:
    """Empty in-memory ledger."""
    return FakeLedger()


@pytest.fixture
def cache(clock: FakeClock) -> BoundedCache:
    """Escrow cache on the fake clock."""
    return BoundedCache(
        max_size=200, expiration_time=300, sweep_interval=120, clock=clock
    )


@pytest.fixture
def rate_gate(clock: FakeClock) -> RateGate:
    """Rate gate with default budget on the fake clock."""
    return RateGate(clock=clock, sleep=clock.sleep)


@pytest.fixture
def fetcher(
    ledger: FakeLedger, cache: BoundedCache, rate_gate: RateGate
) -> RecordFetcher:
    """Record fetcher with a short real timeout for hanging ids."""
    return RecordFetcher(
        ledger=ledger,
        cache=cache,
        rate_gate=rate_gate,
        timeout=0.05,
        cooldown_seconds=30.0,
    )


@pytest.fixture
def resolver(fetcher: RecordFetcher, clock: FakeClock) -> MembershipResolver:
    """Membership resolver sleeping on the fake clock."""
    return MembershipResolver(
        fetcher=fetcher,
        scan_limit=50,
        scan_batch_size=5,
        scan_batch_delay=0.5,
        sleep=clock.sleep,
    )


@pytest.fixture
def synchronizer(
    resolver: MembershipResolver, fetcher: RecordFetcher, clock: FakeClock
) -> BatchSynchronizer:
    """Batch synchronizer sleeping on the fake clock."""
    return BatchSynchronizer(
        resolver=resolver,
        fetcher=fetcher,
        chunk_size=5,
        chunk_delay=0.5,
        max_attempts=3,
        retry_delay=0.5,
        clock=clock,
        sleep=clock.sleep,
    )
