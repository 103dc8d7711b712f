"""
Dependency Injection Container for Greffier.

Manages the process-wide cache, rate gate and ledger client, and builds
the use cases and sessions that share them.
"""

from typing import Optional

from greffier.application.services.escrow_sync_session import EscrowSyncSession
from greffier.application.use_cases.fetch_escrow_record import RecordFetcher
from greffier.application.use_cases.resolve_user_records import (
    MembershipResolver,
)
from greffier.application.use_cases.synchronize_user_escrows import (
    BatchSynchronizer,
)
from greffier.config.settings import GreffierConfig, get_settings
from greffier.domain.services.i_ledger_query_service import ILedgerQueryService
from greffier.infrastructure.blockchain.ledger_bridge_client import (
    LedgerBridgeClient,
)
from greffier.infrastructure.cache.bounded_cache import BoundedCache
from greffier.infrastructure.monitoring.logger import setup_logging
from greffier.infrastructure.rate_limiting.rate_gate import RateGate


class DIContainer:
    """
    Dependency Injection Container.

    Cache, rate gate and ledger client are singletons: every fetch path
    in the process must share one request budget and one cache.
    Sessions are created per caller.
    """

    def __init__(
        self,
        settings: Optional[GreffierConfig] = None,
        ledger: Optional[ILedgerQueryService] = None,
    ):
        """
        Initialize container with None instances.

        Args:
            settings: Configuration (defaults to get_settings())
            ledger: Ledger collaborator override (defaults to bridge client)
        """
        self._settings = settings

        # Infrastructure
        self._cache: Optional[BoundedCache] = None
        self._rate_gate: Optional[RateGate] = None
        self._ledger: Optional[ILedgerQueryService] = ledger

        # Use Cases
        self._record_fetcher: Optional[RecordFetcher] = None
        self._membership_resolver: Optional[MembershipResolver] = None

    @property
    def settings(self) -> GreffierConfig:
        """Get configuration."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    async def initialize(self, configure_logging: bool = True) -> None:
        """Configure logging and start background maintenance."""
        if configure_logging:
            setup_logging(
                level=self.settings.log_level.upper(),
                json_logs=self.settings.json_logs,
            )
        self.cache.start_sweeper()

    async def shutdown(self) -> None:
        """Stop background tasks and close connections."""
        if self._cache:
            await self._cache.stop_sweeper()

        if self._ledger:
            await self._ledger.close()

    # Infrastructure Getters

    @property
    def cache(self) -> BoundedCache:
        """Get escrow cache instance."""
        if self._cache is None:
            config = self.settings.cache
            self._cache = BoundedCache(
                max_size=config.max_size,
                expiration_time=config.expiration_time,
                sweep_interval=config.sweep_interval,
            )
        return self._cache

    @property
    def rate_gate(self) -> RateGate:
        """Get rate gate instance."""
        if self._rate_gate is None:
            config = self.settings.rate_limit
            self._rate_gate = RateGate(
                short_window_max=config.short_window_max,
                short_window_seconds=config.short_window_seconds,
                long_window_max=config.long_window_max,
                long_window_seconds=config.long_window_seconds,
                poll_interval=config.poll_interval,
            )
        return self._rate_gate

    @property
    def ledger(self) -> ILedgerQueryService:
        """Get ledger query service instance."""
        if self._ledger is None:
            self._ledger = LedgerBridgeClient(
                bridge_url=self.settings.bridge_url,
                timeout=self.settings.request_timeout,
            )
        return self._ledger

    # Use Case Getters

    @property
    def record_fetcher(self) -> RecordFetcher:
        """Get record fetcher instance."""
        if self._record_fetcher is None:
            self._record_fetcher = RecordFetcher(
                ledger=self.ledger,
                cache=self.cache,
                rate_gate=self.rate_gate,
                timeout=self.settings.fetch.timeout,
                cooldown_seconds=self.settings.rate_limit.cooldown_seconds,
                amount_decimals=self.settings.fetch.amount_decimals,
            )
        return self._record_fetcher

    @property
    def membership_resolver(self) -> MembershipResolver:
        """Get membership resolver instance."""
        if self._membership_resolver is None:
            config = self.settings.resolver
            self._membership_resolver = MembershipResolver(
                fetcher=self.record_fetcher,
                scan_limit=config.scan_limit,
                scan_batch_size=config.scan_batch_size,
                scan_batch_delay=config.scan_batch_delay,
            )
        return self._membership_resolver

    def get_batch_synchronizer(self) -> BatchSynchronizer:
        """Get a new batch synchronizer (one per session)."""
        return BatchSynchronizer(
            resolver=self.membership_resolver,
            fetcher=self.record_fetcher,
            chunk_size=self.settings.sync.chunk_size,
            chunk_delay=self.settings.sync.chunk_delay,
            max_attempts=self.settings.fetch.max_attempts,
            retry_delay=self.settings.fetch.retry_delay,
        )

    def create_session(self) -> EscrowSyncSession:
        """Create a sync session bound to the shared infrastructure."""
        return EscrowSyncSession(
            synchronizer=self.get_batch_synchronizer(),
            rate_gate=self.rate_gate,
            default_max_age=self.settings.sync.default_max_age,
        )


# Global container instance
_container: Optional[DIContainer] = None


def get_container() -> DIContainer:
    """Get global DI container instance."""
    global _container
    if _container is None:
        _container = DIContainer()
    return _container


async def initialize_container() -> DIContainer:
    """Initialize and return DI container."""
    container = get_container()
    await container.initialize()
    return container


async def shutdown_container() -> None:
    """Shutdown DI container."""
    global _container
    if _container is None:
        return
    await _container.shutdown()
    _container = None
