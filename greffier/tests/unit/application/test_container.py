"""
Unit tests for the dependency injection container.

Usage:
    pytest greffier/tests/unit/application/test_container.py
"""

import pytest

from greffier.config.settings import GreffierConfig
from greffier.di import container as container_module
from greffier.di.container import DIContainer, shutdown_container
from greffier.domain.value_objects import SyncStatus
from greffier.infrastructure.blockchain import LedgerBridgeClient

USER = "0xUser000000000000000000000000000000000001"


@pytest.fixture
def settings() -> GreffierConfig:
    """Settings without artificial delays."""
    return GreffierConfig(
        json_logs=False,
        cache={"max_size": 50},
        sync={"chunk_delay": 0},
        resolver={"scan_batch_delay": 0},
    )


class TestDIContainer:
    """Unit tests for DIContainer."""

    def test_infrastructure_singletons(self, settings, ledger):
        """Test cache, rate gate and ledger are shared."""
        container = DIContainer(settings=settings, ledger=ledger)

        assert container.cache is container.cache
        assert container.rate_gate is container.rate_gate
        assert container.ledger is ledger
        assert container.record_fetcher.cache is container.cache
        assert container.membership_resolver.fetcher is container.record_fetcher

    def test_settings_applied(self, settings, ledger):
        """Test configuration flows into the components."""
        container = DIContainer(settings=settings, ledger=ledger)

        assert container.cache.max_size == 50
        assert container.get_batch_synchronizer().chunk_delay == 0
        assert container.record_fetcher.timeout == settings.fetch.timeout

    def test_sessions_share_rate_gate(self, settings, ledger):
        """Test each session gets its own synchronizer but one budget."""
        container = DIContainer(settings=settings, ledger=ledger)

        first = container.create_session()
        second = container.create_session()

        assert first.synchronizer is not second.synchronizer
        assert first.rate_gate is second.rate_gate
        assert first.synchronizer.fetcher is second.synchronizer.fetcher

    def test_default_ledger_is_bridge_client(self, settings):
        """Test bridge client is built from settings."""
        container = DIContainer(settings=settings)
        assert isinstance(container.ledger, LedgerBridgeClient)
        assert container.ledger.bridge_url == settings.bridge_url

    @pytest.mark.asyncio
    async def test_initialize_and_shutdown(self, settings, ledger):
        """Test lifecycle starts the sweeper and closes the ledger."""
        container = DIContainer(settings=settings, ledger=ledger)

        await container.initialize(configure_logging=False)
        assert container.cache.sweeper_running is True

        await container.shutdown()
        assert container.cache.sweeper_running is False
        assert ledger.closed is True

    @pytest.mark.asyncio
    async def test_session_end_to_end(self, settings, ledger):
        """Test a wired session loads a user's escrows."""
        ledger.add(1, buyer=USER)
        ledger.add(2, seller=USER)
        container = DIContainer(settings=settings, ledger=ledger)
        session = container.create_session()

        assert await session.refresh_if_stale(USER) is True

        snapshot = session.snapshot
        assert snapshot.status == SyncStatus.COMPLETED
        assert [r.id for r in snapshot.records] == ["2", "1"]
        assert snapshot.stats.as_buyer == 1
        assert snapshot.stats.as_seller == 1

    @pytest.mark.asyncio
    async def test_global_container_reset(self, monkeypatch):
        """Test shutdown_container drops the global instance."""
        monkeypatch.setattr(container_module, "_container", None)
        first = container_module.get_container()
        assert container_module.get_container() is first

        await shutdown_container()

        assert container_module._container is None
