"""
Tests for connection lifecycle management
"""

import asyncio
import random

import pytest

from querypilot.infra.connections import ConnectionManager
from querypilot.utils.errors import DatabaseConnectionError
from tests.conftest import FakeConnectionProvider


@pytest.fixture
def provider():
    return FakeConnectionProvider()


@pytest.fixture
def manager(provider):
    return ConnectionManager(provider, max_connections_per_tenant=2)


class TestAcquireRelease:
    @pytest.mark.asyncio
    async def test_balanced_counters(self, manager, provider):
        handle = await manager.acquire("clinic_a")
        assert manager.outstanding == 1
        await manager.release(handle)
        assert manager.outstanding == 0
        assert provider.opened == provider.closed == 1

    @pytest.mark.asyncio
    async def test_release_none_is_noop(self, manager):
        await manager.release(None)
        assert manager.released == 0

    @pytest.mark.asyncio
    async def test_double_release_closes_once(self, manager, provider):
        handle = await manager.acquire("clinic_a")
        await manager.release(handle)
        await manager.release(handle)
        assert provider.closed == 1
        assert manager.released == 1

    @pytest.mark.asyncio
    async def test_failing_close_still_releases(self):
        provider = FakeConnectionProvider(fail_close=True)
        manager = ConnectionManager(provider, max_connections_per_tenant=1)
        handle = await manager.acquire("clinic_a")
        await manager.release(handle)
        assert handle.released
        assert manager.outstanding == 0
        # The slot was returned, so a second acquire does not block
        second = await asyncio.wait_for(manager.acquire("clinic_a"), timeout=1)
        await manager.release(second)

    @pytest.mark.asyncio
    async def test_released_handle_rejects_execute(self, manager):
        handle = await manager.acquire("clinic_a")
        await manager.release(handle)
        with pytest.raises(DatabaseConnectionError):
            await handle.execute("SELECT 1;")


class TestAcquireFailure:
    @pytest.mark.asyncio
    async def test_open_failure_wrapped(self):
        manager = ConnectionManager(FakeConnectionProvider(fail_open=True), max_connections_per_tenant=1)
        with pytest.raises(DatabaseConnectionError) as excinfo:
            await manager.acquire("clinic_a")
        assert "connection refused" in excinfo.value.message
        assert manager.acquired == 0

    @pytest.mark.asyncio
    async def test_failed_open_frees_slot(self):
        provider = FakeConnectionProvider(fail_open=True)
        manager = ConnectionManager(provider, max_connections_per_tenant=1)
        for _ in range(3):
            with pytest.raises(DatabaseConnectionError):
                await asyncio.wait_for(manager.acquire("clinic_a"), timeout=1)
        provider.fail_open = False
        handle = await asyncio.wait_for(manager.acquire("clinic_a"), timeout=1)
        await manager.release(handle)

    @pytest.mark.asyncio
    async def test_cancelled_open_frees_slot(self):
        provider = FakeConnectionProvider(open_delay=1.0)
        manager = ConnectionManager(provider, max_connections_per_tenant=1)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(manager.acquire("clinic_a"), timeout=0.05)
        assert not manager._semaphore("clinic_a").locked()
        assert manager.outstanding == 0

        provider.open_delay = 0.0
        handle = await asyncio.wait_for(manager.acquire("clinic_a"), timeout=1)
        await manager.release(handle)
        assert manager.outstanding == 0


class TestLease:
    @pytest.mark.asyncio
    async def test_released_on_exception(self, manager, provider):
        with pytest.raises(ValueError):
            async with manager.lease("clinic_a") as handle:
                await handle.execute("SELECT 1;")
                raise ValueError("boom")
        assert manager.outstanding == 0
        assert provider.closed == 1

    @pytest.mark.asyncio
    async def test_concurrency_bound_per_tenant(self, manager):
        first = await manager.acquire("clinic_a")
        second = await manager.acquire("clinic_a")
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(manager.acquire("clinic_a"), timeout=0.05)

        # Other tenants have their own slots
        other = await asyncio.wait_for(manager.acquire("clinic_b"), timeout=1)
        for handle in (first, second, other):
            await manager.release(handle)
        assert manager.outstanding == 0

    @pytest.mark.asyncio
    async def test_random_interleaving_balances(self):
        """Every acquire is matched by one effective release under mixed failures."""
        rng = random.Random(7)
        provider = FakeConnectionProvider(fail_close=True)
        manager = ConnectionManager(provider, max_connections_per_tenant=3)

        async def worker(tenant_id: str):
            for _ in range(20):
                try:
                    async with manager.lease(tenant_id) as handle:
                        await asyncio.sleep(rng.random() / 1000)
                        if rng.random() < 0.3:
                            raise RuntimeError("query failed")
                        await handle.execute("SELECT 1;")
                except RuntimeError:
                    pass

        await asyncio.gather(*(worker(f"tenant_{i % 3}") for i in range(9)))
        assert manager.acquired == manager.released == 180
        assert provider.opened == provider.closed == 180
