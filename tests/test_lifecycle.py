import threading

import anyio
import pytest
from unittest.mock import MagicMock

from rpcproxy.application.cache import ResponseCache
from rpcproxy.application.lifecycle import LifecycleCoordinator, LifecycleState
from rpcproxy.application.thread_pool import WorkerPool
from rpcproxy.infrastructure.upstream import UpstreamForwarder


@pytest.fixture
def components(settings, upstream):
    cache = ResponseCache(max_size=10, ttl_seconds=60)
    forwarder = UpstreamForwarder(upstream.client())
    pool = WorkerPool(max_workers=2)
    lifecycle = LifecycleCoordinator(
        settings=settings, cache=cache, forwarder=forwarder, pool=pool
    )
    return lifecycle, cache, forwarder, pool


class TestLifecycleCoordinator:
    """Test cases for startup and ordered shutdown."""

    def test_initial_state(self, components):
        lifecycle, *_ = components
        assert lifecycle.state is LifecycleState.STARTING
        assert not lifecycle.is_running

    @pytest.mark.anyio
    async def test_start_runs_pool(self, components):
        lifecycle, _, _, pool = components

        await lifecycle.start()

        assert lifecycle.state is LifecycleState.RUNNING
        assert lifecycle.is_running
        assert pool.is_running

    @pytest.mark.anyio
    async def test_shutdown_releases_everything(self, components):
        lifecycle, cache, forwarder, pool = components
        await lifecycle.start()
        cache.store("eth_blockNumber-[]", b"{}")

        await lifecycle.shutdown()

        assert lifecycle.state is LifecycleState.STOPPED
        assert not pool.is_running
        assert len(cache) == 0
        assert forwarder.is_closed

    @pytest.mark.anyio
    async def test_shutdown_is_idempotent(self, components):
        lifecycle, cache, forwarder, pool = components
        await lifecycle.start()

        await lifecycle.shutdown()
        cache.store("late", b"{}")
        await lifecycle.shutdown()

        assert lifecycle.state is LifecycleState.STOPPED
        # The second call did not run the sequence again
        assert len(cache) == 1

    @pytest.mark.anyio
    async def test_start_after_shutdown_is_ignored(self, components):
        lifecycle, _, _, pool = components
        await lifecycle.start()
        await lifecycle.shutdown()

        await lifecycle.start()

        assert lifecycle.state is LifecycleState.STOPPED
        assert not pool.is_running

    @pytest.mark.anyio
    async def test_shutdown_order(self, settings):
        calls = []
        cache = MagicMock(spec=ResponseCache)
        cache.get_stats.return_value = {}
        cache.__len__.return_value = 0
        cache.invalidate_all.side_effect = lambda: calls.append("cache")
        forwarder = MagicMock(spec=UpstreamForwarder)
        forwarder.close.side_effect = lambda: calls.append("forwarder")
        pool = MagicMock(spec=WorkerPool)
        pool.in_flight = 0
        pool.get_pool_stats.return_value = {}
        pool.close.side_effect = lambda: calls.append("pool_close")

        async def drain(timeout):
            calls.append("drain")
            return True

        pool.drain.side_effect = drain
        lifecycle = LifecycleCoordinator(
            settings=settings, cache=cache, forwarder=forwarder, pool=pool
        )
        await lifecycle.start()

        await lifecycle.shutdown()

        assert calls == ["pool_close", "cache", "forwarder", "drain"]

    @pytest.mark.anyio
    async def test_forwarder_close_failure_does_not_stop_shutdown(self, components):
        lifecycle, cache, forwarder, pool = components
        await lifecycle.start()
        forwarder.close = MagicMock(side_effect=RuntimeError("close failed"))

        await lifecycle.shutdown()

        assert lifecycle.state is LifecycleState.STOPPED

    @pytest.mark.anyio
    async def test_stuck_worker_still_reaches_stopped(self, settings, upstream):
        """Drain times out (grace, then forced wait) and shutdown completes anyway."""
        settings.shutdown_grace_seconds = 0.1
        settings.shutdown_force_seconds = 0.1
        cache = ResponseCache(max_size=10, ttl_seconds=60)
        pool = WorkerPool(max_workers=1)
        lifecycle = LifecycleCoordinator(
            settings=settings,
            cache=cache,
            forwarder=UpstreamForwarder(upstream.client()),
            pool=pool,
        )
        await lifecycle.start()
        release = threading.Event()

        async with anyio.create_task_group() as tg:
            tg.start_soon(pool.run, release.wait)
            await anyio.sleep(0.05)

            await lifecycle.shutdown()

            assert lifecycle.state is LifecycleState.STOPPED
            assert pool.in_flight == 1
            release.set()

    @pytest.mark.anyio
    async def test_get_status(self, components):
        lifecycle, cache, *_ = components
        await lifecycle.start()
        cache.store("k", b"v")

        status = lifecycle.get_status()

        assert status["state"] == "running"
        assert status["cache_size"] == 1
        assert status["pool"]["max_workers"] == 2
