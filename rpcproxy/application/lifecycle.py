"""Startup and ordered shutdown of the proxy's shared resources."""

from enum import StrEnum
from typing import Any, Dict

from .cache import ResponseCache
from .thread_pool import WorkerPool
from ..config import Settings
from ..infrastructure.upstream.forwarder import UpstreamForwarder
from ..logging import error, info, warning, LogRecord, LogEvent


class LifecycleState(StrEnum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class LifecycleCoordinator:
    """Owns the transitions ``starting -> running -> draining -> stopped``.

    Shutdown order is fixed: stop admitting work, clear the cache, close the
    upstream transport, then wait (bounded) for in-flight requests.
    """

    def __init__(
        self,
        settings: Settings,
        cache: ResponseCache,
        forwarder: UpstreamForwarder,
        pool: WorkerPool,
    ):
        self._settings = settings
        self._cache = cache
        self._forwarder = forwarder
        self._pool = pool
        self._state = LifecycleState.STARTING

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is LifecycleState.RUNNING

    async def start(self) -> None:
        """Attach the worker pool and emit the ready signal."""
        if self._state is not LifecycleState.STARTING:
            return
        self._pool.start()
        self._state = LifecycleState.RUNNING
        info(
            LogRecord(
                event=LogEvent.PROXY_READY.value,
                message=f"Server started on port {self._settings.port}",
                data={
                    "host": self._settings.host,
                    "port": self._settings.port,
                    "upstreams": len(self._settings.upstream_urls),
                    "worker_pool_size": self._pool.max_workers,
                    "cache_max_size": self._cache.max_size,
                    "cache_ttl_seconds": self._cache.ttl_seconds,
                },
            )
        )

    async def shutdown(self) -> None:
        """Release resources in order; reaches ``stopped`` even if draining times out."""
        if self._state in (LifecycleState.DRAINING, LifecycleState.STOPPED):
            return
        self._state = LifecycleState.DRAINING
        info(
            LogRecord(
                event=LogEvent.LIFECYCLE.value,
                message="Shutdown triggered. Cleaning up...",
                data={"in_flight": self._pool.in_flight},
            )
        )

        try:
            self._pool.close()

            stats = self._cache.get_stats()
            self._cache.invalidate_all()
            info(
                LogRecord(
                    event=LogEvent.LIFECYCLE.value,
                    message="Response cache invalidated",
                    data={"final_cache_stats": stats},
                )
            )

            try:
                self._forwarder.close()
                info(LogRecord(event=LogEvent.LIFECYCLE.value, message="HTTP client closed"))
            except Exception as e:
                error(
                    LogRecord(
                        event=LogEvent.LIFECYCLE.value,
                        message=f"Error closing HTTP client: {e}",
                    ),
                    exc=e,
                )

            await self._drain_pool()
        finally:
            self._state = LifecycleState.STOPPED
            info(
                LogRecord(
                    event=LogEvent.LIFECYCLE.value,
                    message="Cleanup completed",
                    data=self.get_status(),
                )
            )

    async def _drain_pool(self) -> None:
        if await self._pool.drain(self._settings.shutdown_grace_seconds):
            info(LogRecord(event=LogEvent.LIFECYCLE.value, message="Worker pool shut down"))
            return

        warning(
            LogRecord(
                event=LogEvent.LIFECYCLE.value,
                message="Worker pool did not terminate in time. Forcing shutdown...",
                data={
                    "in_flight": self._pool.in_flight,
                    "grace_seconds": self._settings.shutdown_grace_seconds,
                },
            )
        )
        if not await self._pool.drain(self._settings.shutdown_force_seconds):
            warning(
                LogRecord(
                    event=LogEvent.LIFECYCLE.value,
                    message="Worker pool did not terminate after forced shutdown",
                    data={"abandoned": self._pool.in_flight},
                )
            )

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "pool": self._pool.get_pool_stats(),
            "cache_size": len(self._cache),
        }
