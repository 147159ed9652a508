"""Bounded worker pool for blocking request dispatch.

Each dispatch (cache check, blocking upstream POST, cache store) runs on a
worker thread. An anyio ``CapacityLimiter`` caps how many run at once; further
requests wait for a free slot. The pool also tracks in-flight work so that
shutdown can stop admitting requests and wait for the running ones.
"""

from functools import partial
from typing import Any, Callable, Dict, Optional, TypeVar

import anyio
from anyio import CapacityLimiter, to_thread

from ..constants import DEFAULT_WORKER_POOL_SIZE, DRAIN_POLL_INTERVAL_SECONDS
from ..domain.exceptions import WorkerPoolClosed
from ..logging import info, LogRecord, LogEvent

# Type variable for generic return types
T = TypeVar("T")


class WorkerPool:
    """Fixed-size pool of worker threads driven from the event loop."""

    def __init__(self, max_workers: int = DEFAULT_WORKER_POOL_SIZE):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._max_workers = max_workers
        self._limiter: Optional[CapacityLimiter] = None
        self._closed = False
        self._in_flight = 0
        self._completed = 0

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def in_flight(self) -> int:
        """Submitted calls that have not finished, waiting ones included."""
        return self._in_flight

    @property
    def is_running(self) -> bool:
        return self._limiter is not None and not self._closed

    def start(self) -> None:
        """Create the limiter. Must be called from inside the event loop."""
        if self._limiter is not None:
            return
        self._limiter = CapacityLimiter(self._max_workers)
        self._closed = False
        info(
            LogRecord(
                event=LogEvent.WORKER_POOL.value,
                message=f"Worker pool started with {self._max_workers} workers",
                data={"max_workers": self._max_workers},
            )
        )

    def close(self) -> None:
        """Stop admitting new work. Running calls are left to finish."""
        self._closed = True

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` on a worker thread once a slot is free.

        The call is not cancellable once submitted; a cancelled caller still
        waits for the worker to return.

        Raises:
            WorkerPoolClosed: If the pool was never started or is shutting down
        """
        if not self.is_running:
            raise WorkerPoolClosed("Worker pool is not accepting work")

        self._in_flight += 1
        try:
            return await to_thread.run_sync(
                partial(func, *args, **kwargs), limiter=self._limiter
            )
        finally:
            self._in_flight -= 1
            self._completed += 1

    async def drain(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for in-flight calls to finish.

        Returns:
            True if nothing is in flight anymore
        """
        with anyio.move_on_after(timeout):
            while self._in_flight:
                await anyio.sleep(DRAIN_POLL_INTERVAL_SECONDS)
        return self._in_flight == 0

    def get_pool_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "max_workers": self._max_workers,
            "running": self.is_running,
            "in_flight": self._in_flight,
            "completed": self._completed,
            "borrowed_tokens": None,
            "utilization": 0.0,
        }
        if self._limiter:
            stats["borrowed_tokens"] = self._limiter.borrowed_tokens
            stats["utilization"] = (
                self._limiter.borrowed_tokens / self._limiter.total_tokens
            )
        return stats
