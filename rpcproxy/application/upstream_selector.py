"""Round-robin selection over the fixed upstream list."""

import threading
from typing import List, Sequence, Tuple

from ..domain.exceptions import ConfigurationError


class RoundRobinSelector:
    """Cycles through ``endpoints`` in order, one step per :meth:`next` call.

    The counter read-and-increment happens under a lock, so concurrent callers
    never share a counter value and every endpoint is visited exactly once per
    full cycle of calls.
    """

    def __init__(self, endpoints: Sequence[str]):
        if not endpoints:
            raise ConfigurationError(
                "At least one upstream endpoint is required",
                config_key="UPSTREAM_URLS",
            )
        self._endpoints: Tuple[str, ...] = tuple(endpoints)
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def endpoints(self) -> List[str]:
        return list(self._endpoints)

    @property
    def selections(self) -> int:
        """Number of endpoints handed out so far."""
        with self._lock:
            return self._counter

    def next(self) -> str:
        with self._lock:
            index = self._counter
            self._counter += 1
        return self._endpoints[index % len(self._endpoints)]
