import json
from typing import Callable, Iterator, List, Optional

from unittest.mock import MagicMock, patch
import httpx
import pytest

from rpcproxy.config import Settings
from rpcproxy.logging import shutdown_logging

UPSTREAM_A = "https://rpc-a.example.com/v1/key-a"
UPSTREAM_B = "https://rpc-b.example.com/v1/key-b"


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("rpcproxy.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger
    shutdown_logging()


@pytest.fixture
def settings() -> Settings:
    """Real settings with two upstreams and a short cache TTL."""
    return Settings(
        upstream_urls=[UPSTREAM_A, UPSTREAM_B],
        cache_max_size=100,
        cache_ttl_seconds=1.0,
        worker_pool_size=4,
        shutdown_grace_seconds=1.0,
        shutdown_force_seconds=0.5,
        log_file_path=None,
        error_log_file_path=None,
    )


class RecordingUpstream:
    """httpx.MockTransport handler that records calls and replies from a script."""

    def __init__(self, reply: Callable[[httpx.Request], httpx.Response]):
        self._reply = reply
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._reply(request)

    @property
    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def echo_result(result: str = "0x10") -> Callable[[httpx.Request], httpx.Response]:
    """Reply with a JSON-RPC result, echoing the request id."""

    def reply(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(
            200,
            content=json.dumps(
                {"jsonrpc": "2.0", "id": body.get("id"), "result": result},
                separators=(",", ":"),
            ).encode(),
            headers={"Content-Type": "application/json"},
        )

    return reply


@pytest.fixture
def make_upstream() -> Callable[..., RecordingUpstream]:
    """Build a recording upstream; defaults to answering {"result": "0x10"}."""

    def factory(
        reply: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> RecordingUpstream:
        return RecordingUpstream(reply or echo_result())

    return factory


@pytest.fixture
def upstream(make_upstream) -> RecordingUpstream:
    return make_upstream()
