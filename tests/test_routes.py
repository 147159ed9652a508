import json

import httpx
import pytest
from fastapi.testclient import TestClient

from rpcproxy.application.lifecycle import LifecycleState
from rpcproxy.interfaces.http.app import create_app

BLOCK_NUMBER = {"jsonrpc": "2.0", "id": 0, "method": "eth_blockNumber", "params": []}
INTERNAL_ERROR = {"error": {"code": -32603, "message": "Internal error"}}


@pytest.fixture
def app(settings, upstream):
    return create_app(settings, http_client=upstream.client())


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class TestProxyRoute:
    """End-to-end tests through the ASGI app with a mocked upstream transport."""

    def test_first_post_is_miss_second_is_hit(self, client, upstream):
        first = client.post("/", json=BLOCK_NUMBER)
        second = client.post("/", json=BLOCK_NUMBER)

        assert first.status_code == 200
        assert first.content == b'{"jsonrpc":"2.0","id":0,"result":"0x10"}'
        assert first.headers["content-type"] == "application/json"
        assert first.headers["x-cache"] == "MISS"
        assert second.status_code == 200
        assert second.content == first.content
        assert second.headers["x-cache"] == "HIT"
        assert len(upstream.requests) == 1

    def test_request_id_and_timing_headers(self, client):
        response = client.post("/", json=BLOCK_NUMBER)

        assert response.headers["x-request-id"]
        assert float(response.headers["x-response-time-ms"]) >= 0

    def test_any_path_is_proxied(self, client, upstream, settings):
        client.post("/some/deep/path", json=BLOCK_NUMBER)

        assert upstream.urls == [settings.upstream_urls[0]]

    def test_round_robin_across_upstreams(self, client, upstream, settings):
        for i in range(4):
            client.post(
                "/", json={"jsonrpc": "2.0", "id": i, "method": "eth_getBalance", "params": [i]}
            )

        a, b = settings.upstream_urls
        assert upstream.urls == [a, b, a, b]

    def test_raw_body_forwarded_unmodified(self, client, upstream):
        raw = b'{"id":5,   "method":"eth_chainId" ,"params":[]}'

        client.post("/", content=raw, headers={"Content-Type": "application/json"})

        assert upstream.requests[0].content == raw

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH", "OPTIONS"])
    def test_non_post_is_405(self, client, upstream, method):
        response = client.request(method, "/", content=json.dumps(BLOCK_NUMBER))

        assert response.status_code == 405
        assert response.text == "Method Not Allowed"
        assert response.headers["content-type"].startswith("text/plain")
        assert "x-cache" not in response.headers
        assert upstream.requests == []

    def test_head_is_405(self, client):
        response = client.head("/")
        assert response.status_code == 405

    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND", "PURGE"])
    def test_unrouted_method_is_plain_405(self, client, upstream, method):
        """Methods the router never dispatches get the same plain-text 405."""
        response = client.request(method, "/some/path")

        assert response.status_code == 405
        assert response.content == b"Method Not Allowed"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["x-request-id"]
        assert upstream.requests == []

    def test_cached_answer_survives_upstream_outage(self, settings, make_upstream):
        def reply(request):
            # Only the first outbound call succeeds
            if len(upstream.requests) > 1:
                raise httpx.ConnectError("connection refused")
            return httpx.Response(200, content=b'{"jsonrpc":"2.0","id":0,"result":"0x10"}')

        upstream = make_upstream(reply)
        app = create_app(settings, http_client=upstream.client())
        with TestClient(app) as client:
            first = client.post("/", json=BLOCK_NUMBER)
            second = client.post("/", json=BLOCK_NUMBER)

        assert second.status_code == 200
        assert second.content == first.content
        assert second.headers["x-cache"] == "HIT"
        assert len(upstream.requests) == 1

    def test_array_order_is_not_a_cache_hit(self, client, upstream):
        client.post("/", json={"id": 1, "method": "m", "params": [1, 2]})
        second = client.post("/", json={"id": 2, "method": "m", "params": [2, 1]})

        assert second.headers["x-cache"] == "MISS"
        assert len(upstream.requests) == 2

    def test_redirect_loop_keeps_request_id(self, settings, make_upstream):
        def reply(request):
            raise httpx.TooManyRedirects("exceeded maximum allowed redirects")

        app = create_app(settings, http_client=make_upstream(reply).client())
        with TestClient(app) as client:
            response = client.post("/", json=BLOCK_NUMBER)

        assert response.status_code == 500
        assert response.json() == INTERNAL_ERROR
        assert response.headers["x-request-id"]

    @pytest.mark.parametrize(
        "raw", [b"", b"not json", b"[1,2]", b'{"params":[]}', b'{"method":42}']
    )
    def test_malformed_body_is_500_envelope(self, client, upstream, raw):
        response = client.post("/", content=raw)

        assert response.status_code == 500
        assert response.json() == INTERNAL_ERROR
        assert upstream.requests == []

    def test_unreachable_upstream_is_500_and_not_cached(self, settings, make_upstream):
        attempts = []

        def reply(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused")

        app = create_app(settings, http_client=make_upstream(reply).client())
        with TestClient(app) as client:
            first = client.post("/", json=BLOCK_NUMBER)
            second = client.post("/", json=BLOCK_NUMBER)

        assert first.status_code == 500
        assert first.json() == INTERNAL_ERROR
        assert second.status_code == 500
        assert len(attempts) == 2

    def test_upstream_error_status_passed_through(self, settings, make_upstream):
        upstream = make_upstream(lambda request: httpx.Response(502, content=b"bad gateway"))
        app = create_app(settings, http_client=upstream.client())
        with TestClient(app) as client:
            response = client.post("/", json=BLOCK_NUMBER)

        assert response.status_code == 200
        assert response.content == b"bad gateway"


class TestAppLifecycle:
    def test_lifespan_starts_and_stops(self, app):
        lifecycle = app.state.lifecycle
        assert lifecycle.state is LifecycleState.STARTING

        with TestClient(app):
            assert lifecycle.state is LifecycleState.RUNNING
            assert app.state.worker_pool.is_running

        assert lifecycle.state is LifecycleState.STOPPED
        assert app.state.forwarder.is_closed
        assert len(app.state.response_cache) == 0

    def test_shared_state_is_built_once(self, app, settings):
        assert app.state.settings is settings
        assert app.state.response_cache.max_size == settings.cache_max_size
        assert app.state.selector.endpoints == settings.upstream_urls
        assert app.state.worker_pool.max_workers == settings.worker_pool_size
