import httpx
import pytest

from rpcproxy.domain.exceptions import UpstreamError, UpstreamUnavailable
from rpcproxy.infrastructure.upstream import HttpClientFactory, UpstreamForwarder
from rpcproxy.infrastructure.upstream.http_client_factory import ConnectionLimits

ENDPOINT = "https://rpc-a.example.com/v1/key-a"
REQUEST_BODY = b'{"jsonrpc":"2.0","id":0,"method":"eth_blockNumber","params":[]}'


class TestUpstreamForwarder:
    """Test cases for the blocking upstream POST."""

    def test_forward_returns_body_verbatim(self, upstream):
        forwarder = UpstreamForwarder(upstream.client())

        body = forwarder.forward(ENDPOINT, REQUEST_BODY)

        assert body == b'{"jsonrpc":"2.0","id":0,"result":"0x10"}'

    def test_forward_sends_raw_body_and_json_content_type(self, upstream):
        forwarder = UpstreamForwarder(upstream.client())

        forwarder.forward(ENDPOINT, REQUEST_BODY)

        assert len(upstream.requests) == 1
        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == ENDPOINT
        assert sent.content == REQUEST_BODY
        assert sent.headers["content-type"] == "application/json"

    def test_non_2xx_raises_upstream_error_with_body(self, make_upstream):
        upstream = make_upstream(
            lambda request: httpx.Response(429, content=b'{"error":"rate limited"}')
        )
        forwarder = UpstreamForwarder(upstream.client())

        with pytest.raises(UpstreamError) as exc_info:
            forwarder.forward(ENDPOINT, REQUEST_BODY, request_id="req-1")

        err = exc_info.value
        assert err.status_code == 429
        assert err.body == b'{"error":"rate limited"}'
        assert err.endpoint == ENDPOINT
        assert err.request_id == "req-1"

    @pytest.mark.parametrize(
        "transport_error",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            httpx.RemoteProtocolError("server disconnected"),
            httpx.DecodingError("invalid gzip stream"),
            httpx.TooManyRedirects("exceeded maximum allowed redirects"),
        ],
    )
    def test_request_failure_raises_unavailable(self, make_upstream, transport_error):
        def reply(request):
            raise transport_error

        forwarder = UpstreamForwarder(make_upstream(reply).client())

        with pytest.raises(UpstreamUnavailable) as exc_info:
            forwarder.forward(ENDPOINT, REQUEST_BODY)

        assert exc_info.value.endpoint == ENDPOINT
        assert exc_info.value.__cause__ is transport_error

    def test_closed_forwarder_raises_unavailable(self, upstream):
        forwarder = UpstreamForwarder(upstream.client())
        forwarder.close()

        with pytest.raises(UpstreamUnavailable):
            forwarder.forward(ENDPOINT, REQUEST_BODY)
        assert upstream.requests == []

    def test_closed_client_raises_unavailable(self, upstream):
        client = upstream.client()
        forwarder = UpstreamForwarder(client)
        client.close()

        with pytest.raises(UpstreamUnavailable):
            forwarder.forward(ENDPOINT, REQUEST_BODY)

    def test_close_is_idempotent(self, upstream):
        client = upstream.client()
        forwarder = UpstreamForwarder(client)

        forwarder.close()
        forwarder.close()

        assert forwarder.is_closed
        assert client.is_closed


class TestHttpClientFactory:
    def test_create_client(self, settings):
        client = HttpClientFactory.create_client(settings)
        try:
            assert isinstance(client, httpx.Client)
            assert client.timeout.connect == settings.http_connect_timeout
            assert client.timeout.read == settings.http_read_timeout
            assert client.follow_redirects
        finally:
            HttpClientFactory.close_client(client)

    def test_connection_limits_cover_worker_pool(self, settings):
        settings.pool_max_connections = 2
        settings.worker_pool_size = 16

        limits = ConnectionLimits.from_settings(settings)

        assert limits.max_connections == 16

    def test_close_client_accepts_none(self):
        HttpClientFactory.close_client(None)
