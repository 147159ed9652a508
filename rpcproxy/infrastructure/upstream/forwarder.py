"""Forwards raw JSON-RPC bodies to an upstream and returns the raw response."""

import time
from typing import Optional

import httpx

from .http_client_factory import HttpClientFactory
from ...constants import JSON_MEDIA_TYPE, LOG_BODY_PREVIEW_CHARS
from ...domain.exceptions import UpstreamError, UpstreamUnavailable
from ...logging import debug, LogRecord, LogEvent


class UpstreamForwarder:
    """Sends one POST per call through a shared, pooled ``httpx.Client``.

    There is no retry and no failover: a single failure is reported to the
    caller as-is.
    """

    def __init__(self, client: httpx.Client):
        self._client = client
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def forward(
        self, endpoint: str, raw_body: bytes, request_id: Optional[str] = None
    ) -> bytes:
        """POST ``raw_body`` unmodified to ``endpoint``.

        Returns:
            The upstream response body, byte for byte

        Raises:
            UpstreamUnavailable: On any httpx request failure or a closed transport
            UpstreamError: On a non-2xx response; the body is attached
        """
        if self._closed:
            raise UpstreamUnavailable(
                "Upstream transport is closed", endpoint=endpoint, request_id=request_id
            )

        start = time.monotonic()
        try:
            response = self._client.post(
                endpoint,
                content=raw_body,
                headers={"Content-Type": JSON_MEDIA_TYPE},
            )
        except httpx.RequestError as e:
            # Also covers undecodable bodies and redirect loops
            raise UpstreamUnavailable(
                f"Upstream request failed: {type(e).__name__}",
                endpoint=endpoint,
                request_id=request_id,
            ) from e
        except RuntimeError as e:
            # httpx refuses to send on a client closed by another thread
            if not self._client.is_closed:
                raise
            raise UpstreamUnavailable(
                "Upstream transport is closed", endpoint=endpoint, request_id=request_id
            ) from e

        duration_ms = (time.monotonic() - start) * 1000
        body = response.content
        debug(
            LogRecord(
                event=LogEvent.UPSTREAM_REQUEST.value,
                message=f"Upstream responded {response.status_code}",
                request_id=request_id,
                data={
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                    "response_bytes": len(body),
                },
            )
        )

        if not response.is_success:
            raise UpstreamError(
                f"Upstream returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
                endpoint=endpoint,
                request_id=request_id,
                details={"body_preview": body[:LOG_BODY_PREVIEW_CHARS]},
            )
        return body

    def close(self) -> None:
        """Release the connection pool. Later forwards fail as unavailable."""
        if self._closed:
            return
        self._closed = True
        HttpClientFactory.close_client(self._client)
