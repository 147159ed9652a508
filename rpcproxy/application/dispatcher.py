"""Per-request orchestration: parse, key, cache check, forward, populate.

:meth:`RequestDispatcher.dispatch` is synchronous and blocking; it is meant to
run on a worker thread of :class:`~rpcproxy.application.thread_pool.WorkerPool`.
Every branch ends in one of four terminal outcomes (see
:class:`~rpcproxy.domain.models.DispatchOutcome`).
"""

import json
from typing import Any, Optional

from .cache import ResponseCache
from .cache_keys import derive_cache_key
from .upstream_selector import RoundRobinSelector
from ..constants import (
    ALLOWED_HTTP_METHOD,
    INTERNAL_ERROR_BODY,
    JSON_MEDIA_TYPE,
    LOG_BODY_PREVIEW_CHARS,
    LOG_KEY_PREVIEW_CHARS,
    METHOD_NOT_ALLOWED_BODY,
    TEXT_MEDIA_TYPE,
)
from ..domain.exceptions import (
    MalformedRequest,
    MethodNotAllowed,
    RpcProxyException,
    UpstreamError,
)
from ..domain.models import DispatchOutcome, DispatchResult
from ..infrastructure.upstream.forwarder import UpstreamForwarder
from ..logging import debug, error, info, warning, LogRecord, LogEvent


def _is_jsonrpc_error_payload(body: bytes) -> bool:
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    return isinstance(payload, dict) and payload.get("error") is not None


class RequestDispatcher:
    def __init__(
        self,
        cache: ResponseCache,
        selector: RoundRobinSelector,
        forwarder: UpstreamForwarder,
        cache_upstream_errors: bool = True,
    ):
        self._cache = cache
        self._selector = selector
        self._forwarder = forwarder
        self._cache_upstream_errors = cache_upstream_errors

    def dispatch(
        self, http_method: str, raw_body: bytes, request_id: Optional[str] = None
    ) -> DispatchResult:
        """Handle one inbound request end to end.

        Args:
            http_method: Inbound HTTP method
            raw_body: Inbound body, forwarded unmodified on a cache miss
            request_id: Correlator for log records

        Returns:
            The status, body and media type to write back
        """
        try:
            self._check_method(http_method, request_id)
        except MethodNotAllowed as e:
            debug(
                LogRecord(
                    event=LogEvent.METHOD_NOT_ALLOWED.value,
                    message=e.message,
                    request_id=request_id,
                    data={"http_method": http_method},
                )
            )
            return DispatchResult(
                status_code=405,
                body=METHOD_NOT_ALLOWED_BODY,
                media_type=TEXT_MEDIA_TYPE,
                outcome=DispatchOutcome.METHOD_NOT_ALLOWED,
            )

        try:
            return self._handle_post(raw_body, request_id)
        except RpcProxyException as e:
            return self._fail(e, request_id)

    def _check_method(self, http_method: str, request_id: Optional[str]) -> None:
        if http_method.upper() != ALLOWED_HTTP_METHOD:
            raise MethodNotAllowed(
                f"HTTP method {http_method} is not allowed",
                http_method=http_method,
                request_id=request_id,
            )

    def _handle_post(self, raw_body: bytes, request_id: Optional[str]) -> DispatchResult:
        payload = self._parse(raw_body, request_id)
        cache_key = derive_cache_key(payload)

        cached = self._cache.lookup(cache_key, request_id)
        if cached is not None:
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Cache hit",
                    request_id=request_id,
                    data={"cache_key": cache_key[:LOG_KEY_PREVIEW_CHARS]},
                )
            )
            return self._respond(cached, DispatchOutcome.HIT)

        endpoint = self._selector.next()
        try:
            body = self._forwarder.forward(endpoint, raw_body, request_id)
            is_error_payload = (
                not self._cache_upstream_errors and _is_jsonrpc_error_payload(body)
            )
        except UpstreamError as e:
            # Reachable upstream, error status: the body is passed through untouched
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=e.message,
                    request_id=request_id,
                    data={
                        "endpoint": endpoint,
                        "status_code": e.status_code,
                        "body_preview": e.body[:LOG_BODY_PREVIEW_CHARS],
                    },
                )
            )
            body = e.body
            is_error_payload = True

        if self._cache_upstream_errors or not is_error_payload:
            self._cache.store(cache_key, body, request_id)
        else:
            info(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Upstream error payload not cached",
                    request_id=request_id,
                    data={"endpoint": endpoint},
                )
            )
        return self._respond(body, DispatchOutcome.MISS)

    def _parse(self, raw_body: bytes, request_id: Optional[str]) -> Any:
        try:
            return json.loads(raw_body)
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise MalformedRequest(
                "Request body is not valid JSON", request_id=request_id
            ) from e

    @staticmethod
    def _respond(body: bytes, outcome: DispatchOutcome) -> DispatchResult:
        return DispatchResult(
            status_code=200, body=body, media_type=JSON_MEDIA_TYPE, outcome=outcome
        )

    @staticmethod
    def _fail(exc: RpcProxyException, request_id: Optional[str]) -> DispatchResult:
        """Flatten any processing failure into the generic internal-error envelope."""
        data = {"error_type": type(exc).__name__}
        endpoint = getattr(exc, "endpoint", None)
        if endpoint:
            data["endpoint"] = endpoint
        error(
            LogRecord(
                event=LogEvent.REQUEST_FAILURE.value,
                message=f"Request failed: {exc.message}",
                request_id=request_id,
                data=data,
            ),
            exc=exc,
        )
        return DispatchResult(
            status_code=500,
            body=INTERNAL_ERROR_BODY,
            media_type=JSON_MEDIA_TYPE,
            outcome=DispatchOutcome.FAIL,
        )
