"""Common FastAPI middleware utilities for the RPCProxy HTTP interface."""

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request
from fastapi.responses import Response

from ...constants import REQUEST_ID_HEADER, RESPONSE_TIME_HEADER
from ...logging import info, LogRecord, LogEvent


async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Attach request ID and timing headers, and log the completed request.

    This middleware:
    1. Generates a per-request UUID (``X-Request-ID``)
    2. Measures wall-clock latency
    3. Stores identifiers on ``request.state`` for downstream handlers
    """
    if not hasattr(request.state, "request_id"):
        request.state.request_id = str(uuid.uuid4())
    if not hasattr(request.state, "start_time_monotonic"):
        request.state.start_time_monotonic = time.monotonic()

    response = await call_next(request)

    duration_ms = (time.monotonic() - request.state.start_time_monotonic) * 1000
    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    response.headers[RESPONSE_TIME_HEADER] = str(duration_ms)

    info(
        LogRecord(
            event=LogEvent.REQUEST_COMPLETED.value,
            message=f"{request.method} {request.url.path} -> {response.status_code}",
            request_id=request.state.request_id,
            data={
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "outcome": getattr(request.state, "dispatch_outcome", None),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
    )
    return response
