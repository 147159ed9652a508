import time
from typing import Optional

from fastapi import Request
from fastapi.responses import Response

from ...constants import INTERNAL_ERROR_BODY, JSON_MEDIA_TYPE
from ...domain.models import DispatchOutcome
from ...logging import error, LogRecord, LogEvent


def build_internal_error_response() -> Response:
    """The one response every processing failure collapses into."""
    return Response(
        content=INTERNAL_ERROR_BODY, status_code=500, media_type=JSON_MEDIA_TYPE
    )


def log_and_return_error_response(
    request: Request,
    error_message: str,
    caught_exception: Optional[BaseException] = None,
) -> Response:
    """Log the real cause with request context, answer with the generic envelope."""
    request_id = getattr(request.state, "request_id", "unknown")
    start_time_mono = getattr(request.state, "start_time_monotonic", time.monotonic())
    duration_ms = (time.monotonic() - start_time_mono) * 1000
    request.state.dispatch_outcome = DispatchOutcome.FAIL.value

    error(
        LogRecord(
            event=LogEvent.REQUEST_FAILURE.value,
            message=f"Request failed: {error_message}",
            request_id=request_id,
            data={
                "status_code": 500,
                "duration_ms": duration_ms,
                "http_method": request.method,
                "client_ip": request.client.host if request.client else "unknown",
            },
        ),
        exc=caught_exception,
    )
    return build_internal_error_response()
