"""Constants module for RPCProxy.

Holds the wire-level constants of the proxy (fixed response bodies, media
types, header names) and the defaults used by the settings and the cache.
"""

from typing import Final, FrozenSet

import orjson

# JSON-RPC "Internal error" code returned for every processing failure
JSONRPC_INTERNAL_ERROR_CODE: Final[int] = -32603

INTERNAL_ERROR_PAYLOAD: Final[dict] = {
    "error": {"code": JSONRPC_INTERNAL_ERROR_CODE, "message": "Internal error"}
}
INTERNAL_ERROR_BODY: Final[bytes] = orjson.dumps(INTERNAL_ERROR_PAYLOAD)

METHOD_NOT_ALLOWED_BODY: Final[bytes] = b"Method Not Allowed"

JSON_MEDIA_TYPE: Final[str] = "application/json"
TEXT_MEDIA_TYPE: Final[str] = "text/plain"

ALLOWED_HTTP_METHOD: Final[str] = "POST"

# Methods routed to the dispatcher so that anything but POST gets a 405
ROUTED_HTTP_METHODS: Final[FrozenSet[str]] = frozenset(
    {"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"}
)

CACHE_KEY_SEPARATOR: Final[str] = "-"

CACHE_STATUS_HEADER: Final[str] = "X-Cache"
REQUEST_ID_HEADER: Final[str] = "X-Request-ID"
RESPONSE_TIME_HEADER: Final[str] = "X-Response-Time-ms"

# Cache defaults
DEFAULT_CACHE_MAX_SIZE: Final[int] = 1000
DEFAULT_CACHE_TTL_SECONDS: Final[float] = 1.0

# Worker pool and shutdown defaults
DEFAULT_WORKER_POOL_SIZE: Final[int] = 10
DEFAULT_SHUTDOWN_GRACE_SECONDS: Final[float] = 10.0
DEFAULT_SHUTDOWN_FORCE_SECONDS: Final[float] = 5.0
DRAIN_POLL_INTERVAL_SECONDS: Final[float] = 0.05

# Log truncation for cache keys and bodies
LOG_KEY_PREVIEW_CHARS: Final[int] = 64
LOG_BODY_PREVIEW_CHARS: Final[int] = 512
