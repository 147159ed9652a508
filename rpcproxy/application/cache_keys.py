"""Cache key derivation for JSON-RPC requests.

A key is ``method + "-" + canonical(params)``. The canonical form sorts
object keys and uses fixed separators, so two requests whose params differ
only in object key order share a key while array order stays significant.
"""

import json
from typing import Any

from pydantic import ValidationError

from ..constants import CACHE_KEY_SEPARATOR
from ..domain.exceptions import MalformedRequest
from ..domain.models import RpcRequest


def canonical_json(value: Any) -> str:
    """Deterministic JSON text for ``value``."""
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def parse_rpc_request(payload: Any) -> RpcRequest:
    """Validate a decoded JSON value as a JSON-RPC request envelope.

    Raises:
        MalformedRequest: If the payload is not an object or has no string ``method``
    """
    if not isinstance(payload, dict):
        raise MalformedRequest(
            "JSON-RPC request must be an object",
            details={"received_type": type(payload).__name__},
        )
    try:
        return RpcRequest.model_validate(payload)
    except ValidationError as e:
        raise MalformedRequest(
            "JSON-RPC request has no string 'method'",
            details={"errors": e.errors(include_url=False)},
        ) from e


def derive_cache_key(request: Any) -> str:
    """Map a parsed request (envelope or decoded JSON object) to its cache key.

    Absent ``params`` contributes an empty string, so ``{"method": "m"}`` and
    ``{"method": "m", "params": null}`` get distinct keys.

    Raises:
        MalformedRequest: If ``method`` is missing or not a string
    """
    rpc_request = request if isinstance(request, RpcRequest) else parse_rpc_request(request)
    params_text = canonical_json(rpc_request.params) if rpc_request.has_params else ""
    return f"{rpc_request.method}{CACHE_KEY_SEPARATOR}{params_text}"
