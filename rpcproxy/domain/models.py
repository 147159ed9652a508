from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictStr


class RpcRequest(BaseModel):
    """Inbound JSON-RPC request envelope.

    Only ``method`` and ``params`` are inspected; ``id``, ``jsonrpc`` and any
    other members are kept as extras and never interpreted.
    """

    model_config = ConfigDict(extra="allow")

    method: StrictStr
    params: Any = None

    @property
    def has_params(self) -> bool:
        return "params" in self.model_fields_set


class DispatchOutcome(StrEnum):
    """Terminal state reached by a dispatched request."""

    HIT = "hit"
    MISS = "miss"
    FAIL = "fail"
    METHOD_NOT_ALLOWED = "method_not_allowed"


@dataclass(frozen=True)
class DispatchResult:
    """Everything the HTTP layer needs to write a response."""

    status_code: int
    body: bytes
    media_type: str
    outcome: DispatchOutcome
