import uuid

from fastapi import APIRouter, Request, Response

from ....application.dispatcher import RequestDispatcher
from ....application.thread_pool import WorkerPool
from ....constants import CACHE_STATUS_HEADER, ROUTED_HTTP_METHODS
from ....domain.exceptions import WorkerPoolClosed
from ....domain.models import DispatchOutcome
from ..errors import log_and_return_error_response

router = APIRouter()

_CACHE_STATUS = {DispatchOutcome.HIT: "HIT", DispatchOutcome.MISS: "MISS"}


@router.api_route(
    "/{path:path}",
    methods=sorted(ROUTED_HTTP_METHODS),
    include_in_schema=False,
    response_model=None,
)
async def proxy_rpc(request: Request, path: str) -> Response:
    """Proxy a JSON-RPC call on any path.

    The body is read on the event loop; the blocking dispatch (cache check,
    upstream POST, cache store) then takes one slot of the worker pool.

    Args:
        request (Request): Incoming HTTP request; the path is ignored
        path (str): Matched path, unused

    Returns:
        Response: The cached or upstream body verbatim (200), the generic
            internal-error envelope (500), or 405 for non-POST methods.
    """
    dispatcher: RequestDispatcher = request.app.state.dispatcher
    pool: WorkerPool = request.app.state.worker_pool

    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    request.state.request_id = request_id

    raw_body = await request.body()
    try:
        result = await pool.run(dispatcher.dispatch, request.method, raw_body, request_id)
    except WorkerPoolClosed as e:
        return log_and_return_error_response(request, e.message, caught_exception=e)

    request.state.dispatch_outcome = result.outcome.value
    headers = {}
    if result.outcome in _CACHE_STATUS:
        headers[CACHE_STATUS_HEADER] = _CACHE_STATUS[result.outcome]
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=result.media_type,
        headers=headers,
    )
