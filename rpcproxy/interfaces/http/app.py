import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...config import Settings
from ...constants import METHOD_NOT_ALLOWED_BODY, TEXT_MEDIA_TYPE
from ...logging import init_logging
from ...application.cache import ResponseCache
from ...application.dispatcher import RequestDispatcher
from ...application.lifecycle import LifecycleCoordinator
from ...application.thread_pool import WorkerPool
from ...application.upstream_selector import RoundRobinSelector
from ...domain.models import DispatchOutcome
from ...infrastructure.upstream.forwarder import UpstreamForwarder
from ...infrastructure.upstream.http_client_factory import HttpClientFactory
from .middleware import logging_middleware
from .errors import log_and_return_error_response
from .routes.rpc import router as rpc_router


def create_app(
    settings: Settings, http_client: Optional[httpx.Client] = None
) -> FastAPI:
    """Creates and configures the FastAPI application instance.

    Builds the shared, explicitly owned proxy state once (cache, round-robin
    selector, forwarder, worker pool, dispatcher, lifecycle coordinator) and
    stores it on ``app.state``. The lifespan starts the coordinator and runs
    its ordered shutdown.

    Args:
        settings: Configuration settings object
        http_client: Optional pre-built upstream client; built from settings when omitted

    Returns:
        Fully configured FastAPI application instance
    """
    init_logging(settings)

    cache = ResponseCache(
        max_size=settings.cache_max_size, ttl_seconds=settings.cache_ttl_seconds
    )
    selector = RoundRobinSelector(settings.upstream_urls)
    forwarder = UpstreamForwarder(
        http_client or HttpClientFactory.create_client(settings)
    )
    worker_pool = WorkerPool(max_workers=settings.worker_pool_size)
    dispatcher = RequestDispatcher(
        cache=cache,
        selector=selector,
        forwarder=forwarder,
        cache_upstream_errors=settings.cache_upstream_errors,
    )
    lifecycle = LifecycleCoordinator(
        settings=settings, cache=cache, forwarder=forwarder, pool=worker_pool
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.info("Starting RPC proxy")
        await app.state.lifecycle.start()
        try:
            yield
        finally:
            logging.info("Initiating application shutdown")
            await app.state.lifecycle.shutdown()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        description="Caching, round-robin reverse proxy for JSON-RPC upstreams.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.response_cache = cache
    app.state.selector = selector
    app.state.forwarder = forwarder
    app.state.worker_pool = worker_pool
    app.state.dispatcher = dispatcher
    app.state.lifecycle = lifecycle

    app.middleware("http")(logging_middleware)

    app.include_router(rpc_router, tags=["JSON-RPC"])

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Methods outside the routed set are rejected by the router itself
        if exc.status_code == 405:
            request.state.dispatch_outcome = DispatchOutcome.METHOD_NOT_ALLOWED.value
            return Response(
                content=METHOD_NOT_ALLOWED_BODY,
                status_code=405,
                media_type=TEXT_MEDIA_TYPE,
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return log_and_return_error_response(
            request,
            "An unexpected internal server error occurred.",
            caught_exception=exc,
        )

    return app
