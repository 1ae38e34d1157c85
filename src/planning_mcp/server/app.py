"""Starlette application wiring for the planning MCP server."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from http import HTTPStatus

import uvicorn
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from planning_mcp.server.handlers import ToolDispatcher, register_builtin_handlers, register_tool_dispatcher
from planning_mcp.server.responses import error_response
from planning_mcp.server.router import ProtocolRouter
from planning_mcp.server.session_store import SessionStore
from planning_mcp.server.settings import ServerSettings
from planning_mcp.server.sse import SSEStreamManager
from planning_mcp.server.streamable_http import StreamableHTTPEndpoint
from planning_mcp.server.transport_security import OriginValidator, TransportGuard, check_protocol_version
from planning_mcp.types import INTERNAL_ERROR, TRANSPORT_ERROR
from planning_mcp.utilities.logging import configure_logging

logger = logging.getLogger(__name__)


async def _http_exception_handler(request: Request, exc: HTTPException) -> Response:
    message = "Not found" if exc.status_code == HTTPStatus.NOT_FOUND else exc.detail
    return error_response(exc.status_code, TRANSPORT_ERROR, message, headers=exc.headers)


async def _internal_error_handler(request: Request, exc: Exception) -> Response:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_ERROR, "Internal server error", str(exc))


def create_app(
    settings: ServerSettings | None = None,
    *,
    router: ProtocolRouter | None = None,
    tool_dispatcher: ToolDispatcher | None = None,
    sessions: SessionStore | None = None,
) -> Starlette:
    """
    Build the ASGI app serving the MCP endpoint and the health check.

    The session store, stream manager and router are created once here and
    shared by reference with the endpoint; they are also exposed on
    ``app.state`` for the lifespan and for diagnostics.

    Args:
        settings: Server settings, read from the environment when omitted
        router: A router with extra handlers registered; the built-in
                ``initialize`` and ``ping`` handlers are added to it
        tool_dispatcher: The planning tool catalog behind ``tools/list`` and ``tools/call``
        sessions: A preconfigured session store, mostly useful in tests
    """
    settings = settings or ServerSettings()
    if router is None:
        router = ProtocolRouter()
    register_builtin_handlers(router, settings)
    if tool_dispatcher is not None:
        register_tool_dispatcher(router, tool_dispatcher)

    if sessions is None:
        sessions = SessionStore(
            session_timeout=settings.session_timeout,
            cleanup_interval=settings.cleanup_interval,
        )
    streams = SSEStreamManager()
    endpoint = StreamableHTTPEndpoint(settings, sessions, router, streams)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with sessions.run():
            logger.info(f"MCP endpoint ready at {settings.mcp_path} (methods: {', '.join(router.methods)})")
            try:
                yield
            finally:
                streams.close_all()
                logger.info("MCP HTTP server stopped")

    guard = Middleware(
        TransportGuard,
        steps=[check_protocol_version, OriginValidator(settings.port, settings.allowed_origins)],
        exempt_paths=[settings.health_path],
    )

    app = Starlette(
        debug=settings.debug,
        routes=[
            Route(settings.health_path, endpoint=endpoint.handle_health, methods=["GET"]),
            Route(settings.mcp_path, endpoint=endpoint.handle_post, methods=["POST"]),
            Route(settings.mcp_path, endpoint=endpoint.handle_get, methods=["GET"]),
            Route(settings.mcp_path, endpoint=endpoint.handle_delete, methods=["DELETE"]),
        ],
        middleware=[guard],
        exception_handlers={
            HTTPException: _http_exception_handler,
            Exception: _internal_error_handler,
        },
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessions = sessions
    app.state.streams = streams
    app.state.router = router
    app.state.endpoint = endpoint
    return app


def serve(settings: ServerSettings | None = None, tool_dispatcher: ToolDispatcher | None = None) -> None:
    """Run the server with uvicorn until interrupted."""
    settings = settings or ServerSettings()
    configure_logging(settings.log_level)

    app = create_app(settings, tool_dispatcher=tool_dispatcher)
    logger.info(f"MCP HTTP Server listening on {settings.host}:{settings.port}")
    logger.info(f"MCP endpoint: http://{settings.host}:{settings.port}{settings.mcp_path}")
    logger.info(f"Health check: http://{settings.host}:{settings.port}{settings.health_path}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
