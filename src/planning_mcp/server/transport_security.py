"""Request guard for the MCP endpoint: protocol version and DNS rebinding protection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from planning_mcp.server.responses import error_response
from planning_mcp.types import DEFAULT_PROTOCOL_VERSION, TRANSPORT_ERROR

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION_HEADER = "mcp-protocol-version"

LOCAL_ORIGINS = ("http://localhost", "http://127.0.0.1")

GuardStep = Callable[[Request], Response | None]
"""A validation step: returns None to continue, or the response that ends the request."""


def check_protocol_version(request: Request) -> Response | None:
    """Record the negotiated protocol version for handlers.

    A missing header means a client from before the header existed, so the
    legacy default is assumed. Values are not checked against a whitelist.
    """
    version = request.headers.get(MCP_PROTOCOL_VERSION_HEADER)
    request.state.mcp_protocol_version = version or DEFAULT_PROTOCOL_VERSION
    return None


class OriginValidator:
    """Accepts local origins, optionally on the bound port, plus configured extras."""

    def __init__(self, port: int | None = None, allowed_origins: Sequence[str] = ()):
        allowed = set(LOCAL_ORIGINS)
        if port is not None:
            allowed.update(f"{origin}:{port}" for origin in LOCAL_ORIGINS)
        self.allowed_origins = allowed
        self.wildcard_origins = [origin[:-2] for origin in allowed_origins if origin.endswith(":*")]
        self.allowed_origins.update(origin for origin in allowed_origins if not origin.endswith(":*"))

    def is_allowed(self, origin: str | None) -> bool:
        # Non-browser clients send no Origin at all
        if not origin:
            return True

        if origin in self.allowed_origins:
            return True

        for base_origin in self.wildcard_origins:
            if origin.startswith(base_origin + ":") and origin[len(base_origin) + 1 :].isdigit():
                return True

        return False

    def __call__(self, request: Request) -> Response | None:
        origin = request.headers.get("origin")
        if self.is_allowed(origin):
            return None
        logger.warning(f"Rejected request from origin: {origin}")
        return error_response(403, TRANSPORT_ERROR, "Forbidden origin")


class TransportGuard:
    """ASGI middleware running the guard steps, in order, before the wrapped app.

    Paths listed in ``exempt_paths`` (the liveness check) skip every step.
    """

    def __init__(self, app: ASGIApp, steps: Sequence[GuardStep], exempt_paths: Sequence[str] = ()):
        self.app = app
        self.steps = tuple(steps)
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        logger.debug(
            f"{request.method} {scope['path']} - {request.headers.get(MCP_PROTOCOL_VERSION_HEADER) or 'no version'}"
        )
        for step in self.steps:
            response = step(request)
            if response is not None:
                await response(scope, receive, send)
                return

        await self.app(scope, receive, send)
