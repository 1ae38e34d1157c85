"""Dispatch of JSON-RPC requests to registered method handlers."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from planning_mcp.server.session_store import Session
from planning_mcp.shared.exceptions import McpError
from planning_mcp.types import (
    DEFAULT_PROTOCOL_VERSION,
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    JSONRPCErrorResponse,
    JSONRPCRequest,
    JSONRPCResponse,
    Params,
    RequestId,
    ServerResultResponse,
    error_envelope,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """What a handler knows about the request it is answering."""

    request_id: RequestId
    method: str
    session_id: str | None = None
    session: Session | None = None
    protocol_version: str = DEFAULT_PROTOCOL_VERSION


HandlerResult = dict[str, Any] | BaseModel
HandlerFunc = Callable[[RequestContext, Params | None], Awaitable[HandlerResult]]


class RequestHandler:
    """Binds a JSON-RPC method name to an async handler function.

    ``streaming`` marks the method as eligible for an SSE reply on POST, for
    long running operations. The transport only uses it when the client also
    accepts ``text/event-stream``.
    """

    def __init__(self, method: str, func: HandlerFunc, *, streaming: bool = False):
        self.method = method
        self.func = func
        self.streaming = streaming

    async def handle(self, ctx: RequestContext, params: Params | None) -> HandlerResult:
        return await self.func(ctx, params)

    def __repr__(self) -> str:
        return f"RequestHandler(method={self.method!r}, streaming={self.streaming})"


class ProtocolRouter:
    """Explicit method name to handler map.

    Handlers are registered once at startup. Dispatch is a dictionary lookup
    and a call; the router keeps no per-request state and takes no lock.
    """

    def __init__(self, handlers: Iterable[RequestHandler] = ()):
        self._handlers: dict[str, RequestHandler] = {}
        for handler in handlers:
            self.add_handler(handler)

    def add_handler(self, handler: RequestHandler) -> None:
        if handler.method in self._handlers:
            logger.warning(f"Replacing handler for method {handler.method}")
        self._handlers[handler.method] = handler

    def request_handler(
        self, method: str, *, streaming: bool = False
    ) -> Callable[[HandlerFunc], HandlerFunc]:
        """Decorator registering ``func`` as the handler for ``method``."""

        def decorator(func: HandlerFunc) -> HandlerFunc:
            self.add_handler(RequestHandler(method, func, streaming=streaming))
            return func

        return decorator

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    def has_method(self, method: str) -> bool:
        return method in self._handlers

    def is_streaming(self, method: str) -> bool:
        handler = self._handlers.get(method)
        return handler is not None and handler.streaming

    async def dispatch(self, request: JSONRPCRequest, ctx: RequestContext | None = None) -> JSONRPCResponse:
        """Run the handler for ``request.method`` and wrap the outcome in a response envelope.

        Errors never escape: an unknown method becomes -32601, an McpError keeps
        its own error data and any other exception becomes -32603 with the
        exception message as ``data``.
        """
        if ctx is None:
            ctx = RequestContext(request_id=request.id, method=request.method)

        handler = self._handlers.get(request.method)
        if handler is None:
            logger.debug(f"No handler for method {request.method}")
            return error_envelope(METHOD_NOT_FOUND, f"Method not found: {request.method}", request_id=request.id)

        try:
            result = await handler.handle(ctx, request.params)
            if isinstance(result, BaseModel):
                result = result.model_dump(by_alias=True, mode="json", exclude_none=True)
            return ServerResultResponse(id=request.id, result=result)
        except McpError as err:
            return JSONRPCErrorResponse(id=request.id, error=err.error)
        except Exception as err:
            logger.exception(f"Error handling method {request.method}")
            return error_envelope(INTERNAL_ERROR, "Internal error", data=str(err), request_id=request.id)
