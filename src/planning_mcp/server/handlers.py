"""Built-in MCP method handlers and the hook for the planning tool dispatcher."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from planning_mcp.server.router import ProtocolRouter, RequestContext, RequestHandler
from planning_mcp.server.settings import ServerSettings
from planning_mcp.shared.exceptions import McpError
from planning_mcp.types import (
    INVALID_PARAMS,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    ErrorData,
    Params,
)

logger = logging.getLogger(__name__)


class ToolDispatcher(Protocol):
    """The planning tool catalog, as seen by the transport.

    Implementations talk to the planning REST API; the transport only forwards
    ``tools/list`` and ``tools/call`` to them.
    """

    async def list_tools(self) -> list[dict[str, Any]]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]: ...


def negotiate_protocol_version(requested: Any) -> str:
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION


def create_initialize_handler(settings: ServerSettings) -> RequestHandler:
    async def initialize(ctx: RequestContext, params: Params | None) -> dict[str, Any]:
        # Positional params carry nothing initialize understands
        params = params if isinstance(params, dict) else {}
        protocol_version = negotiate_protocol_version(params.get("protocolVersion"))
        client_info = params.get("clientInfo") or {}
        logger.debug(f"Initialize from {client_info.get('name', 'unknown client')}, protocol {protocol_version}")

        result: dict[str, Any] = {
            "protocolVersion": protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": settings.server_name, "version": settings.server_version},
        }
        if settings.instructions:
            result["instructions"] = settings.instructions
        return result

    return RequestHandler("initialize", initialize)


async def _ping(ctx: RequestContext, params: Params | None) -> dict[str, Any]:
    return {}


def register_builtin_handlers(router: ProtocolRouter, settings: ServerSettings) -> None:
    """Add the ``initialize`` and ``ping`` handlers, unless the router already has its own."""
    for handler in (create_initialize_handler(settings), RequestHandler("ping", _ping)):
        if not router.has_method(handler.method):
            router.add_handler(handler)


def register_tool_dispatcher(router: ProtocolRouter, dispatcher: ToolDispatcher) -> None:
    """Expose ``dispatcher`` through the ``tools/list`` and ``tools/call`` methods."""

    async def list_tools(ctx: RequestContext, params: Params | None) -> dict[str, Any]:
        return {"tools": await dispatcher.list_tools()}

    async def call_tool(ctx: RequestContext, params: Params | None) -> dict[str, Any]:
        if isinstance(params, list):
            raise McpError(ErrorData(code=INVALID_PARAMS, message="tools/call takes named params"))
        name = (params or {}).get("name")
        if not isinstance(name, str) or not name:
            raise McpError(ErrorData(code=INVALID_PARAMS, message="Tool name is required"))
        arguments = (params or {}).get("arguments") or {}
        return await dispatcher.call_tool(name, arguments)

    router.add_handler(RequestHandler("tools/list", list_tools))
    router.add_handler(RequestHandler("tools/call", call_tool))
