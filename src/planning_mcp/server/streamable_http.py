"""
Streamable HTTP Transport Endpoint

Implements the MCP Streamable HTTP transport on a single path:

- POST carries one JSON-RPC message from the client; requests are answered
  with a JSON envelope (or one SSE frame for streaming methods), notifications
  and responses with 202 Accepted.
- GET opens the long-lived server-to-client event stream of a session.
- DELETE terminates a session.

Sessions are created by a successful ``initialize`` request and identified by
the Mcp-Session-Id header on every later request.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from http import HTTPStatus
from typing import Any

from sse_starlette import EventSourceResponse
from sse_starlette.sse import ServerSentEvent
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from planning_mcp.server.http_body import BodyTooLargeError, read_message_body
from planning_mcp.server.responses import error_response
from planning_mcp.server.router import ProtocolRouter, RequestContext
from planning_mcp.server.session_store import SessionStore
from planning_mcp.server.settings import ServerSettings
from planning_mcp.server.sse import (
    SSE_SEPARATOR,
    SSEStreamManager,
    create_stream,
    format_comment,
    format_event,
)
from planning_mcp.shared.exceptions import InvalidMessageError, SessionNotFoundError
from planning_mcp.types import (
    DEFAULT_PROTOCOL_VERSION,
    INVALID_REQUEST,
    TRANSPORT_ERROR,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCRequest,
    classify,
    dump_message,
)

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_SSE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def session_not_found() -> Response:
    return error_response(HTTPStatus.NOT_FOUND, TRANSPORT_ERROR, "Session not found")


def session_id_required() -> Response:
    return error_response(HTTPStatus.BAD_REQUEST, TRANSPORT_ERROR, "Mcp-Session-Id header required")


def accepts_event_stream(request: Request) -> bool:
    return CONTENT_TYPE_SSE in request.headers.get("accept", "")


class StreamableHTTPEndpoint:
    """
    The HTTP surface of the MCP server.

    Holds no per-request state of its own: sessions live in the SessionStore,
    open event streams in the SSEStreamManager and method handlers in the
    ProtocolRouter, all passed in by the app factory.
    """

    def __init__(
        self,
        settings: ServerSettings,
        sessions: SessionStore,
        router: ProtocolRouter,
        streams: SSEStreamManager,
    ):
        self.settings = settings
        self.sessions = sessions
        self.router = router
        self.streams = streams

    async def handle_post(self, request: Request) -> Response:
        """Handle one client-to-server JSON-RPC message."""
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        session = self.sessions.get(session_id)
        if session_id and session is None:
            return session_not_found()

        try:
            message = await self._read_message(request)
        except BodyTooLargeError as e:
            return error_response(
                HTTPStatus.REQUEST_ENTITY_TOO_LARGE, INVALID_REQUEST, "Request body too large", str(e)
            )
        except InvalidMessageError as e:
            logger.debug(f"Rejected POST body: {e}")
            return error_response(HTTPStatus.BAD_REQUEST, INVALID_REQUEST, "Invalid JSON-RPC request", str(e))

        if not isinstance(message, JSONRPCRequest):
            # Notifications and responses are acknowledged, never dispatched
            return Response(status_code=HTTPStatus.ACCEPTED)

        ctx = RequestContext(
            request_id=message.id,
            method=message.method,
            session_id=session_id,
            session=session,
            protocol_version=getattr(request.state, "mcp_protocol_version", DEFAULT_PROTOCOL_VERSION),
        )
        envelope = await self.router.dispatch(message, ctx)

        headers: dict[str, str] = {}
        if message.method == "initialize" and not isinstance(envelope, JSONRPCErrorResponse):
            params = message.params if isinstance(message.params, dict) else {}
            capabilities = params.get("capabilities")
            new_session_id = self.sessions.create()
            self.sessions.initialize(new_session_id, capabilities if isinstance(capabilities, dict) else None)
            headers["Mcp-Session-Id"] = new_session_id

        body = dump_message(envelope)
        if accepts_event_stream(request) and self.router.is_streaming(message.method):
            return self._single_event_response(body, headers)
        return JSONResponse(body, headers=headers)

    async def handle_get(self, request: Request) -> Response:
        """Open the server-to-client event stream of an existing session."""
        if not accepts_event_stream(request):
            return error_response(
                HTTPStatus.METHOD_NOT_ALLOWED,
                TRANSPORT_ERROR,
                "Method not allowed. GET requires Accept: text/event-stream",
            )

        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            return session_id_required()
        if self.sessions.get(session_id) is None:
            return session_not_found()

        return EventSourceResponse(
            self._event_stream(session_id),
            headers=dict(SSE_HEADERS),
            sep=SSE_SEPARATOR,
        )

    async def handle_delete(self, request: Request) -> Response:
        """Terminate a session and its event stream."""
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            return session_id_required()

        self.streams.close(session_id)
        if not self.sessions.delete(session_id):
            return session_not_found()
        return Response(status_code=HTTPStatus.NO_CONTENT)

    async def handle_health(self, request: Request) -> Response:
        stats = self.sessions.stats()
        return JSONResponse(
            {
                "status": "ok",
                "version": DEFAULT_PROTOCOL_VERSION,
                "server": {"name": self.settings.server_name, "version": self.settings.server_version},
                "sessions": {"total": stats["total"], "initialized": stats["initialized"]},
            }
        )

    def notify(self, session_id: str, message: dict[str, Any]) -> bool:
        """Push a server-to-client message on the session's open GET stream."""
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        return self.streams.send(session_id, message)

    async def _read_message(self, request: Request) -> JSONRPCMessage:
        content_type = request.headers.get("content-type", "")
        if CONTENT_TYPE_JSON not in content_type.lower():
            raise InvalidMessageError("Content-Type must be application/json")

        body = await read_message_body(request, max_body_bytes=self.settings.max_body_bytes)
        try:
            raw_message = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidMessageError(f"Parse error: {e}") from e
        return classify(raw_message)

    async def _event_stream(self, session_id: str) -> AsyncIterator[ServerSentEvent]:
        send_stream, receive_stream = create_stream()
        self.streams.register(session_id, send_stream)
        try:
            yield format_comment("connected")
            async with receive_stream:
                async for event in receive_stream:
                    yield event
        finally:
            # Runs on client disconnect as well as on close()
            self.streams.unregister(session_id, send_stream)
            send_stream.close()

    @staticmethod
    def _single_event_response(body: dict[str, Any], headers: dict[str, str]) -> Response:
        async def single_event() -> AsyncIterator[ServerSentEvent]:
            yield format_event(body)

        return EventSourceResponse(
            single_event(),
            headers={**SSE_HEADERS, **headers},
            sep=SSE_SEPARATOR,
        )
