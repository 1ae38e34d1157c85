"""
SSE Stream Manager

Tracks the server-to-client event stream opened by ``GET /mcp`` for each
session. A stream is the send side of an anyio memory object stream; the GET
response drains the receive side through sse-starlette's EventSourceResponse.
At most one stream is registered per session id.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from sse_starlette.sse import ServerSentEvent

logger = logging.getLogger(__name__)

SSE_SEPARATOR = "\n"

StreamHandle = MemoryObjectSendStream[ServerSentEvent]


def format_event(payload: Any) -> ServerSentEvent:
    """Frame ``payload`` as a single ``data: <json>`` event."""
    return ServerSentEvent(data=json.dumps(payload, separators=(",", ":")), sep=SSE_SEPARATOR)


def format_comment(text: str) -> ServerSentEvent:
    return ServerSentEvent(comment=text, sep=SSE_SEPARATOR)


def create_stream(
    max_buffer_size: float = 100,
) -> tuple[StreamHandle, MemoryObjectReceiveStream[ServerSentEvent]]:
    return anyio.create_memory_object_stream[ServerSentEvent](max_buffer_size)


class SSEStreamManager:
    """Registry of open event streams, keyed by session id."""

    def __init__(self) -> None:
        self._streams: dict[str, StreamHandle] = {}
        self._lock = threading.Lock()

    def register(self, session_id: str, handle: StreamHandle) -> None:
        """Attach ``handle`` to the session, closing any stream it replaces."""
        with self._lock:
            previous = self._streams.get(session_id)
            self._streams[session_id] = handle
        if previous is not None and previous is not handle:
            logger.debug(f"Replacing SSE stream for session {session_id}")
            previous.close()
        logger.info(f"SSE stream opened for session: {session_id}")

    def unregister(self, session_id: str, handle: StreamHandle) -> bool:
        """Drop ``handle`` if it is still the registered stream for the session."""
        with self._lock:
            if self._streams.get(session_id) is not handle:
                return False
            del self._streams[session_id]
        logger.info(f"SSE stream closed for session: {session_id}")
        return True

    def send(self, session_id: str, payload: Any) -> bool:
        """Push one ``data:`` frame to the session's stream.

        Returns False when the session has no open stream, the peer is gone or
        the stream buffer is full.
        """
        with self._lock:
            handle = self._streams.get(session_id)
        if handle is None:
            return False

        try:
            handle.send_nowait(format_event(payload))
        except anyio.WouldBlock:
            logger.warning(f"SSE stream for session {session_id} is full, dropping event")
            return False
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # Peer vanished between lookup and write.
            self.unregister(session_id, handle)
            return False
        return True

    def close(self, session_id: str) -> bool:
        """End the session's stream and deregister it."""
        with self._lock:
            handle = self._streams.pop(session_id, None)
        if handle is None:
            return False
        handle.close()
        logger.info(f"SSE stream closed for session: {session_id}")
        return True

    def close_all(self) -> None:
        with self._lock:
            handles = list(self._streams.values())
            self._streams.clear()
        for handle in handles:
            handle.close()
        if handles:
            logger.info(f"Closed {len(handles)} SSE streams")

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._streams

    def __len__(self) -> int:
        with self._lock:
            return len(self._streams)
