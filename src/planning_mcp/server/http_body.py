"""Size-capped reading of the JSON-RPC message POSTed to the MCP endpoint."""

from __future__ import annotations

from starlette.requests import Request

# Maximum size for incoming messages
DEFAULT_MAX_BODY_BYTES = 4 * 1024 * 1024


class BodyTooLargeError(Exception):
    """The client announced or sent more bytes than the endpoint accepts.

    Attributes:
        limit: the configured cap, in bytes
        received: the declared Content-Length, or the bytes seen when the cap
                  was crossed while streaming
    """

    def __init__(self, limit: int, received: int):
        super().__init__(f"Request body of at least {received} bytes exceeds the {limit} byte limit")
        self.limit = limit
        self.received = received


def declared_length(request: Request) -> int | None:
    """Content-Length as an int, or None when it is missing or not a number."""
    value = request.headers.get("content-length", "").strip()
    return int(value) if value.isdigit() else None


async def read_message_body(request: Request, *, max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES) -> bytes:
    """Collect the request body, giving up once it goes past ``max_body_bytes``.

    An oversized Content-Length is refused before any of the body is read. A
    missing or bogus one is not trusted, the cap is then enforced on the
    chunks as they arrive. ``None`` lifts the cap.
    """
    if max_body_bytes is None:
        return await request.body()
    if max_body_bytes <= 0:
        raise ValueError("max_body_bytes must be positive or None")

    declared = declared_length(request)
    if declared is not None and declared > max_body_bytes:
        raise BodyTooLargeError(max_body_bytes, declared)

    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_body_bytes:
            raise BodyTooLargeError(max_body_bytes, received)
        chunks.append(chunk)
    return b"".join(chunks)
