from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from planning_mcp.types import ErrorData


class McpError(Exception):
    """Exception a request handler raises to answer with a specific JSON-RPC error.

    The router copies the wrapped ErrorData into the response envelope verbatim,
    instead of reporting a generic internal error.

    Attributes:
        error: The ErrorData object containing error code, message, and optional
               additional data
    """

    error: ErrorData

    def __init__(self, error: ErrorData):
        super().__init__(error.message)
        self.error = error


class SessionNotFoundError(KeyError):
    """Raised when an operation targets a session id the store does not know."""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class InvalidMessageError(ValueError):
    """Raised when a decoded body is not a well-formed JSON-RPC 2.0 message."""
