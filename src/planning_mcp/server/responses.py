"""JSON-RPC error responses shared by the transport and its guard steps."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from starlette.responses import JSONResponse

from planning_mcp.types import dump_message, error_envelope


def error_response(
    status_code: int,
    code: int,
    message: str,
    data: Any | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Build an HTTP response carrying a JSON-RPC error body without an id."""
    return JSONResponse(
        dump_message(error_envelope(code, message, data=data)),
        status_code=status_code,
        headers=headers,
    )
