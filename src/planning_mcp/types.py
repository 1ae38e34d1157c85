"""JSON-RPC 2.0 message models used by the Streamable HTTP transport."""

from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from planning_mcp.shared.exceptions import InvalidMessageError

JSONRPC_VERSION: Final[str] = "2.0"

LATEST_PROTOCOL_VERSION: Final[str] = "2025-06-18"
DEFAULT_PROTOCOL_VERSION: Final[str] = "2025-03-26"
"""Assumed when a client omits the MCP-Protocol-Version header."""

SUPPORTED_PROTOCOL_VERSIONS: Final[tuple[str, ...]] = ("2024-11-05", "2025-03-26", LATEST_PROTOCOL_VERSION)

# Standard JSON-RPC error codes
INVALID_REQUEST: Final[int] = -32600
METHOD_NOT_FOUND: Final[int] = -32601
INVALID_PARAMS: Final[int] = -32602
INTERNAL_ERROR: Final[int] = -32603

# Transport level failures: forbidden origin, missing or unknown session.
TRANSPORT_ERROR: Final[int] = -32000

RequestId = Annotated[int, Field(strict=True)] | str

Params = dict[str, Any] | list[Any]
"""Named (object) or positional (array) parameters."""


class JSONRPCBase(BaseModel):
    """Base class for all JSON-RPC messages."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION


class JSONRPCRequest(JSONRPCBase):
    """A request that expects a response."""

    id: RequestId
    method: str
    params: Params | None = None


class JSONRPCNotification(JSONRPCBase):
    """A notification which does not expect a response."""

    method: str
    params: Params | None = None


class ErrorData(BaseModel):
    """Error information in a JSON-RPC error response."""

    model_config = ConfigDict(extra="allow")

    code: int
    message: str
    data: Any | None = None


class JSONRPCResultResponse(JSONRPCBase):
    """A successful (non-error) response to a request. Any JSON value is a valid result."""

    id: RequestId
    result: Any


class ServerResultResponse(JSONRPCResultResponse):
    """A successful response sent by this server. MCP results are always objects."""

    result: dict[str, Any]


class JSONRPCErrorResponse(JSONRPCBase):
    """A response to a request that indicates an error occurred."""

    id: RequestId | None = None
    error: ErrorData


JSONRPCResponse = JSONRPCResultResponse | JSONRPCErrorResponse
JSONRPCMessage = JSONRPCRequest | JSONRPCNotification | JSONRPCResponse


def classify(body: Any) -> JSONRPCMessage:
    """Turn a decoded JSON body into a typed JSON-RPC message.

    A message carrying ``method`` and ``id`` is a request, ``method`` alone is a
    notification and ``result``/``error`` without ``method`` is a response.
    Anything else raises InvalidMessageError.
    """
    if not isinstance(body, dict):
        raise InvalidMessageError("JSON-RPC message must be an object")
    if body.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidMessageError("Missing or unsupported jsonrpc version")

    model: type[JSONRPCBase]
    if "method" in body:
        model = JSONRPCRequest if "id" in body else JSONRPCNotification
    elif "error" in body:
        model = JSONRPCErrorResponse
    elif "result" in body:
        model = JSONRPCResultResponse
    else:
        raise InvalidMessageError("Message is neither a request, a notification nor a response")

    try:
        return model.model_validate(body)  # type: ignore[return-value]
    except ValidationError as e:
        raise InvalidMessageError(str(e)) from e


def error_envelope(
    code: int,
    message: str,
    data: Any | None = None,
    request_id: RequestId | None = None,
) -> JSONRPCErrorResponse:
    return JSONRPCErrorResponse(id=request_id, error=ErrorData(code=code, message=message, data=data))


def dump_message(message: JSONRPCMessage) -> dict[str, Any]:
    """Serialize an outgoing message to the dict that goes on the wire."""
    if isinstance(message, JSONRPCErrorResponse):
        return message.model_dump(by_alias=True, mode="json", exclude_none=True)
    return message.model_dump(by_alias=True, mode="json")
