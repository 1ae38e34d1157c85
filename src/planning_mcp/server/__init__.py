from .app import create_app, serve
from .router import ProtocolRouter, RequestContext, RequestHandler
from .session_store import Session, SessionStore
from .settings import ServerSettings
from .sse import SSEStreamManager
from .streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPEndpoint

__all__ = [
    "MCP_SESSION_ID_HEADER",
    "ProtocolRouter",
    "RequestContext",
    "RequestHandler",
    "SSEStreamManager",
    "ServerSettings",
    "Session",
    "SessionStore",
    "StreamableHTTPEndpoint",
    "create_app",
    "serve",
]
