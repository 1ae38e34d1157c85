"""MCP Streamable HTTP server exposing the planning API to AI-agent clients.

## Example - serve the planning tools

```python
from planning_mcp.server import ServerSettings, serve

serve(ServerSettings(port=3100), tool_dispatcher=PlanningTools())
```

`PlanningTools` is any object with async ``list_tools()`` and
``call_tool(name, arguments)`` methods.
"""

from .server import ServerSettings, create_app, serve
from .shared.exceptions import McpError, SessionNotFoundError
from .types import ErrorData

__all__ = [
    "ErrorData",
    "McpError",
    "ServerSettings",
    "SessionNotFoundError",
    "create_app",
    "serve",
]
