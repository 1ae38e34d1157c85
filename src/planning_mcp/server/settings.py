"""Server settings for the planning MCP HTTP transport."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from planning_mcp.server.http_body import DEFAULT_MAX_BODY_BYTES
from planning_mcp.utilities.logging import LogLevel


class ServerSettings(BaseSettings):
    """Planning MCP server settings.

    All settings can be configured via environment variables with the prefix PLANNING_MCP_.
    For example, PLANNING_MCP_PORT=3200 will set port=3200.
    """

    model_config = SettingsConfigDict(
        env_prefix="PLANNING_MCP_",
        env_file=".env",
        extra="ignore",
    )

    # Server settings
    debug: bool = False
    log_level: LogLevel = "INFO"

    server_name: str = "planning-tools"
    server_version: str = "0.3.1"
    instructions: str | None = None

    # HTTP settings
    host: str = "127.0.0.1"
    port: int = 3100
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES

    # Session settings, in seconds
    session_timeout: float = Field(default=30 * 60, gt=0)
    cleanup_interval: float = Field(default=5 * 60, gt=0)

    allowed_origins: list[str] = Field(default_factory=list)
    """Origins accepted in addition to http://localhost and http://127.0.0.1.

    Supports exact values and the wildcard port form ``http://example.com:*``.
    """
