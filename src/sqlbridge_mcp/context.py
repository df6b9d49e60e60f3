"""Shared context types for MCP server.

This module contains context types used across server and tools modules,
separated to avoid circular imports.
"""

from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import Context
from mcp.server.session import ServerSession

from .engine import GatewaySettings, SessionRegistry


@dataclass
class AppContext:
    """Application context containing shared resources for MCP tools.

    Created during server startup and made available to all tools via the
    Context parameter. The registry is closed when the server shuts down.
    """

    registry: SessionRegistry
    settings: GatewaySettings


# Type alias for MCP tool context parameter
AppContextType = Context[ServerSession, AppContext]


def resolve_caller_id(ctx: Any) -> str:
    """Caller identity for the current request.

    Uses the client id supplied in the request metadata when the transport
    provides one; otherwise every MCP session is its own caller.

    The client id is chosen by the client and is not authenticated: any
    client that sends the same id shares that caller's database session.
    Deployments that expose the server to untrusted clients must put an
    authenticating transport in front of it that sets the client id.
    """
    client_id = ctx.client_id
    if client_id:
        return str(client_id)
    return f"session-{id(ctx.session):x}"


__all__ = ["AppContext", "AppContextType", "resolve_caller_id"]
