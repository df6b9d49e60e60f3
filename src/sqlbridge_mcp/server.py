"""FastMCP server initialization for sqlbridge-mcp.

This module initializes the MCP server and manages the session registry via
the lifespan context. All tool implementations are in the tools module.

Following the official Anthropic Python SDK patterns:
- Lifespan context manager for resource initialization and cleanup
- Context injection for tool access to shared resources
- FastMCP server with stdio transport
"""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from .context import AppContext, AppContextType
from .engine import SessionRegistry, SettingsLoader

logger = logging.getLogger(__name__)

# =============================================================================
# Shared Resources and Lifespan Management
# =============================================================================


@asynccontextmanager
async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage application lifecycle with resource initialization and cleanup.

    This lifespan context manager:
    1. Loads gateway settings (YAML file + SQLBRIDGE_* environment)
    2. Creates the session registry with the default backends
    3. Yields context to make resources available to tools
    4. Closes every open database session on shutdown

    Args:
        _server: FastMCP server instance (unused, required by FastMCP signature)

    Yields:
        AppContext with initialized resources
    """
    logger.info("Initializing MCP server resources...")

    settings = SettingsLoader().load()
    logger.info(
        f"Gateway settings: connect_timeout={settings.connect_timeout:g}s, "
        f"pool_size={settings.pool_size}"
    )

    registry = SessionRegistry.with_default_backends(settings)
    app_context = AppContext(registry=registry, settings=settings)

    try:
        yield app_context
    finally:
        logger.info("Shutting down MCP server...")
        open_sessions = len(registry)
        await registry.close()
        logger.info(f"Closed {open_sessions} database sessions")


# Initialize MCP server with lifespan management
# Following Python MCP naming convention: {service}_mcp
mcp = FastMCP("sqlbridge_mcp", lifespan=app_lifespan)


# =============================================================================
# Server Entry Point
# =============================================================================


def configure_logging() -> None:
    """Configure logging to stderr (MCP requirement).

    Level comes from SQLBRIDGE_LOG_LEVEL (default INFO). Invalid values fall
    back to INFO with a warning.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    log_level_str = os.getenv("SQLBRIDGE_LOG_LEVEL", "INFO").upper()

    if log_level_str not in valid_log_levels:
        print(
            f"Warning: Invalid SQLBRIDGE_LOG_LEVEL '{log_level_str}'. "
            f"Valid levels: {', '.join(sorted(valid_log_levels))}. "
            "Using INFO.",
            file=sys.stderr,
        )
        log_level_str = "INFO"

    logging.basicConfig(
        level=getattr(logging, log_level_str),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    """Entry point for running the MCP server.

    This function is called when the server is run directly via:
    - python -m sqlbridge_mcp
    - sqlbridge-mcp (console script)

    Defaults to stdio transport for MCP protocol communication.
    """
    configure_logging()

    logger.info("Starting MCP server (press Ctrl+C to stop)...")

    try:
        # anyio.run() (used internally by mcp.run()) handles SIGINT gracefully
        # and raises KeyboardInterrupt for clean shutdown
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)

    logger.info("Server shutdown complete")


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "mcp",
    "main",
    "app_lifespan",
    "configure_logging",
    "AppContext",
    "AppContextType",
]
