"""MCP tool implementations for the database session gateway.

Each tool resolves the caller identity from the request context and
delegates to the SessionRegistry in the lifespan context. Tools never raise:
gateway errors come back as ``{"status": "failure", ...}`` dicts.

Following official Anthropic MCP Python SDK patterns:
- Tool functions decorated with @mcp.tool()
- Flat parameter signatures with Annotated types for validation
- Async functions for all tools
- Clear docstrings (become tool descriptions)
"""

import logging
from typing import Annotated, Any, Literal

from mcp.types import ToolAnnotations
from pydantic import Field

from .context import AppContextType, resolve_caller_id
from .engine import GatewayError
from .formatting import format_batch_markdown, format_gateway_error, format_schema_markdown
from .server import mcp

logger = logging.getLogger(__name__)

CONTEXT_UNAVAILABLE = {
    "status": "failure",
    "error": "Server context not available. Tool requires context to access resources.",
}

# =============================================================================
# MCP Tools (following official SDK decorator pattern)
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="Connect Database",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    )
)
async def connect_database(
    engine: Annotated[
        str,
        Field(
            description="Database engine: 'postgresql' or 'sqlite'",
            min_length=1,
            max_length=32,
        ),
    ],
    target: Annotated[
        str,
        Field(
            description="PostgreSQL connection string, or SQLite file path (':memory:' allowed)",
            min_length=1,
            max_length=4096,
        ),
    ],
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Connect to a database, replacing any existing connection. Returns its table names."""
    if ctx is None:
        return dict(CONTEXT_UNAVAILABLE)

    registry = ctx.request_context.lifespan_context.registry
    caller_id = resolve_caller_id(ctx)

    try:
        tables = await registry.connect(caller_id, engine, target)
    except GatewayError as e:
        logger.info(f"Connect failed for caller {caller_id!r}: {e}")
        return format_gateway_error(e)

    engine_kind = registry.active_engine(caller_id)
    return {
        "status": "success",
        "engine": engine_kind.value if engine_kind else None,
        "tables": tables,
    }


@mcp.tool(
    annotations=ToolAnnotations(
        title="Describe Schema",
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    )
)
async def describe_schema(
    format: Annotated[  # noqa: A002
        Literal["json", "markdown"],
        Field(description="Output format"),
    ] = "json",
    *,
    ctx: AppContextType,
) -> dict[str, Any] | str:
    """Describe tables and columns of the connected database. Optional: format (json|markdown)."""
    if ctx is None:
        return dict(CONTEXT_UNAVAILABLE)

    registry = ctx.request_context.lifespan_context.registry
    caller_id = resolve_caller_id(ctx)

    try:
        tables = await registry.describe_schema(caller_id)
    except GatewayError as e:
        return format_gateway_error(e)

    if format == "markdown":
        return format_schema_markdown(tables)
    return {"status": "success", "tables": [table.to_dict() for table in tables]}


@mcp.tool(
    annotations=ToolAnnotations(
        title="Execute SQL Batch",
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=False,
        openWorldHint=True,
    )
)
async def execute_batch(
    statements: Annotated[
        list[str],
        Field(
            description=(
                "SQL statements run in order inside one transaction. Blank entries are "
                "ignored. The first failing statement rolls back the whole batch."
            ),
            min_length=1,
            max_length=1000,
        ),
    ],
    params: Annotated[
        list[list[Any] | None] | None,
        Field(
            description=(
                "Optional positional parameters per statement, aligned by index. "
                "Reference them as $1, $2, ... on every engine."
            ),
        ),
    ] = None,
    format: Annotated[  # noqa: A002
        Literal["json", "markdown"],
        Field(description="Output format"),
    ] = "json",
    *,
    ctx: AppContextType,
) -> dict[str, Any] | str:
    """Run SQL statements as one all-or-nothing transaction. Required: statements."""
    if ctx is None:
        return dict(CONTEXT_UNAVAILABLE)

    registry = ctx.request_context.lifespan_context.registry
    caller_id = resolve_caller_id(ctx)

    try:
        outcome = await registry.execute_batch(caller_id, statements, params)
    except GatewayError as e:
        return format_gateway_error(e)

    if format == "markdown":
        return format_batch_markdown(outcome)

    response: dict[str, Any] = {
        "status": "success" if outcome.committed else "failure",
        **outcome.to_dict(),
    }
    if not outcome.committed:
        response["error"] = outcome.error or "Transaction was not committed"
    return response


@mcp.tool(
    annotations=ToolAnnotations(
        title="Get Connection Status",
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def get_connection_status(*, ctx: AppContextType) -> dict[str, Any]:
    """Report which database engine the caller is connected to, if any."""
    if ctx is None:
        return dict(CONTEXT_UNAVAILABLE)

    registry = ctx.request_context.lifespan_context.registry
    engine_kind = registry.active_engine(resolve_caller_id(ctx))
    return {
        "status": "success",
        "connected": engine_kind is not None,
        "engine": engine_kind.value if engine_kind else None,
    }


@mcp.tool(
    annotations=ToolAnnotations(
        title="Disconnect Database",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def disconnect_database(*, ctx: AppContextType) -> dict[str, Any]:
    """Close the caller's database connection. Safe to call when not connected."""
    if ctx is None:
        return dict(CONTEXT_UNAVAILABLE)

    registry = ctx.request_context.lifespan_context.registry
    disconnected = await registry.disconnect(resolve_caller_id(ctx))
    return {"status": "success", "disconnected": disconnected}


__all__ = [
    "connect_database",
    "describe_schema",
    "execute_batch",
    "get_connection_status",
    "disconnect_database",
]
