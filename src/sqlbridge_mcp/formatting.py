"""Shared formatting utilities for MCP tool responses.

Markdown format is for humans reading tool output; JSON (plain dicts) is
the default for programmatic access.
"""

from typing import Any

from .engine import BatchOutcome, GatewayError, SchemaTable

# =============================================================================
# Markdown Formatting Utilities
# =============================================================================


def format_schema_markdown(tables: list[SchemaTable]) -> str:
    """Format introspected tables as markdown.

    Args:
        tables: Tables in catalog order

    Returns:
        One section per table with a column table
    """
    if not tables:
        return "No tables found"

    lines = [f"## Tables ({len(tables)})"]
    for table in tables:
        lines.append("")
        lines.append(f"### {table.name}")
        lines.append("")
        lines.append("| Column | Type | Nullable | Primary Key | Allowed Values |")
        lines.append("|---|---|---|---|---|")
        for col in table.columns:
            allowed = ", ".join(col.check_values) if col.check_values else ""
            lines.append(
                f"| {col.name} | {col.data_type} | {'yes' if col.nullable else 'no'} "
                f"| {'yes' if col.is_primary_key else ''} | {allowed} |"
            )

    return "\n".join(lines)


def format_batch_markdown(outcome: BatchOutcome) -> str:
    """Format a batch outcome as markdown.

    Args:
        outcome: Batch outcome

    Returns:
        Summary line followed by one list entry per attempted statement
    """
    if not outcome.results:
        return "No statements executed"

    if outcome.committed:
        header = f"## Batch committed ({len(outcome.results)} statements)"
    else:
        header = f"## Batch rolled back ({len(outcome.results)} statements attempted)"

    lines = [header, ""]
    for index, result in enumerate(outcome.results, 1):
        if result.success:
            lines.append(f"{index}. OK ({result.rows_affected} rows): `{result.statement}`")
        else:
            lines.append(f"{index}. **FAILED**: `{result.statement}`")
            lines.append(f"   - {result.error}")

    if outcome.commit_error:
        lines.append("")
        lines.append(f"**COMMIT FAILED**: {outcome.commit_error}")

    return "\n".join(lines)


# =============================================================================
# Error Formatting Utilities
# =============================================================================


def format_gateway_error(error: GatewayError) -> dict[str, Any]:
    """Format a gateway error as a failure response.

    Args:
        error: The error raised by the registry

    Returns:
        Failure dict with the error message and its taxonomy type
    """
    return {
        "status": "failure",
        "error": str(error),
        "error_type": error.error_type,
    }


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "format_schema_markdown",
    "format_batch_markdown",
    "format_gateway_error",
]
