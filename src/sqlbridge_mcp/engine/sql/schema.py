"""Schema normalization across backends.

Both adapters feed raw catalog rows through these helpers so that
``describe_schema`` returns the same SchemaTable/SchemaColumn shape
regardless of engine.

CHECK-constraint enumeration is a heuristic, not a SQL parser. The exact
behaviour is:

    1. Search the clause for ``IN\\s*\\(([^)]+)\\)``, case-insensitive.
    2. Split the captured text on commas.
    3. Trim whitespace from each item.
    4. Drop one leading and one trailing single quote from each item.

Clauses without a match leave ``check_values`` unset. Note that the pattern
matches anywhere in the clause (``MIN(...)`` would match too) and that a
comma inside a quoted literal splits the literal.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from .backend import SchemaColumn

CHECK_IN_PATTERN = re.compile(r"IN\s*\(([^)]+)\)", re.IGNORECASE)

# Declared type reported for SQLite columns created without one
SQLITE_DEFAULT_TYPE = "TEXT"


def extract_check_values(check_clause: str | None) -> list[str] | None:
    """Extract the literal list of an ``IN (...)`` CHECK clause.

    Example:
        >>> extract_check_values("(status IN ('active', 'pending'))")
        ['active', 'pending']
    """
    if not check_clause:
        return None

    match = CHECK_IN_PATTERN.search(check_clause)
    if match is None:
        return None

    values = []
    for item in match.group(1).split(","):
        value = item.strip()
        if value.startswith("'"):
            value = value[1:]
        if value.endswith("'"):
            value = value[:-1]
        values.append(value)
    return values


def postgres_columns(rows: Iterable[Mapping[str, Any]]) -> list[SchemaColumn]:
    """Build columns from PostgreSQL information_schema rows.

    Rows must already be in ordinal order and carry ``column_name``,
    ``data_type``, ``is_nullable`` ('YES'/'NO'), ``pk_column`` and
    ``check_clause``. The CHECK-constraint join can produce several rows for
    one column; they collapse into a single column, and the first extractable
    value list wins.
    """
    columns: dict[str, SchemaColumn] = {}
    for row in rows:
        name = row["column_name"]
        check_values = extract_check_values(row.get("check_clause"))

        column = columns.get(name)
        if column is None:
            columns[name] = SchemaColumn(
                name=name,
                data_type=row["data_type"],
                nullable=row["is_nullable"] == "YES",
                is_primary_key=bool(row.get("pk_column")),
                check_values=check_values,
            )
            continue

        column.is_primary_key = column.is_primary_key or bool(row.get("pk_column"))
        if column.check_values is None:
            column.check_values = check_values

    return list(columns.values())


def sqlite_columns(rows: Iterable[Mapping[str, Any]]) -> list[SchemaColumn]:
    """Build columns from ``PRAGMA table_info`` rows.

    SQLite cannot introspect CHECK constraints here, so ``check_values`` is
    always None.
    """
    return [
        SchemaColumn(
            name=row["name"],
            data_type=row["type"] or SQLITE_DEFAULT_TYPE,
            nullable=row["notnull"] == 0,
            is_primary_key=row["pk"] > 0,
        )
        for row in rows
    ]


def quote_identifier(name: str) -> str:
    """Quote an identifier for interpolation into a PRAGMA."""
    return '"' + name.replace('"', '""') + '"'
