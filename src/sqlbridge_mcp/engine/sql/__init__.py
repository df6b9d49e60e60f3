"""SQL engine adapters for the session gateway.

This module provides one interface over two structurally different engines:
a pooled network server (PostgreSQL) and an embedded single-file store
(SQLite).

Features:
    - Open + validate with bounded connection establishment
    - Schema introspection normalized to SchemaTable/SchemaColumn
    - Transactional batches with per-statement results
    - ``$N`` placeholder rewrite for SQLite

Usage:
    from sqlbridge_mcp.engine.sql import PostgresBackend, SqliteBackend

    backend = SqliteBackend()
    await backend.open("/data/app.db")
    tables = await backend.describe_schema()
    outcome = await backend.execute_batch(["DELETE FROM sessions"])
    await backend.close()
"""

from .backend import (
    BatchOutcome,
    BatchParams,
    DatabaseBackend,
    DatabaseBackendBase,
    EngineKind,
    Params,
    SchemaColumn,
    SchemaTable,
    StatementResult,
    iter_statements,
)
from .param_converter import ParamConverter, convert_sql_for_engine
from .postgres_backend import PostgresBackend
from .schema import extract_check_values
from .sqlite_backend import SqliteBackend

__all__ = [
    # Core types
    "BatchOutcome",
    "BatchParams",
    "DatabaseBackend",
    "DatabaseBackendBase",
    "EngineKind",
    "Params",
    "SchemaColumn",
    "SchemaTable",
    "StatementResult",
    "iter_statements",
    # Normalization
    "ParamConverter",
    "convert_sql_for_engine",
    "extract_check_values",
    # Backends
    "SqliteBackend",
    "PostgresBackend",
]
