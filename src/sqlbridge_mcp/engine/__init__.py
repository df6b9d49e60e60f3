"""Database session gateway core.

Key Components:

- SessionRegistry: per-caller session lifecycle (connect/replace/disconnect)
- PostgresBackend / SqliteBackend: engine adapters behind one protocol
- SchemaTable / SchemaColumn: normalized introspection shape
- BatchOutcome / StatementResult: transactional batch results
- GatewaySettings / SettingsLoader: configuration
- GatewayError hierarchy: error taxonomy surfaced to callers
"""

from .config import GatewaySettings, SettingsLoader
from .exceptions import (
    GatewayError,
    NotConnectedError,
    SqlConnectionError,
    SqlError,
    SqlQueryError,
    SqlSchemaError,
    SqlTimeoutError,
    UnsupportedEngineError,
)
from .sessions import Session, SessionRegistry
from .sql import (
    BatchOutcome,
    DatabaseBackend,
    EngineKind,
    PostgresBackend,
    SchemaColumn,
    SchemaTable,
    SqliteBackend,
    StatementResult,
)

__all__ = [
    # Registry
    "Session",
    "SessionRegistry",
    # Backends and data model
    "BatchOutcome",
    "DatabaseBackend",
    "EngineKind",
    "PostgresBackend",
    "SchemaColumn",
    "SchemaTable",
    "SqliteBackend",
    "StatementResult",
    # Configuration
    "GatewaySettings",
    "SettingsLoader",
    # Exceptions
    "GatewayError",
    "NotConnectedError",
    "SqlConnectionError",
    "SqlError",
    "SqlQueryError",
    "SqlSchemaError",
    "SqlTimeoutError",
    "UnsupportedEngineError",
]
