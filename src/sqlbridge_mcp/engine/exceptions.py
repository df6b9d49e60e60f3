"""Gateway exceptions.

Library code raises these; the MCP tool layer turns them into failure
responses. Per-statement errors inside a batch are NOT raised: they are
recorded on the StatementResult and the batch is rolled back.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    error_type = "gateway_error"


class NotConnectedError(GatewayError):
    """Caller has no active database session."""

    error_type = "not_connected"

    def __init__(self, caller_id: str):
        self.caller_id = caller_id
        super().__init__("Not connected to any database")

    def __repr__(self) -> str:
        return f"NotConnectedError(caller_id={self.caller_id!r})"


class UnsupportedEngineError(GatewayError):
    """Requested engine kind is not one of the supported backends."""

    error_type = "unsupported_engine"

    def __init__(self, engine: object, supported: list[str]):
        self.engine = engine
        self.supported = supported
        super().__init__(
            f"Unsupported database engine: {engine!r}. Supported engines: {', '.join(supported)}"
        )


class SqlError(GatewayError):
    """Base exception for database backend errors."""

    error_type = "sql_error"


class SqlConnectionError(SqlError):
    """Failed to open or validate a database connection."""

    error_type = "connection_error"


class SqlTimeoutError(SqlConnectionError):
    """Connection establishment exceeded its time limit."""

    error_type = "connection_timeout"


class SqlSchemaError(SqlError):
    """Schema introspection failed."""

    error_type = "schema_error"


class SqlQueryError(SqlError):
    """Batch could not be run (connection lost, BEGIN failed, ...)."""

    error_type = "query_error"


__all__ = [
    "GatewayError",
    "NotConnectedError",
    "UnsupportedEngineError",
    "SqlError",
    "SqlConnectionError",
    "SqlTimeoutError",
    "SqlSchemaError",
    "SqlQueryError",
]
