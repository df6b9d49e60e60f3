"""SQLite database backend implementation.

This module provides the SQLite adapter for the session gateway, using the
stdlib sqlite3 module with asyncio run_in_executor for async operation.

Features:
    - Opens (or creates) the database file; a bad path is a connection error
    - Foreign key enforcement and busy_timeout applied on open
    - PRAGMA configuration via settings
    - sqlite-vec extension so databases with vec0 tables stay usable
    - One handle per session; batches on it are serialized
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path

import sqlite_vec  # type: ignore[import-untyped]

from ..config import GatewaySettings
from ..exceptions import SqlConnectionError, SqlQueryError, SqlSchemaError
from .backend import (
    BatchOutcome,
    BatchParams,
    DatabaseBackendBase,
    EngineKind,
    SchemaTable,
    StatementResult,
    iter_statements,
)
from .param_converter import ParamConverter
from .schema import quote_identifier, sqlite_columns

logger = logging.getLogger(__name__)

TABLES_SQL = (
    "SELECT name FROM sqlite_master "
    "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
)


def _close_orphaned_connection(future: asyncio.Future[sqlite3.Connection]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
    logger.debug("Closed SQLite connection of a cancelled open")


class SqliteBackend(DatabaseBackendBase):
    """SQLite backend using stdlib sqlite3 with async executor.

    The connection is opened in autocommit mode (``isolation_level=None``)
    so that BEGIN/COMMIT/ROLLBACK are issued explicitly around each batch.

    Attributes:
        engine: EngineKind.SQLITE
        DEFAULT_PRAGMAS: Default PRAGMA settings applied on connection

    Example:
        backend = SqliteBackend()
        await backend.open("/data/app.db")
        outcome = await backend.execute_batch(
            ["INSERT INTO users (name) VALUES ($1)"], [["Alice"]]
        )
        await backend.close()
    """

    engine = EngineKind.SQLITE

    DEFAULT_PRAGMAS: dict[str, str | int] = {
        "foreign_keys": "ON",
    }

    def __init__(self, settings: GatewaySettings | None = None) -> None:
        """Initialize SQLite backend."""
        self._settings = settings or GatewaySettings()
        self._conn: sqlite3.Connection | None = None
        self._converter = ParamConverter(EngineKind.SQLITE)
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self, target: str) -> None:
        """Open (or create) the database file.

        Parent directories are not created: a path whose directory does not
        exist fails like any other unusable path.

        Args:
            target: File path, ``:memory:``, or a ``file:`` URI

        Raises:
            SqlConnectionError: If the file cannot be opened
        """
        if self._conn is not None:
            await self.close()

        def _connect() -> sqlite3.Connection:
            path = target.strip()
            uri = path.startswith("file:")
            if not uri and path != ":memory:":
                path = str(Path(path).expanduser())

            conn = sqlite3.connect(
                path, check_same_thread=False, isolation_level=None, uri=uri
            )
            conn.row_factory = sqlite3.Row

            if self._settings.sqlite_load_vec:
                # Must be done before any PRAGMA settings
                try:
                    conn.enable_load_extension(True)
                    sqlite_vec.load(conn)
                    conn.enable_load_extension(False)
                    logger.debug("Loaded sqlite-vec extension")
                except Exception as e:
                    logger.warning(f"Failed to load sqlite-vec extension: {e}")

            pragmas = {
                **self.DEFAULT_PRAGMAS,
                "busy_timeout": self._settings.sqlite_busy_timeout_ms,
                **self._settings.sqlite_pragmas,
            }
            for pragma, value in pragmas.items():
                try:
                    conn.execute(f"PRAGMA {pragma}={value}")
                except sqlite3.Error as e:
                    logger.warning(f"Failed to set PRAGMA {pragma}={value}: {e}")

            logger.debug(f"Connected to SQLite database: {path}")
            return conn

        loop = asyncio.get_event_loop()
        future = loop.run_in_executor(None, _connect)
        try:
            # Shielded so a cancelled open can still close the connection it produced
            self._conn = await asyncio.shield(future)
        except (sqlite3.Error, OSError, ValueError) as e:
            raise SqlConnectionError(f"Failed to open SQLite database {target!r}: {e}") from e
        except asyncio.CancelledError:
            future.add_done_callback(_close_orphaned_connection)
            raise

    async def close(self) -> None:
        """Close SQLite connection.

        Safe to call multiple times or if not connected.
        """
        conn = self._conn
        if conn is None:
            return
        self._conn = None

        async with self._lock:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, conn.close)
        logger.debug("Disconnected from SQLite database")

    async def describe_schema(self) -> list[SchemaTable]:
        """List user tables (excluding ``sqlite_*``) with their columns.

        Raises:
            SqlSchemaError: If the catalog cannot be read
        """
        conn = self._ensure_open()

        def _describe() -> list[SchemaTable]:
            tables = []
            for row in conn.execute(TABLES_SQL).fetchall():
                name = row["name"]
                info = conn.execute(f"PRAGMA table_info({quote_identifier(name)})").fetchall()
                tables.append(SchemaTable(name=name, columns=sqlite_columns(info)))
            return tables

        async with self._lock:
            loop = asyncio.get_event_loop()
            try:
                return await loop.run_in_executor(None, _describe)
            except sqlite3.Error as e:
                raise SqlSchemaError(f"Failed to read SQLite schema: {e}") from e

    async def execute_batch(
        self, statements: Sequence[str], params: BatchParams = None
    ) -> BatchOutcome:
        """Run statements inside one transaction.

        ``$N`` placeholders are rewritten to ``?N`` before execution. On the
        first failure the transaction is rolled back; results recorded for
        earlier statements keep ``success=True``.

        Raises:
            SqlQueryError: If the transaction could not be started
        """
        conn = self._ensure_open()

        def _run() -> BatchOutcome:
            try:
                conn.execute("BEGIN")
            except sqlite3.Error as e:
                raise SqlQueryError(f"Failed to start transaction: {e}") from e

            results: list[StatementResult] = []
            for statement, values in iter_statements(statements, params):
                try:
                    cursor = conn.execute(
                        self._converter.convert(statement),
                        self._converter.convert_params(values),
                    )
                except (sqlite3.Error, ValueError, OverflowError) as e:
                    results.append(
                        StatementResult(
                            statement=statement, rows_affected=0, success=False, error=str(e)
                        )
                    )
                    self._rollback(conn)
                    return BatchOutcome(results=results, committed=False)

                results.append(
                    StatementResult(statement=statement, rows_affected=max(cursor.rowcount, 0))
                )

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                logger.warning(f"SQLite COMMIT failed, rolling back: {e}")
                self._rollback(conn)
                return BatchOutcome(results=results, committed=False, commit_error=str(e))
            return BatchOutcome(results=results, committed=True)

        async with self._lock:
            loop = asyncio.get_event_loop()
            outcome = await loop.run_in_executor(None, _run)

        logger.debug(
            f"SQLite batch finished: {len(outcome.results)} attempted, "
            f"committed={outcome.committed}"
        )
        return outcome

    def _rollback(self, conn: sqlite3.Connection) -> None:
        # Some errors (SQLITE_FULL, SQLITE_IOERR, ...) already end the transaction
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"SQLite ROLLBACK failed: {e}")

    def _ensure_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise SqlConnectionError("SQLite session is not open")
        return self._conn
