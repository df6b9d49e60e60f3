"""Per-caller database session registry.

The registry maps each caller identity to at most one live session. Every
operation for a caller runs under that caller's ``asyncio.Lock``, which makes
close-then-replace on reconnect atomic and serializes batches for one
caller. Different callers never wait on each other.

Lifecycle:
    registry = SessionRegistry.with_default_backends(settings)  # process start
    tables = await registry.connect("user-1", "sqlite", "/data/app.db")
    outcome = await registry.execute_batch("user-1", ["DELETE FROM t"])
    await registry.close()                                        # process shutdown
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial

from .config import GatewaySettings
from .exceptions import (
    GatewayError,
    NotConnectedError,
    SqlConnectionError,
    SqlQueryError,
    SqlSchemaError,
    UnsupportedEngineError,
)
from .sql import (
    BatchOutcome,
    BatchParams,
    DatabaseBackend,
    EngineKind,
    PostgresBackend,
    SchemaTable,
    SqliteBackend,
)

logger = logging.getLogger(__name__)

BackendFactory = Callable[[], DatabaseBackend]


@dataclass
class Session:
    """A caller's live database handle.

    The backend is exclusively owned by the session; only the registry
    closes it.
    """

    caller_id: str
    engine: EngineKind
    backend: DatabaseBackend


class SessionRegistry:
    """Process-wide mapping from caller identity to one active session.

    The registry is generic over backend factories: it only relies on the
    open/close/describe_schema/execute_batch capability set.

    Example:
        registry = SessionRegistry({EngineKind.SQLITE: SqliteBackend})
        await registry.connect("alice", EngineKind.SQLITE, ":memory:")
        registry.active_engine("alice")  # EngineKind.SQLITE
        await registry.disconnect("alice")
    """

    def __init__(self, backend_factories: Mapping[EngineKind, BackendFactory]):
        """Initialize registry.

        Args:
            backend_factories: Zero-argument callables producing an unopened
                backend for each supported engine
        """
        self._factories = dict(backend_factories)
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def with_default_backends(cls, settings: GatewaySettings | None = None) -> SessionRegistry:
        """Create a registry wired to the PostgreSQL and SQLite backends."""
        settings = settings or GatewaySettings()
        return cls(
            {
                EngineKind.POSTGRESQL: partial(PostgresBackend, settings),
                EngineKind.SQLITE: partial(SqliteBackend, settings),
            }
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, caller_id: object) -> bool:
        return caller_id in self._sessions

    def caller_ids(self) -> list[str]:
        return list(self._sessions)

    def supported_engines(self) -> list[EngineKind]:
        return list(self._factories)

    @asynccontextmanager
    async def _caller_lock(self, caller_id: str) -> AsyncIterator[None]:
        """Hold the caller's lock.

        Holders and waiters are counted so the lock can be dropped once the
        caller has no session and nobody else is using it.
        """
        lock = self._locks.get(caller_id)
        if lock is None:
            lock = self._locks[caller_id] = asyncio.Lock()
        self._lock_users[caller_id] = self._lock_users.get(caller_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[caller_id] - 1
            if remaining:
                self._lock_users[caller_id] = remaining
            else:
                del self._lock_users[caller_id]
                if caller_id not in self._sessions:
                    del self._locks[caller_id]

    async def connect(
        self, caller_id: str, engine: EngineKind | str, target: str
    ) -> list[str]:
        """Open a session for the caller, replacing any existing one.

        The previous session (if any) is closed before the new handle is
        opened. After opening, the schema is read once and the table names are
        returned as confirmation. On any failure nothing is stored and the
        caller is left disconnected.

        Args:
            caller_id: Caller identity
            engine: Engine kind (enum member or name/alias)
            target: Connection string or file path

        Returns:
            Table names of the connected database

        Raises:
            UnsupportedEngineError: If the engine is not supported
            SqlConnectionError: If opening or the initial introspection fails
        """
        engine_kind = EngineKind.parse(engine)
        factory = self._factories.get(engine_kind)
        if factory is None:
            raise UnsupportedEngineError(engine, [e.value for e in self._factories])

        async with self._caller_lock(caller_id):
            previous = self._sessions.pop(caller_id, None)
            if previous is not None:
                logger.info(
                    f"Replacing {previous.engine.value} session for caller {caller_id!r}"
                )
                await self._close_session(previous)

            backend = factory()
            try:
                await backend.open(target)
                tables = await backend.describe_schema()
            except Exception as e:
                await self._close_backend(backend, caller_id)
                if isinstance(e, SqlConnectionError):
                    raise
                raise SqlConnectionError(str(e) or e.__class__.__name__) from e
            except BaseException:
                # Cancelled mid-connect: the handle was never registered
                await asyncio.shield(self._close_backend(backend, caller_id))
                raise

            self._sessions[caller_id] = Session(caller_id, engine_kind, backend)

        logger.info(
            f"Caller {caller_id!r} connected to {engine_kind.value} ({len(tables)} tables)"
        )
        return [table.name for table in tables]

    def active_engine(self, caller_id: str) -> EngineKind | None:
        """Engine kind of the caller's session, or None. No side effects."""
        session = self._sessions.get(caller_id)
        return session.engine if session is not None else None

    async def disconnect(self, caller_id: str) -> bool:
        """Close and remove the caller's session. Idempotent.

        Returns:
            True if a session was closed, False if there was none
        """
        # Waits for an in-flight connect so its handle is the one closed
        async with self._caller_lock(caller_id):
            session = self._sessions.pop(caller_id, None)
            if session is None:
                return False
            await self._close_session(session)

        logger.info(f"Caller {caller_id!r} disconnected")
        return True

    async def describe_schema(self, caller_id: str) -> list[SchemaTable]:
        """Introspect the caller's database.

        Raises:
            NotConnectedError: If the caller has no session (no I/O attempted)
            SqlSchemaError: If introspection fails
        """
        self._require_session(caller_id)
        async with self._caller_lock(caller_id):
            session = self._require_session(caller_id)
            try:
                return await session.backend.describe_schema()
            except GatewayError:
                raise
            except Exception as e:
                raise SqlSchemaError(str(e) or e.__class__.__name__) from e

    async def execute_batch(
        self,
        caller_id: str,
        statements: Sequence[str],
        params: BatchParams = None,
    ) -> BatchOutcome:
        """Run a batch against the caller's database in one transaction.

        Blank statements are skipped. Execution stops at the first failing
        statement and the transaction is rolled back; statements that ran
        before it are still reported with ``success=True``.

        Raises:
            NotConnectedError: If the caller has no session (no I/O attempted)
            SqlQueryError: If the batch could not be run at all
        """
        self._require_session(caller_id)
        async with self._caller_lock(caller_id):
            session = self._require_session(caller_id)
            try:
                outcome = await session.backend.execute_batch(statements, params)
            except GatewayError:
                raise
            except Exception as e:
                raise SqlQueryError(str(e) or e.__class__.__name__) from e

        if not outcome.all_succeeded:
            logger.info(
                f"Batch for caller {caller_id!r} rolled back at statement "
                f"{len(outcome.results)}: {outcome.error}"
            )
        elif not outcome.committed:
            logger.info(f"Batch for caller {caller_id!r} failed to commit: {outcome.error}")
        return outcome

    async def close(self) -> None:
        """Close every session. Called at process shutdown."""
        for caller_id in list(self._sessions):
            await self.disconnect(caller_id)
        logger.info("Session registry closed")

    def _require_session(self, caller_id: str) -> Session:
        session = self._sessions.get(caller_id)
        if session is None:
            raise NotConnectedError(caller_id)
        return session

    async def _close_session(self, session: Session) -> None:
        await self._close_backend(session.backend, session.caller_id)

    async def _close_backend(self, backend: DatabaseBackend, caller_id: str) -> None:
        try:
            await backend.close()
        except Exception as e:
            logger.warning(f"Error closing {backend!r} for caller {caller_id!r}: {e}")


__all__ = ["BackendFactory", "Session", "SessionRegistry"]
