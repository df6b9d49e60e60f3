"""Shared test configuration for sqlbridge-mcp tests.

Provides:
- GatewaySettings tuned for tests (no sqlite-vec loading)
- Temporary SQLite database paths
- FakeBackend: an in-memory DatabaseBackend with open/close counters, used
  to verify registry lifecycle guarantees without real I/O
- Mock MCP context wired to a real SessionRegistry
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from sqlbridge_mcp.context import AppContext
from sqlbridge_mcp.engine import GatewaySettings, SessionRegistry, SqlConnectionError
from sqlbridge_mcp.engine.sql import (
    BatchOutcome,
    BatchParams,
    DatabaseBackendBase,
    EngineKind,
    SchemaTable,
    StatementResult,
    iter_statements,
)


@pytest.fixture
def settings() -> GatewaySettings:
    """Settings for tests: short timeouts, no extension loading."""
    return GatewaySettings(connect_timeout=2.0, close_timeout=2.0, sqlite_load_vec=False)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Path of a not-yet-existing SQLite database file."""
    return str(tmp_path / "test.db")


# =============================================================================
# Fake backend
# =============================================================================


class BackendCounter:
    """Counts handles opened and closed across FakeBackend instances."""

    def __init__(self) -> None:
        self.created = 0
        self.opened = 0
        self.closed = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def live(self) -> int:
        return self.opened - self.closed


class FakeBackend(DatabaseBackendBase):
    """DatabaseBackend test double.

    Every statement succeeds unless it contains "FAIL"; statements after the
    failing one are not attempted, mirroring the real adapters.
    """

    def __init__(
        self,
        engine: EngineKind,
        counter: BackendCounter,
        *,
        tables: Sequence[str] = ("users",),
        fail_open: str | None = None,
        fail_describe: Exception | None = None,
        fail_execute: Exception | None = None,
        delay: float = 0.0,
        describe_delay: float = 0.0,
    ) -> None:
        self.engine = engine
        self.counter = counter
        self.tables = list(tables)
        self.fail_open = fail_open
        self.fail_describe = fail_describe
        self.fail_execute = fail_execute
        self.delay = delay
        self.describe_delay = describe_delay
        self.target: str | None = None
        self.executed: list[str] = []
        self._open = False
        counter.created += 1

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, target: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_open:
            raise SqlConnectionError(self.fail_open)
        self._open = True
        self.target = target
        self.counter.opened += 1

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.counter.closed += 1

    async def describe_schema(self) -> list[SchemaTable]:
        if self.describe_delay:
            await asyncio.sleep(self.describe_delay)
        if self.fail_describe is not None:
            raise self.fail_describe
        return [SchemaTable(name=name) for name in self.tables]

    async def execute_batch(
        self, statements: Sequence[str], params: BatchParams = None
    ) -> BatchOutcome:
        if self.fail_execute is not None:
            raise self.fail_execute

        self.counter.in_flight += 1
        self.counter.max_in_flight = max(self.counter.max_in_flight, self.counter.in_flight)
        try:
            results = []
            for statement, _values in iter_statements(statements, params):
                await asyncio.sleep(self.delay)
                self.executed.append(statement)
                if "FAIL" in statement:
                    results.append(
                        StatementResult(statement, 0, success=False, error="forced failure")
                    )
                    return BatchOutcome(results=results, committed=False)
                results.append(StatementResult(statement, 1))
            return BatchOutcome(results=results, committed=True)
        finally:
            self.counter.in_flight -= 1


@pytest.fixture
def counter() -> BackendCounter:
    return BackendCounter()


@pytest.fixture
def make_registry(
    counter: BackendCounter,
) -> Callable[..., tuple[SessionRegistry, list[FakeBackend]]]:
    """Build a registry whose factories produce FakeBackends.

    Keyword arguments are passed to every FakeBackend. Returns the registry
    and the list that collects every backend it creates.
    """

    def _make(**backend_kwargs: Any) -> tuple[SessionRegistry, list[FakeBackend]]:
        created: list[FakeBackend] = []

        def factory(engine: EngineKind) -> Callable[[], FakeBackend]:
            def _create() -> FakeBackend:
                backend = FakeBackend(engine, counter, **backend_kwargs)
                created.append(backend)
                return backend

            return _create

        registry = SessionRegistry(
            {
                EngineKind.POSTGRESQL: factory(EngineKind.POSTGRESQL),
                EngineKind.SQLITE: factory(EngineKind.SQLITE),
            }
        )
        return registry, created

    return _make


# =============================================================================
# MCP context
# =============================================================================


@pytest.fixture
async def app_context(settings: GatewaySettings) -> AsyncIterator[AppContext]:
    """AppContext with a real registry; all sessions closed afterwards."""
    registry = SessionRegistry.with_default_backends(settings)
    yield AppContext(registry=registry, settings=settings)
    await registry.close()


@pytest.fixture
def make_context(app_context: AppContext) -> Callable[[str | None], MagicMock]:
    """Create mock MCP contexts sharing one AppContext.

    Each call returns a context for the given client id (None simulates a
    transport without client ids; the context then gets its own session).
    """

    def _make(client_id: str | None = "alice") -> MagicMock:
        mock_ctx = MagicMock()
        mock_ctx.request_context.lifespan_context = app_context
        mock_ctx.client_id = client_id
        mock_ctx.session = object()
        return mock_ctx

    return _make
