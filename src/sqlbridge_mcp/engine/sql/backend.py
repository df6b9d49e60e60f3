"""Database backend protocol and data classes for the session gateway.

This module defines the interface both engine adapters implement, along with
the normalized schema shape and the per-statement batch result records they
return.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..exceptions import UnsupportedEngineError


class EngineKind(Enum):
    """Supported database engines."""

    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: EngineKind | str) -> EngineKind:
        """Resolve an engine kind from an enum member or a (case-insensitive) name.

        Raises:
            UnsupportedEngineError: If the value names no supported engine
        """
        if isinstance(value, EngineKind):
            return value
        if isinstance(value, str):
            engine = ENGINE_ALIASES.get(value.strip().lower())
            if engine is not None:
                return engine
        raise UnsupportedEngineError(value, [e.value for e in cls])


ENGINE_ALIASES: dict[str, EngineKind] = {
    "postgresql": EngineKind.POSTGRESQL,
    "postgres": EngineKind.POSTGRESQL,
    "pg": EngineKind.POSTGRESQL,
    "sqlite": EngineKind.SQLITE,
    "sqlite3": EngineKind.SQLITE,
}


@dataclass
class SchemaColumn:
    """One column of an introspected table.

    Attributes:
        name: Column name
        data_type: Engine-native declared type (not normalized across engines)
        nullable: Whether the column accepts NULL
        is_primary_key: Whether the column is part of the primary key
        check_values: Values of an ``IN (...)`` CHECK constraint, when one
            could be extracted. None does not mean there is no constraint.
    """

    name: str
    data_type: str
    nullable: bool
    is_primary_key: bool
    check_values: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "data_type": self.data_type,
            "nullable": self.nullable,
            "is_primary_key": self.is_primary_key,
        }
        if self.check_values is not None:
            data["check_values"] = list(self.check_values)
        return data


@dataclass
class SchemaTable:
    """An introspected table with columns in catalog ordinal order."""

    name: str
    columns: list[SchemaColumn] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "columns": [c.to_dict() for c in self.columns]}


@dataclass
class StatementResult:
    """Outcome of one statement inside a batch.

    Attributes:
        statement: Submitted statement text, trimmed
        rows_affected: Row count reported by the engine (never negative)
        success: Whether the statement ran without error. Stays True for
            statements that ran before a later failure, even though the
            rollback undid their effects.
        error: Engine error message for the failing statement
    """

    statement: str
    rows_affected: int = 0
    success: bool = True
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "statement": self.statement,
            "rows_affected": self.rows_affected,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BatchOutcome:
    """Result of running a batch as one transaction.

    Attributes:
        results: One entry per attempted statement, in submission order.
            Statements after the first failure are omitted.
        committed: Whether the transaction was committed
        commit_error: Engine error when every statement ran but COMMIT failed
    """

    results: list[StatementResult] = field(default_factory=list)
    committed: bool = False
    commit_error: str | None = None

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def rolled_back(self) -> bool:
        return not self.committed

    @property
    def error(self) -> str | None:
        """Error of the failing statement, else the COMMIT error, else None."""
        for result in self.results:
            if not result.success:
                return result.error
        return self.commit_error

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "results": [r.to_dict() for r in self.results],
            "all_succeeded": self.all_succeeded,
            "committed": self.committed,
            "rolled_back": self.rolled_back,
        }
        if self.commit_error is not None:
            data["commit_error"] = self.commit_error
        return data


# Positional parameters for one statement, and the per-batch list of them
# (aligned by index with the submitted statements).
Params = Sequence[Any] | None
BatchParams = Sequence[Params] | None


def iter_statements(
    statements: Sequence[str], params: BatchParams = None
) -> Iterator[tuple[str, Params]]:
    """Yield (trimmed statement, parameters) pairs, skipping blank statements.

    Parameters are matched to statements by submission index, so blank
    entries still consume their slot in ``params``.
    """
    for index, raw in enumerate(statements):
        statement = raw.strip()
        if not statement:
            continue
        values: Params = None
        if params is not None and index < len(params):
            values = params[index]
        yield statement, values


@runtime_checkable
class DatabaseBackend(Protocol):
    """Protocol for engine adapters bound to a single session.

    A backend owns exactly one live handle (a pool or a file connection)
    between ``open`` and ``close``.
    """

    engine: EngineKind

    async def open(self, target: str) -> None:
        """Open and validate the handle.

        Args:
            target: Connection string (PostgreSQL) or file path (SQLite)

        Raises:
            SqlConnectionError: If the handle cannot be opened or validated.
                No resources remain allocated afterwards.
        """
        ...

    async def close(self) -> None:
        """Release the handle. Safe to call multiple times."""
        ...

    async def describe_schema(self) -> list[SchemaTable]:
        """Introspect user tables, ordered by name.

        Raises:
            SqlSchemaError: If the catalog cannot be read
        """
        ...

    async def execute_batch(
        self, statements: Sequence[str], params: BatchParams = None
    ) -> BatchOutcome:
        """Run non-blank statements in order inside one transaction.

        Stops at the first failing statement and rolls back; commits otherwise.

        Raises:
            SqlQueryError: If the batch could not be started at all
        """
        ...

    @property
    def is_open(self) -> bool:
        """Whether the handle is currently open."""
        ...


class DatabaseBackendBase(ABC):
    """Abstract base class for engine adapters.

    Subclasses implement the four lifecycle/operation methods.
    """

    engine: EngineKind

    @abstractmethod
    async def open(self, target: str) -> None:
        """Open and validate the handle."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the handle."""
        pass

    @abstractmethod
    async def describe_schema(self) -> list[SchemaTable]:
        """Introspect user tables."""
        pass

    @abstractmethod
    async def execute_batch(
        self, statements: Sequence[str], params: BatchParams = None
    ) -> BatchOutcome:
        """Run a batch in one transaction."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the handle is open."""
        pass

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"{self.__class__.__name__}({self.engine.value}, {state})"
