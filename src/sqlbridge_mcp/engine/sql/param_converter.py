"""Parameter placeholder normalization for cross-engine SQL compatibility.

Callers write every statement against one placeholder convention: PostgreSQL's
numbered ``$1, $2, ...``. PostgreSQL runs those natively; for SQLite each
``$N`` is rewritten to SQLite's numbered form ``?N`` so that parameters still
bind by ordinal (``$2 ... $1`` stays ``?2 ... ?1``).

The rewrite is purely lexical. It does not parse SQL, so placeholder-like
text inside string literals or quoted identifiers is rewritten too:

    >>> convert_sql_for_engine("SELECT '$1'", EngineKind.SQLITE)
    "SELECT '?1'"

Parameter values are always bound by the driver; only the placeholder syntax
is rewritten.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from .backend import EngineKind

NUMERIC_PATTERN = re.compile(r"\$(\d+)")  # $1, $2, etc.


class ParamConverter:
    """Converts ``$N`` placeholders to the target engine's native positional form.

    Example:
        converter = ParamConverter(EngineKind.SQLITE)
        converter.convert("SELECT * FROM users WHERE id = $1 AND status = $2")
        # Result: "SELECT * FROM users WHERE id = ?1 AND status = ?2"
    """

    def __init__(self, target_engine: EngineKind):
        """Initialize converter for target engine.

        Args:
            target_engine: The engine to convert placeholders for
        """
        self.target_engine = target_engine

    def convert(self, sql: str) -> str:
        """Convert SQL placeholders to target engine format.

        Args:
            sql: SQL statement using ``$N`` placeholders

        Returns:
            SQL statement with placeholders in target engine format
        """
        if self.target_engine == EngineKind.POSTGRESQL:
            return sql
        return NUMERIC_PATTERN.sub(r"?\1", sql)

    def convert_params(self, params: Sequence[Any] | None) -> tuple[Any, ...]:
        """Normalize positional parameters to a tuple.

        Both asyncpg (``*args``) and sqlite3 (sequence binding) take plain
        positional values, so this only normalizes the container.
        """
        if params is None:
            return ()
        return tuple(params)


def convert_sql_for_engine(sql: str, engine: EngineKind) -> str:
    """Convenience function to convert SQL placeholders for an engine.

    Example:
        >>> convert_sql_for_engine("SELECT * FROM users WHERE id = $1", EngineKind.SQLITE)
        'SELECT * FROM users WHERE id = ?1'
    """
    return ParamConverter(engine).convert(sql)
