"""Tests for server lifespan, logging setup and response formatting."""

from __future__ import annotations

from pathlib import Path

import pytest

from sqlbridge_mcp.engine import (
    BatchOutcome,
    EngineKind,
    SchemaColumn,
    SchemaTable,
    SqlTimeoutError,
    StatementResult,
)
from sqlbridge_mcp.formatting import (
    format_batch_markdown,
    format_gateway_error,
    format_schema_markdown,
)
from sqlbridge_mcp.server import app_lifespan, configure_logging, mcp


class TestLifespan:
    """Tests for resource setup and teardown."""

    async def test_sessions_closed_on_shutdown(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, db_path: str
    ) -> None:
        config = tmp_path / "config.yml"
        config.write_text("sqlite_load_vec: false\nconnect_timeout: 3\n", encoding="utf-8")
        monkeypatch.setenv("SQLBRIDGE_CONFIG", str(config))

        async with app_lifespan(mcp) as app_context:
            assert app_context.settings.connect_timeout == 3
            registry = app_context.registry
            await registry.connect("alice", "sqlite", db_path)
            assert len(registry) == 1

        assert len(registry) == 0
        assert registry.active_engine("alice") is None

    async def test_env_settings_applied(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("SQLBRIDGE_CONFIG", str(tmp_path / "missing.yml"))
        monkeypatch.setenv("SQLBRIDGE_POOL_SIZE", "2")

        async with app_lifespan(mcp) as app_context:
            assert app_context.settings.pool_size == 2
            assert app_context.registry.supported_engines() == [
                EngineKind.POSTGRESQL,
                EngineKind.SQLITE,
            ]


class TestConfigureLogging:
    """Tests for log level handling."""

    def test_invalid_level_warns(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("SQLBRIDGE_LOG_LEVEL", "chatty")

        configure_logging()

        assert "Invalid SQLBRIDGE_LOG_LEVEL 'CHATTY'" in capsys.readouterr().err

    def test_valid_level_no_warning(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("SQLBRIDGE_LOG_LEVEL", "debug")

        configure_logging()

        assert "Invalid" not in capsys.readouterr().err


class TestFormatting:
    """Tests for markdown and error formatting."""

    def test_schema_markdown(self) -> None:
        tables = [
            SchemaTable(
                "users",
                [
                    SchemaColumn("id", "integer", nullable=False, is_primary_key=True),
                    SchemaColumn("role", "text", True, False, check_values=["admin", "guest"]),
                ],
            )
        ]

        text = format_schema_markdown(tables)

        assert text.startswith("## Tables (1)")
        assert "| id | integer | no | yes |  |" in text
        assert "| role | text | yes |  | admin, guest |" in text

    def test_schema_markdown_empty(self) -> None:
        assert format_schema_markdown([]) == "No tables found"

    def test_batch_markdown_committed(self) -> None:
        outcome = BatchOutcome([StatementResult("DELETE FROM t", 4)], committed=True)
        text = format_batch_markdown(outcome)
        assert text.splitlines()[0] == "## Batch committed (1 statements)"
        assert "1. OK (4 rows): `DELETE FROM t`" in text

    def test_batch_markdown_rolled_back(self) -> None:
        outcome = BatchOutcome(
            [
                StatementResult("INSERT INTO t VALUES (1)", 1),
                StatementResult("INSERT INTO t VALUES (1)", success=False, error="duplicate key"),
            ]
        )
        text = format_batch_markdown(outcome)
        assert text.startswith("## Batch rolled back (2 statements attempted)")
        assert "2. **FAILED**: `INSERT INTO t VALUES (1)`" in text
        assert "   - duplicate key" in text

    def test_batch_markdown_commit_failure(self) -> None:
        outcome = BatchOutcome(
            [StatementResult("INSERT INTO t VALUES (1)", 1)],
            committed=False,
            commit_error="FOREIGN KEY constraint failed",
        )
        text = format_batch_markdown(outcome)
        assert text.startswith("## Batch rolled back")
        assert text.endswith("**COMMIT FAILED**: FOREIGN KEY constraint failed")

    def test_batch_markdown_empty(self) -> None:
        assert format_batch_markdown(BatchOutcome([], committed=True)) == "No statements executed"

    def test_gateway_error(self) -> None:
        error = SqlTimeoutError("Timed out after 5s connecting to PostgreSQL")
        assert format_gateway_error(error) == {
            "status": "failure",
            "error": "Timed out after 5s connecting to PostgreSQL",
            "error_type": "connection_timeout",
        }
