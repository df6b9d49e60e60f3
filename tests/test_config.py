"""Tests for gateway settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sqlbridge_mcp.engine import GatewaySettings, SettingsLoader


def write_config(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestGatewaySettings:
    """Tests for settings validation."""

    def test_defaults(self) -> None:
        settings = GatewaySettings()
        assert settings.connect_timeout == 5.0
        assert settings.close_timeout == 10.0
        assert settings.pool_size == 5
        assert settings.sqlite_busy_timeout_ms == 30000
        assert settings.sqlite_load_vec is True
        assert settings.sqlite_pragmas == {}

    def test_pragma_names_must_be_identifiers(self) -> None:
        with pytest.raises(ValidationError, match="Invalid PRAGMA name"):
            GatewaySettings(sqlite_pragmas={"cache_size; DROP TABLE x": 1})

    def test_bounds(self) -> None:
        with pytest.raises(ValidationError):
            GatewaySettings(connect_timeout=0)
        with pytest.raises(ValidationError):
            GatewaySettings(pool_size=0)


class TestSettingsLoader:
    """Tests for config file discovery and environment overrides."""

    def test_no_file_gives_defaults(self, tmp_path: Path) -> None:
        loader = SettingsLoader(environ={"SQLBRIDGE_CONFIG": str(tmp_path / "absent.yml")})
        assert loader.get_config_path() is None
        assert loader.load() == GatewaySettings()

    def test_explicit_path(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "config.yml",
            "connect_timeout: 2.5\npool_size: 3\nsqlite_pragmas:\n  cache_size: -2000\n",
        )

        settings = SettingsLoader(path, environ={}).load()

        assert settings.connect_timeout == 2.5
        assert settings.pool_size == 3
        assert settings.sqlite_pragmas == {"cache_size": -2000}

    def test_explicit_path_beats_env_path(self, tmp_path: Path) -> None:
        explicit = write_config(tmp_path / "a.yml", "pool_size: 2\n")
        from_env = write_config(tmp_path / "b.yml", "pool_size: 9\n")

        loader = SettingsLoader(explicit, environ={"SQLBRIDGE_CONFIG": str(from_env)})

        assert loader.get_config_path() == explicit
        assert loader.load().pool_size == 2

    def test_env_config_path(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "b.yml", "sqlite_load_vec: false\n")
        settings = SettingsLoader(environ={"SQLBRIDGE_CONFIG": str(path)}).load()
        assert settings.sqlite_load_vec is False

    def test_env_variables_override_file(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "c.yml", "connect_timeout: 2\npool_size: 4\n")

        settings = SettingsLoader(
            path,
            environ={
                "SQLBRIDGE_CONNECT_TIMEOUT": "7.5",
                "SQLBRIDGE_SQLITE_LOAD_VEC": "false",
                "SQLBRIDGE_POOL_SIZE": " ",
            },
        ).load()

        assert settings.connect_timeout == 7.5
        assert settings.sqlite_load_vec is False
        assert settings.pool_size == 4

    def test_missing_explicit_path(self, tmp_path: Path) -> None:
        loader = SettingsLoader(tmp_path / "nope.yml", environ={})
        assert loader.get_config_path() is None
        assert loader.load() == GatewaySettings()

    def test_empty_file(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "empty.yml", "")
        assert SettingsLoader(path, environ={}).load() == GatewaySettings()

    def test_non_mapping_file_rejected(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "list.yml", "- a\n- b\n")
        with pytest.raises(ValueError, match="YAML dictionary"):
            SettingsLoader(path, environ={}).load()

    def test_invalid_value_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            SettingsLoader(environ={"SQLBRIDGE_POOL_SIZE": "lots"}).load()

    def test_load_is_cached(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "d.yml", "pool_size: 2\n")
        loader = SettingsLoader(path, environ={})
        first = loader.load()

        write_config(path, "pool_size: 8\n")

        assert loader.load() is first
