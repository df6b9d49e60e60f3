"""Gateway configuration.

Settings are resolved in three layers, later layers overriding earlier ones:

1. Built-in defaults (``GatewaySettings`` field defaults)
2. Optional YAML file, located by priority:
   a. Explicit path passed to ``SettingsLoader``
   b. ``SQLBRIDGE_CONFIG`` environment variable
   c. Standard location: ``~/.sqlbridge/config.yml``
3. ``SQLBRIDGE_*`` environment variables

Example config file:
```yaml
connect_timeout: 5
close_timeout: 10
pool_size: 5
sqlite_busy_timeout_ms: 30000
sqlite_load_vec: true
sqlite_pragmas:
  cache_size: -64000
```
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "SQLBRIDGE_"

# Environment variable -> settings field
ENV_FIELDS: dict[str, str] = {
    "SQLBRIDGE_CONNECT_TIMEOUT": "connect_timeout",
    "SQLBRIDGE_CLOSE_TIMEOUT": "close_timeout",
    "SQLBRIDGE_POOL_SIZE": "pool_size",
    "SQLBRIDGE_SQLITE_BUSY_TIMEOUT_MS": "sqlite_busy_timeout_ms",
    "SQLBRIDGE_SQLITE_LOAD_VEC": "sqlite_load_vec",
}


class GatewaySettings(BaseModel):
    """Backend tuning shared by every session."""

    connect_timeout: float = Field(
        default=5.0,
        gt=0,
        le=300,
        description="PostgreSQL connection establishment timeout in seconds",
    )
    close_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Seconds to wait for a graceful pool close before terminating it",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum PostgreSQL connections per session pool",
    )
    sqlite_busy_timeout_ms: int = Field(
        default=30000,
        ge=0,
        description="SQLite busy_timeout PRAGMA in milliseconds",
    )
    sqlite_load_vec: bool = Field(
        default=True,
        description="Load the sqlite-vec extension into SQLite sessions",
    )
    sqlite_pragmas: dict[str, str | int] = Field(
        default_factory=dict,
        description="Extra PRAGMAs applied to every SQLite session",
    )

    @field_validator("sqlite_pragmas")
    @classmethod
    def validate_pragma_names(cls, v: dict[str, str | int]) -> dict[str, str | int]:
        """PRAGMA names are interpolated into SQL, so only identifiers are allowed."""
        for name in v:
            if not name.isidentifier():
                raise ValueError(f"Invalid PRAGMA name: {name!r}")
        return v


class SettingsLoader:
    """Loader for gateway settings from YAML file and environment.

    Usage:
        ```python
        settings = SettingsLoader().load()
        registry = SessionRegistry.with_default_backends(settings)
        ```
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        """Initialize loader.

        Args:
            config_path: Explicit path to config file (optional)
            environ: Environment mapping (defaults to ``os.environ``)
        """
        self._explicit_path = Path(config_path) if config_path else None
        self._environ = environ if environ is not None else os.environ
        self._settings: GatewaySettings | None = None

    def get_config_path(self) -> Path | None:
        """Determine config file path using priority order.

        Returns:
            Path to config file, or None if no file exists
        """
        if self._explicit_path:
            if self._explicit_path.exists():
                return self._explicit_path
            logger.warning(f"Explicit config path does not exist: {self._explicit_path}")
            return None

        env_path_str = self._environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path_str:
            env_path = Path(env_path_str).expanduser()
            if env_path.exists():
                return env_path
            logger.warning(f"{ENV_PREFIX}CONFIG path does not exist: {env_path}")
            return None

        standard_path = Path.home() / ".sqlbridge" / "config.yml"
        if standard_path.exists():
            return standard_path

        return None

    def load(self) -> GatewaySettings:
        """Load and validate settings. Cached after the first call.

        Raises:
            ValueError: If the config file is not a mapping or fails validation
            yaml.YAMLError: If YAML parsing fails
        """
        if self._settings is not None:
            return self._settings

        values: dict[str, Any] = {}

        config_path = self.get_config_path()
        if config_path is not None:
            logger.info(f"Loading gateway config from: {config_path}")
            with open(config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
            if raw_config is not None:
                if not isinstance(raw_config, dict):
                    raise ValueError("Config file must contain a YAML dictionary")
                values.update(raw_config)

        for env_name, field_name in ENV_FIELDS.items():
            raw = self._environ.get(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()

        self._settings = GatewaySettings(**values)
        logger.debug(f"Gateway settings: {self._settings.model_dump()}")
        return self._settings


__all__ = ["GatewaySettings", "SettingsLoader"]
