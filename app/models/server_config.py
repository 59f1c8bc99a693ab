"""Database server configuration schemas."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backend.errors import ConfigError


class ServerConfig(BaseModel):
    """Connection and table-selection settings for one database server."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Server name, used as a folder and file name and in reports",
    )
    user: str = Field(..., description="Database username")
    password: str = Field(..., description="Database password")
    host: str = Field(..., description="Database host")
    port: int = Field(..., description="Database port")
    database: str = Field(..., description="Database name")
    tables: Optional[List[str]] = Field(
        None,
        description="Optional: only dump these tables",
    )
    ignored_tables: Optional[List[str]] = Field(
        None,
        description="Optional: dump everything except these tables (ignored when tables is set)",
    )

    @field_validator("name")
    @classmethod
    def name_is_not_a_relative_path(cls, value: str) -> str:
        if set(value) == {"."}:
            raise ValueError("server name must not consist only of dots")
        return value


class BackupConfig(BaseModel):
    """Top-level config file contents."""

    model_config = ConfigDict(frozen=True)

    servers: List[ServerConfig] = Field(default_factory=list)


def load_backup_config(path: str | Path) -> BackupConfig:
    """Load and validate the JSON server config file.

    Args:
        path: Path to the config file.

    Returns:
        BackupConfig: Parsed configuration.

    Raises:
        ConfigError: When the file is missing, not JSON, or fails validation.
    """

    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Error loading configuration {config_path}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Configuration {config_path} is not valid JSON: {exc}") from exc

    try:
        return BackupConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Configuration {config_path} is invalid: {exc}") from exc
