"""Runtime settings for the backup tool.

Settings are read once from the process environment (and an optional ``.env``
file in the working directory) and then passed explicitly to the components
that need them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.errors import ConfigError


class Settings(BaseSettings):
    """Backup tool settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Secret used to derive the encryption key. KEY_FILE wins over KEY.
    KEY: str = ""
    KEY_FILE: str = ""

    LOG_FOLDER: str = "logs"
    LOG_LEVEL: str = "INFO"
    OUTPUT_FOLDER: str = "backups"
    CONFIG_FILE: str = "config.json"

    DUMP_COMMAND: str = "mysqldump"

    DISCORD_WEBHOOK: str = ""
    DISCORD_BOT_NAME: str = "db-backup"
    DISCORD_BOT_AVATAR: str = ""
    NOTIFICATION_TIMEOUT: float = 10.0

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        name = str(value or "").strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"Invalid log level: {value}")
        return name

    def get_encryption_secret(self) -> str:
        """Return the secret used for key derivation.

        Returns:
            str: Secret string from ``KEY_FILE`` or ``KEY``.

        Raises:
            ConfigError: When no secret is configured or the key file cannot be read.
        """

        key_file = self.KEY_FILE.strip()
        if key_file:
            try:
                secret = Path(key_file).read_text(encoding="utf-8").rstrip("\r\n")
            except OSError as exc:
                raise ConfigError(f"Failed to read KEY_FILE {key_file}: {exc}") from exc
        else:
            secret = self.KEY

        if not secret:
            raise ConfigError("Encryption secret is not configured. Provide KEY or KEY_FILE.")
        return secret

    def ensure_folders(self) -> None:
        """Create the log and output folders if they do not exist.

        Raises:
            ConfigError: When a folder cannot be created.
        """

        for label, folder in (("log", self.LOG_FOLDER), ("output", self.OUTPUT_FOLDER)):
            try:
                os.makedirs(folder, exist_ok=True)
            except OSError as exc:
                raise ConfigError(f"Error creating {label} folder {folder}: {exc}") from exc


def load_settings(**overrides) -> Settings:
    """Build settings from the environment.

    Args:
        **overrides: Explicit values that take precedence over the environment.

    Returns:
        Settings: Loaded settings.

    Raises:
        ConfigError: When a value fails validation.
    """

    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid environment configuration: {exc}") from exc
