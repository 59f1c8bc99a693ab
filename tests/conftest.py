"""
Shared pytest fixtures for db-backup tests.

This module provides fixtures for:
- Settings isolated from the real environment and .env file
- Server configurations and a config file on disk
- A fake dump service that writes SQL without running mysqldump
- Logging reset between tests
"""

import json
from pathlib import Path

import pytest

from backend.errors import ProcessError
from backend.services.automation.backup_file_crypto import derive_key
from core.logging_config import reset_logging
from core.settings import Settings
from models.server_config import ServerConfig


class FakeDumpService:
    """Dump service double that writes canned SQL or fails for chosen servers."""

    def __init__(self, failing=None, content=b"CREATE TABLE t (id INT);\nINSERT INTO t VALUES (1);\n"):
        self.failing = set(failing or [])
        self.content = content
        self.calls = []

    def dump(self, server, destination):
        self.calls.append((server.name, Path(destination)))
        if server.name in self.failing:
            Path(destination).write_bytes(b"-- partial")
            raise ProcessError("Error executing mysqldump: exit status 2", returncode=2, stderr="Access denied")
        Path(destination).write_bytes(self.content)


@pytest.fixture(autouse=True)
def _reset_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def key():
    """Key derived from the test secret."""
    return derive_key("test-secret-key")


@pytest.fixture
def server_main():
    return ServerConfig(
        name="main",
        user="backup",
        password="s3cret",
        host="db.example.com",
        port=3306,
        database="shop",
    )


@pytest.fixture
def server_reports():
    return ServerConfig(
        name="reports",
        user="backup",
        password="hunter2",
        host="10.0.0.5",
        port=3307,
        database="analytics",
        ignored_tables=["sessions", "audit_log"],
    )


@pytest.fixture
def config_file(tmp_path, server_main, server_reports):
    """
    Write a config file with two servers.
    """
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "servers": [
            server_main.model_dump(exclude_none=True),
            server_reports.model_dump(exclude_none=True),
        ]
    }))
    return path


@pytest.fixture
def settings(tmp_path, config_file):
    """
    Settings pointing at tmp_path, ignoring the process environment's .env file.
    """
    return Settings(
        _env_file=None,
        KEY="test-secret-key",
        KEY_FILE="",
        LOG_FOLDER=str(tmp_path / "logs"),
        OUTPUT_FOLDER=str(tmp_path / "backups"),
        CONFIG_FILE=str(config_file),
        DISCORD_WEBHOOK="https://discord.example.com/api/webhooks/1/abc",
        DISCORD_BOT_NAME="backup-bot",
        DISCORD_BOT_AVATAR="https://example.com/avatar.png",
    )


@pytest.fixture
def fake_dump():
    return FakeDumpService()


@pytest.fixture
def make_fake_dump():
    """Factory for FakeDumpService instances with chosen failing servers."""
    return FakeDumpService
