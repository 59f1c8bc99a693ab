"""
Unit tests for the dump service (backend/services/sql/backup_service.py).

Tests argument building, table selection and subprocess handling.
"""

import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from backend.errors import BackupIOError, ProcessError
from backend.services.sql.backup_service import MySQLDumpService, build_dump_args, redact_args
from models.server_config import ServerConfig


def _server(**overrides):
    values = dict(
        name="main",
        user="backup",
        password="s3cret",
        host="db.example.com",
        port=3306,
        database="shop",
    )
    values.update(overrides)
    return ServerConfig(**values)


class TestBuildDumpArgs:
    """Test dump argument construction."""

    def test_whole_database(self):
        assert build_dump_args(_server()) == [
            "-ubackup",
            "-ps3cret",
            "-hdb.example.com",
            "-P3306",
            "shop",
        ]

    def test_include_tables(self):
        args = build_dump_args(_server(tables=["orders", "customers"]))

        assert args[4:] == ["--tables", "shop", "orders", "customers"]

    def test_ignored_tables_are_qualified(self):
        args = build_dump_args(_server(ignored_tables=["sessions", "other.audit"]))

        assert args[4:] == [
            "shop",
            "--ignore-table=shop.sessions",
            "--ignore-table=other.audit",
        ]

    def test_include_list_wins_over_exclude_list(self):
        """Test include-list precedence when both lists are configured."""
        args = build_dump_args(_server(tables=["a", "b"], ignored_tables=["c"]))

        assert args[4:] == ["--tables", "shop", "a", "b"]
        assert not any(arg.startswith("--ignore-table") for arg in args)

    def test_empty_lists_dump_whole_database(self):
        args = build_dump_args(_server(tables=[], ignored_tables=[]))

        assert args[4:] == ["shop"]

    def test_redact_args_hides_password(self):
        redacted = redact_args(["mysqldump", *build_dump_args(_server())])

        assert "-ps3cret" not in redacted
        assert "-p<redacted>" in redacted
        assert "-ubackup" in redacted


class TestMySQLDumpService:
    """Test running the dump tool."""

    @patch("backend.services.sql.backup_service.subprocess.run")
    def test_streams_stdout_into_destination(self, mock_run, tmp_path):
        """Test that stdout is wired to the destination file handle, not captured."""
        destination = tmp_path / "dump.sql"

        def fake_run(cmd, stdout, stderr, check):
            stdout.write(b"-- dump\n")
            return subprocess.CompletedProcess(cmd, 0, stderr=b"")

        mock_run.side_effect = fake_run

        MySQLDumpService("mysqldump").dump(_server(), destination)

        cmd = mock_run.call_args.args[0]
        assert cmd[0] == "mysqldump"
        assert cmd[1:] == build_dump_args(_server())
        assert mock_run.call_args.kwargs["stderr"] == subprocess.PIPE
        assert destination.read_bytes() == b"-- dump\n"

    @patch("backend.services.sql.backup_service.subprocess.run")
    def test_non_zero_exit_raises_process_error(self, mock_run, tmp_path):
        mock_run.return_value = subprocess.CompletedProcess(
            ["mysqldump"], 2, stderr=b"mysqldump: Got error: 1045: Access denied\n"
        )

        with pytest.raises(ProcessError) as exc_info:
            MySQLDumpService().dump(_server(), tmp_path / "dump.sql")

        assert exc_info.value.returncode == 2
        assert "Access denied" in exc_info.value.stderr
        assert "exit status 2" in str(exc_info.value)

    @patch("backend.services.sql.backup_service.subprocess.run")
    def test_spawn_failure_raises_process_error(self, mock_run, tmp_path):
        mock_run.side_effect = FileNotFoundError("No such file or directory: 'mysqldump'")

        with pytest.raises(ProcessError, match="Error executing mysqldump"):
            MySQLDumpService().dump(_server(), tmp_path / "dump.sql")

    @patch("backend.services.sql.backup_service.subprocess.run")
    def test_destination_is_closed_after_failure(self, mock_run, tmp_path):
        handles = []

        def fake_run(cmd, stdout, stderr, check):
            handles.append(stdout)
            return subprocess.CompletedProcess(cmd, 1, stderr=b"")

        mock_run.side_effect = fake_run

        with pytest.raises(ProcessError):
            MySQLDumpService().dump(_server(), tmp_path / "dump.sql")

        assert handles[0].closed

    def test_uncreatable_destination_raises_io_error(self, tmp_path):
        with patch("backend.services.sql.backup_service.subprocess.run") as mock_run:
            with pytest.raises(BackupIOError, match="Error creating backup file"):
                MySQLDumpService().dump(_server(), tmp_path / "missing" / "dump.sql")

        mock_run.assert_not_called()

    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
    def test_runs_real_process(self, tmp_path):
        """Test a real subprocess with a stand-in dump command."""
        script = tmp_path / "fake-dump"
        script.write_text("#!/bin/sh\necho \"-- dumped $#\"\n")
        script.chmod(0o755)
        destination = tmp_path / "dump.sql"

        MySQLDumpService(str(script)).dump(_server(), destination)

        assert destination.read_text() == "-- dumped 5\n"

    def test_logs_without_password(self, tmp_path, caplog):
        mock_run = MagicMock(return_value=subprocess.CompletedProcess(["x"], 0, stderr=b""))
        with patch("backend.services.sql.backup_service.subprocess.run", mock_run):
            with caplog.at_level("DEBUG", logger="backend.services.sql.backup_service"):
                MySQLDumpService().dump(_server(ignored_tables=["sessions"]), tmp_path / "dump.sql")

        assert "s3cret" not in caplog.text
        assert "--ignore-table: sessions" in caplog.text
