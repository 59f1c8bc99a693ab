"""Database dump service for MySQL-compatible servers."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

from backend.errors import BackupIOError, ProcessError
from models.server_config import ServerConfig


logger = logging.getLogger(__name__)


def build_dump_args(server: ServerConfig) -> List[str]:
    """Build the dump tool argument list for a server.

    Credentials and connection flags always come first. Table selection
    follows: an include list wins over an exclude list; with neither, the
    whole database is dumped.

    Args:
        server: Server configuration.

    Returns:
        List[str]: Arguments, without the executable.
    """

    args = [
        f"-u{server.user}",
        f"-p{server.password}",
        f"-h{server.host}",
        f"-P{server.port}",
    ]

    if server.tables:
        args.append("--tables")
        args.append(server.database)
        args.extend(server.tables)
    elif server.ignored_tables:
        args.append(server.database)
        for table in server.ignored_tables:
            # mysqldump only accepts db-qualified names here
            qualified = table if "." in table else f"{server.database}.{table}"
            args.append(f"--ignore-table={qualified}")
    else:
        args.append(server.database)

    return args


def redact_args(args: List[str]) -> List[str]:
    """Return a copy of dump arguments that is safe to log."""

    return ["-p<redacted>" if arg.startswith("-p") else arg for arg in args]


class MySQLDumpService:
    """Run the external dump tool for one server at a time."""

    def __init__(self, dump_command: str = "mysqldump"):
        """Initialize the dump service.

        Args:
            dump_command: Executable name or path of the dump tool.
        """

        self.dump_command = dump_command

    def dump(self, server: ServerConfig, destination: Path) -> None:
        """Dump a server's database into a file.

        The tool's stdout is streamed straight into ``destination``.

        Args:
            server: Server configuration.
            destination: Plaintext output file (created or truncated).

        Raises:
            BackupIOError: When the destination file cannot be created.
            ProcessError: When the tool cannot be started or exits non-zero.
        """

        args = build_dump_args(server)
        if server.tables:
            for table in server.tables:
                logger.info("--tables: %s", table)
        elif server.ignored_tables:
            for table in server.ignored_tables:
                logger.info("--ignore-table: %s", table)

        cmd = [self.dump_command, *args]
        logger.debug("Running dump command: %s", " ".join(redact_args(cmd)))

        try:
            backup_file = open(destination, "wb")
        except OSError as exc:
            raise BackupIOError(f"Error creating backup file {destination}: {exc}") from exc

        with backup_file:
            try:
                result = subprocess.run(
                    cmd,
                    stdout=backup_file,
                    stderr=subprocess.PIPE,
                    check=False,
                )
            except OSError as exc:
                raise ProcessError(f"Error executing {self.dump_command}: {exc}") from exc

        if result.returncode != 0:
            stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
            raise ProcessError(
                f"Error executing {self.dump_command}: exit status {result.returncode}"
                + (f": {stderr}" if stderr else ""),
                returncode=result.returncode,
                stderr=stderr,
            )
