"""Execution engine for database backups.

For each configured server this module:
- Dumps the database into a timestamped plaintext file
- Encrypts the dump next to it (``.sql.enc``)
- Removes the plaintext
- Records a BackupResult

Servers run one at a time in configuration order. A failing server never
stops the ones after it.
"""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from backend.errors import BackupError, BackupIOError
from backend.services.automation.backup_file_crypto import ENCRYPTED_SUFFIX, encrypt_file
from models.server_config import ServerConfig


logger = logging.getLogger(__name__)


class BackupState(str, enum.Enum):
    """Lifecycle of one server's backup."""

    PENDING = "pending"
    DUMPING = "dumping"
    ENCRYPTING = "encrypting"
    CLEANING = "cleaning"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BackupResult:
    """Outcome of one server's backup."""

    server_name: str
    success: bool
    message: str


@dataclass(frozen=True)
class BackupPaths:
    """Files produced for one server's backup."""

    directory: Path
    plaintext: Path
    encrypted: Path


class DumpService(Protocol):
    """Anything that writes a database dump for a server into a file."""

    def dump(self, server: ServerConfig, destination: Path) -> None: ...


def plan_backup_paths(server_name: str, output_dir: Path | str, now: datetime) -> BackupPaths:
    """Compute the per-server directory and file names for a run.

    Args:
        server_name: Server name.
        output_dir: Root output folder.
        now: Timestamp of the run.

    Returns:
        BackupPaths: Planned paths (nothing is created).
    """

    timestamp = now.strftime("%Y%m%d_%H%M%S")
    directory = Path(output_dir) / server_name
    plaintext = directory / f"db_{server_name}_backup_{timestamp}.sql"
    encrypted = directory / f"{plaintext.name}{ENCRYPTED_SUFFIX}"
    return BackupPaths(directory=directory, plaintext=plaintext, encrypted=encrypted)


class BackupExecutor:
    """Run the dump, encrypt, clean sequence for a single server."""

    def __init__(
        self,
        server: ServerConfig,
        *,
        key: bytes,
        output_dir: Path | str,
        dump_service: DumpService,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the executor.

        Args:
            server: Server configuration.
            key: 32-byte encryption key.
            output_dir: Root output folder; a subfolder per server is used.
            dump_service: Service that writes a database dump to a file.
            clock: Source of the run timestamp.
        """

        self.server = server
        self._key = key
        self.output_dir = Path(output_dir)
        self.dump_service = dump_service
        self.clock = clock
        self.state = BackupState.PENDING
        self.paths: Optional[BackupPaths] = None

    def execute(self) -> BackupResult:
        """Back up the server.

        Returns:
            BackupResult: Success or failure; errors are never raised.
        """

        logger.info("Starting backup for server: %s", self.server.name)
        try:
            encrypted = self._execute_workflow()
        except BackupError as exc:
            return self._fail(exc)
        except Exception as exc:
            logger.exception("Unexpected error backing up server '%s'", self.server.name)
            return self._fail(exc)

        return BackupResult(
            server_name=self.server.name,
            success=True,
            message=f"Encrypted backup saved as: {encrypted}",
        )

    def _execute_workflow(self) -> Path:
        now = self.clock()
        self.paths = plan_backup_paths(self.server.name, self.output_dir, now)
        try:
            os.makedirs(self.paths.directory, exist_ok=True)
        except OSError as exc:
            raise BackupIOError(f"Error creating output folder {self.paths.directory}: {exc}") from exc

        self._transition(BackupState.DUMPING)
        try:
            self.dump_service.dump(self.server, self.paths.plaintext)
        except Exception:
            self._discard_plaintext("dump failed")
            raise
        logger.info("Backup successful for server '%s'. File: %s", self.server.name, self.paths.plaintext)

        self._transition(BackupState.ENCRYPTING)
        try:
            encrypt_file(input_path=self.paths.plaintext, output_path=self.paths.encrypted, key=self._key)
        except Exception as exc:
            logger.error("Error encrypting backup file %s: %s", self.paths.plaintext, exc)
            self._discard_plaintext("encryption failed")
            raise

        self._transition(BackupState.CLEANING)
        try:
            self.paths.plaintext.unlink()
            logger.info("Deleting unencrypted backup file successful")
        except OSError as exc:
            logger.warning("Unable to delete unencrypted backup file %s: %s", self.paths.plaintext, exc)

        self._transition(BackupState.DONE)
        logger.info("Encrypted backup saved as: %s", self.paths.encrypted)
        return self.paths.encrypted

    def _fail(self, exc: Exception) -> BackupResult:
        self._transition(BackupState.FAILED)
        logger.error("Error backing up server '%s': %s", self.server.name, exc)
        return BackupResult(
            server_name=self.server.name,
            success=False,
            message=f"Error backing up server '{self.server.name}': {exc}",
        )

    def _discard_plaintext(self, reason: str) -> None:
        """Remove a leftover plaintext dump after a failed step."""

        if self.paths is None or not self.paths.plaintext.exists():
            return
        try:
            self.paths.plaintext.unlink()
            logger.info("Removed plaintext dump for server '%s' (%s)", self.server.name, reason)
        except OSError as exc:
            logger.warning("Unable to delete unencrypted backup file %s: %s", self.paths.plaintext, exc)

    def _transition(self, state: BackupState) -> None:
        logger.debug("Server '%s': %s -> %s", self.server.name, self.state.value, state.value)
        self.state = state


def run_backups(
    servers: Sequence[ServerConfig],
    *,
    key: bytes,
    output_dir: Path | str,
    dump_service: DumpService,
    clock: Callable[[], datetime] = datetime.now,
) -> List[BackupResult]:
    """Back up every server in order.

    Args:
        servers: Configured servers.
        key: 32-byte encryption key.
        output_dir: Root output folder.
        dump_service: Service that writes a database dump to a file.
        clock: Source of run timestamps.

    Returns:
        List[BackupResult]: One result per server, in input order.
    """

    results: List[BackupResult] = []
    for server in servers:
        executor = BackupExecutor(
            server,
            key=key,
            output_dir=output_dir,
            dump_service=dump_service,
            clock=clock,
        )
        results.append(executor.execute())

    succeeded = sum(1 for result in results if result.success)
    logger.info("Backup process completed: %s/%s server(s) succeeded", succeeded, len(results))
    return results
