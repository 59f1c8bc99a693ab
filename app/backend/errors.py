"""Exception hierarchy for the backup tool.

Every expected failure maps to one of these classes so callers can decide
whether an error aborts the run, fails a single server, or is only logged.
"""

from __future__ import annotations

from typing import Optional


class BackupError(RuntimeError):
    """Base class for all backup tool failures."""


class ConfigError(BackupError):
    """Raised when the environment or the server config file is missing or invalid."""


class BackupIOError(BackupError):
    """Raised when a backup file cannot be created, read, written or removed."""


class ProcessError(BackupError):
    """Raised when the external dump tool cannot be spawned or exits non-zero."""

    def __init__(self, message: str, *, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CryptoSetupError(BackupError):
    """Raised when the cipher cannot be initialized (malformed key)."""


class FormatError(BackupError):
    """Raised when an encrypted blob is too short to contain a nonce."""


class AuthenticationError(BackupError):
    """Raised when the authentication tag does not verify on decrypt."""


class NotificationError(BackupError):
    """Raised when the result notification cannot be delivered."""
