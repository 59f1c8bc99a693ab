"""Logging configuration for the backup tool.

Every run logs to the console. A backup run additionally appends to its own
log file, ``<log_dir>/backup_log_<YYYYmmdd_HHMMSS>.log``.

The configuration is safe to call multiple times.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_log_filename(now: Optional[datetime] = None) -> str:
    """Return the per-run log file name.

    Args:
        now: Timestamp of the run (defaults to the current local time).

    Returns:
        str: File name such as ``backup_log_20240115_120000.log``.
    """

    return (now or datetime.now()).strftime("backup_log_%Y%m%d_%H%M%S.log")


def configure_logging(
    *,
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    log_filename: Optional[str] = None,
) -> Optional[Path]:
    """Configure process-wide logging.

    Args:
        log_dir: Directory for the run's log file. Console-only when None.
        log_level: Root log level name (e.g. INFO, DEBUG).
        log_filename: File name within log_dir (defaults to a timestamped name).

    Returns:
        Optional[Path]: Path of the log file, or None when logging to console only.

    Raises:
        ValueError: When the provided log_level is invalid.
    """

    root = logging.getLogger()
    if getattr(root, "_db_backup_logging_configured", False):
        return getattr(root, "_db_backup_log_path", None)

    resolved_level_name = str(log_level or "").strip().upper() or "INFO"
    resolved_level = getattr(logging, resolved_level_name, None)
    if not isinstance(resolved_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root.setLevel(resolved_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(formatter)
    console_handler._db_backup_handler = True  # type: ignore[attr-defined]
    root.addHandler(console_handler)

    log_path: Optional[Path] = None
    if log_dir:
        log_path = Path(log_dir) / (log_filename or build_log_filename())
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
            file_handler.setLevel(resolved_level)
            file_handler.setFormatter(formatter)
            file_handler._db_backup_handler = True  # type: ignore[attr-defined]
            root.addHandler(file_handler)
        except OSError:
            log_path = None
            logging.getLogger(__name__).warning(
                "Failed to configure file logging under %s; continuing with console-only logging",
                log_dir,
            )

    logging.captureWarnings(True)
    root._db_backup_logging_configured = True  # type: ignore[attr-defined]
    root._db_backup_log_path = log_path  # type: ignore[attr-defined]
    return log_path


def reset_logging() -> None:
    """Remove handlers installed by configure_logging so it can run again."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_db_backup_handler", False):
            root.removeHandler(handler)
            handler.close()
    root._db_backup_logging_configured = False  # type: ignore[attr-defined]
    root._db_backup_log_path = None  # type: ignore[attr-defined]
