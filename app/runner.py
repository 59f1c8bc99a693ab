#!/usr/bin/env python3
"""Database backup runner.

Runs one backup cycle over every configured server, or decrypts a single
backup artifact.

Usage:
    python runner.py -backup
    python runner.py -decrypt -file backups/main/db_main_backup_20240115_120000.sql.enc [-out PATH]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from backend.errors import BackupError, ConfigError
from backend.services.automation.backup_file_crypto import decrypt_file, decrypted_output_path, derive_key
from backend.services.automation.executor import BackupResult, DumpService, run_backups
from backend.services.automation.notification_service import NotificationService
from backend.services.sql.backup_service import MySQLDumpService
from core.logging_config import configure_logging
from core.settings import Settings, load_settings
from models.server_config import load_backup_config


logger = logging.getLogger("runner")

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""

    parser = argparse.ArgumentParser(
        prog="db-backup",
        description="Back up configured databases to encrypted files, or decrypt a backup.",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("-backup", "--backup", action="store_true", help="Start the backup process")
    mode.add_argument("-decrypt", "--decrypt", action="store_true", help="Decrypt a backup file")
    parser.add_argument("-file", "--file", default="", help="Path to the encrypted file for decryption")
    parser.add_argument(
        "-out",
        "--out",
        default="",
        help="Destination for the decrypted file (default: input path without .enc)",
    )
    return parser


def run_backup_cycle(
    settings: Settings,
    *,
    dump_service: Optional[DumpService] = None,
    notifier: Optional[NotificationService] = None,
) -> List[BackupResult]:
    """Back up all configured servers and report the results.

    Args:
        settings: Loaded settings.
        dump_service: Dump service override; defaults to mysqldump.
        notifier: Notification service override.

    Returns:
        List[BackupResult]: One result per configured server.

    Raises:
        ConfigError: When the secret or server config is missing or invalid.
    """

    config = load_backup_config(settings.CONFIG_FILE)
    key = derive_key(settings.get_encryption_secret())
    logger.info("Encryption key derived successfully")

    results = run_backups(
        config.servers,
        key=key,
        output_dir=settings.OUTPUT_FOLDER,
        dump_service=dump_service or MySQLDumpService(settings.DUMP_COMMAND),
    )

    notifier = notifier or NotificationService(
        webhook_url=settings.DISCORD_WEBHOOK,
        username=settings.DISCORD_BOT_NAME,
        avatar_url=settings.DISCORD_BOT_AVATAR,
        timeout=settings.NOTIFICATION_TIMEOUT,
    )
    notifier.report(results)
    return results


def run_decrypt(settings: Settings, encrypted_file: str, output_file: str = "") -> Path:
    """Decrypt one backup artifact.

    Args:
        settings: Loaded settings.
        encrypted_file: Path to the ``.enc`` file.
        output_file: Destination path; derived from encrypted_file when empty.

    Returns:
        Path: Path of the decrypted file.

    Raises:
        BackupError: When the secret is missing or decryption fails.
    """

    key = derive_key(settings.get_encryption_secret())
    destination = Path(output_file) if output_file else decrypted_output_path(encrypted_file)
    decrypt_file(input_path=Path(encrypted_file), output_path=destination, key=key)
    return destination


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point.

    Args:
        argv: Arguments (defaults to sys.argv[1:]).

    Returns:
        int: Process exit status.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.decrypt and not args.file:
        parser.error("-decrypt requires -file")

    try:
        settings = load_settings()
    except ConfigError as exc:
        configure_logging()
        logger.error("%s", exc)
        return EXIT_FAILURE

    if args.decrypt:
        configure_logging(log_level=settings.LOG_LEVEL)
        try:
            destination = run_decrypt(settings, args.file, args.out)
        except BackupError as exc:
            logger.error("Error decrypting file %s: %s", args.file, exc)
            return EXIT_FAILURE
        logger.info("Decryption successful: %s", destination)
        return EXIT_OK

    try:
        settings.ensure_folders()
    except ConfigError as exc:
        configure_logging(log_level=settings.LOG_LEVEL)
        logger.error("%s", exc)
        return EXIT_FAILURE

    log_path = configure_logging(log_dir=settings.LOG_FOLDER, log_level=settings.LOG_LEVEL)
    logger.info("Backup process started (log file: %s)", log_path)

    try:
        results = run_backup_cycle(settings)
    except ConfigError as exc:
        logger.error("Backup aborted: %s", exc)
        return EXIT_FAILURE

    return EXIT_OK if all(result.success for result in results) else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
