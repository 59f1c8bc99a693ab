"""Backup file encryption helpers.

This module implements encryption/decryption of backup artifacts with a key
derived from the configured secret.

The encrypted file format is:
    [NONCE(12)][CIPHERTEXT...][TAG(16)]

Encryption uses AES-256-GCM with a fresh random nonce per file and no
associated data. The blob is self-contained: decryption needs only the blob
and the key.

Both directions hold the whole file in memory, which bounds the backup size
this tool can handle to what fits in RAM.
"""

from __future__ import annotations

import os
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from backend.errors import AuthenticationError, BackupIOError, CryptoSetupError, FormatError


KEY_LEN = 32
NONCE_LEN = 12
TAG_LEN = 16
ENCRYPTED_SUFFIX = ".enc"


def derive_key(secret: str) -> bytes:
    """Derive the 32-byte AES key from a secret string.

    The secret's UTF-8 bytes are copied left-aligned into a zero-filled
    32-byte buffer: shorter secrets are zero-padded, longer ones truncated.
    This is not a KDF; existing backups depend on this exact mapping.

    Args:
        secret: Secret string.

    Returns:
        bytes: 32-byte key.
    """

    key = bytearray(KEY_LEN)
    raw = secret.encode("utf-8")[:KEY_LEN]
    key[: len(raw)] = raw
    return bytes(key)


def _build_cipher(key: bytes) -> AESGCM:
    """Create an AES-GCM cipher for a 256-bit key.

    Args:
        key: Symmetric key.

    Returns:
        AESGCM: Cipher instance.

    Raises:
        CryptoSetupError: When the key is not 32 bytes.
    """

    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LEN:
        size = len(key) if isinstance(key, (bytes, bytearray)) else type(key).__name__
        raise CryptoSetupError(f"Invalid AES-256 key (expected {KEY_LEN} bytes, got {size})")
    try:
        return AESGCM(bytes(key))
    except (TypeError, ValueError) as exc:
        raise CryptoSetupError(f"Error creating cipher: {exc}") from exc


def _remove_quietly(path: Path) -> None:
    try:
        if path.exists():
            path.unlink()
    except OSError:
        pass


def encrypt_file(*, input_path: Path, output_path: Path, key: bytes) -> None:
    """Encrypt a backup artifact to an output file.

    Args:
        input_path: Path to the plaintext backup artifact.
        output_path: Destination path for the encrypted artifact.
        key: 32-byte key from ``derive_key``.

    Raises:
        CryptoSetupError: When the key is malformed.
        BackupIOError: When the input cannot be read, is too large to seal in one
            piece, or the output cannot be written.
    """

    input_path = Path(input_path)
    output_path = Path(output_path)
    cipher = _build_cipher(key)

    try:
        plaintext = input_path.read_bytes()
    except MemoryError as exc:
        raise BackupIOError(f"Backup file {input_path} is too large to encrypt in memory") from exc
    except OSError as exc:
        raise BackupIOError(f"Error reading input file {input_path}: {exc}") from exc

    nonce = os.urandom(NONCE_LEN)
    try:
        blob = nonce + cipher.encrypt(nonce, plaintext, None)
    except (OverflowError, MemoryError) as exc:
        # AES-GCM seals the whole file at once; max 2**31 - 1 bytes
        raise BackupIOError(
            f"Backup file {input_path} ({len(plaintext)} bytes) exceeds the whole-file encryption limit: {exc}"
        ) from exc

    try:
        with open(output_path, "wb") as fout:
            fout.write(blob)
    except OSError as exc:
        _remove_quietly(output_path)
        raise BackupIOError(f"Error writing encrypted file {output_path}: {exc}") from exc


def decrypt_file(*, input_path: Path, output_path: Path, key: bytes) -> None:
    """Decrypt an encrypted backup artifact to an output file.

    Nothing is written to ``output_path`` unless the authentication tag verifies.

    Args:
        input_path: Encrypted artifact.
        output_path: Destination path for decrypted bytes.
        key: 32-byte key from ``derive_key``.

    Raises:
        BackupIOError: When the input cannot be read or the output cannot be written.
        FormatError: When the blob is shorter than the nonce.
        CryptoSetupError: When the key is malformed.
        AuthenticationError: When the key is wrong or the blob was modified or truncated.
    """

    input_path = Path(input_path)
    output_path = Path(output_path)

    try:
        blob = input_path.read_bytes()
    except OSError as exc:
        raise BackupIOError(f"Error reading encrypted file {input_path}: {exc}") from exc

    if len(blob) < NONCE_LEN:
        raise FormatError(f"Ciphertext too short ({len(blob)} bytes, nonce is {NONCE_LEN})")

    cipher = _build_cipher(key)
    nonce, sealed = blob[:NONCE_LEN], blob[NONCE_LEN:]

    try:
        plaintext = cipher.decrypt(nonce, sealed, None)
    except InvalidTag as exc:
        raise AuthenticationError("Invalid encryption key or corrupted backup") from exc

    tmp_output = Path(str(output_path) + ".tmp")
    try:
        with open(tmp_output, "wb") as fout:
            fout.write(plaintext)
        tmp_output.replace(output_path)
    except OSError as exc:
        _remove_quietly(tmp_output)
        raise BackupIOError(f"Error writing decrypted file {output_path}: {exc}") from exc


def decrypted_output_path(encrypted_path: Path | str) -> Path:
    """Return the default destination for decrypting an artifact.

    The first ``.enc`` in the file name is dropped, so ``a.sql.enc`` becomes
    ``a.sql``. Directory components are left untouched.

    Args:
        encrypted_path: Path to the encrypted artifact.

    Returns:
        Path: Destination path for the decrypted file.
    """

    path = Path(encrypted_path)
    if ENCRYPTED_SUFFIX not in path.name:
        return path.with_name(path.name + ".dec")
    return path.with_name(path.name.replace(ENCRYPTED_SUFFIX, "", 1))
