"""
File Encryption
===============

Encrypts a file on disk into a single envelope file.

The envelope is written to a temporary file in the destination directory
and renamed into place only when encryption succeeds, so a failed or
cancelled run never leaves a truncated envelope at the output path.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final, Optional

from sealstream.core.crypto.aes_gcm import Aes256Gcm
from sealstream.utils.paths import atomic_output

ENCRYPTED_FILE_SUFFIX: Final[str] = ".gcm"

_log = logging.getLogger("sealstream.files")


def encrypt_file(
    source_path: Path | str,
    password: str | bytes,
    output_path: Optional[Path | str] = None,
    session: Optional[Aes256Gcm] = None,
) -> Path:
    """
    Encrypt a file.

    Args:
        source_path: Path to the file to encrypt
        password: Encryption password
        output_path: Destination (default: source + ``.gcm``)
        session: Cipher session to use (default: a new one with default settings)

    Returns:
        Path to the encrypted file

    Raises:
        FileNotFoundError: If the source does not exist
        SealError: If encryption fails
    """
    source_path = Path(source_path)
    if not source_path.is_file():
        raise FileNotFoundError(f"File not found: {source_path}")

    if output_path is None:
        output_path = source_path.with_name(source_path.name + ENCRYPTED_FILE_SUFFIX)
    else:
        output_path = Path(output_path)

    session = session or Aes256Gcm()

    with open(source_path, "rb") as src, atomic_output(output_path) as dst:
        session.encrypt(src, password, dst).raise_for_error()

    _log.info("Encrypted %s -> %s", source_path.name, output_path.name)
    return output_path
