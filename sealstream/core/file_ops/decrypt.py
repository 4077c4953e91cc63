"""
File Decryption
===============

Decrypts an envelope file with integrity verification.

Security Properties:
- Plaintext is streamed into a temporary file, not the destination
- The temporary file is moved into place only after the tag verifies
- On any failure the temporary file is zeroed and deleted (fail-closed)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sealstream.core.crypto.aes_gcm import Aes256Gcm
from sealstream.core.file_ops.encrypt import ENCRYPTED_FILE_SUFFIX
from sealstream.utils.paths import atomic_output, default_decrypted_path

_log = logging.getLogger("sealstream.files")


def decrypt_file(
    encrypted_path: Path | str,
    password: str | bytes,
    output_path: Optional[Path | str] = None,
    session: Optional[Aes256Gcm] = None,
) -> Path:
    """
    Decrypt an envelope file.

    Args:
        encrypted_path: Path to the envelope file
        password: Decryption password
        output_path: Destination (default: input without ``.gcm``, or
            input + ``.dec`` when it has no such suffix)
        session: Cipher session to use; its iteration count must match
            the one used for encryption

    Returns:
        Path to the decrypted file

    Raises:
        FileNotFoundError: If the envelope file does not exist
        AuthenticationError: Wrong password or tampered file
        SealError: Any other failure; nothing is written to output_path
    """
    encrypted_path = Path(encrypted_path)
    if not encrypted_path.is_file():
        raise FileNotFoundError(f"File not found: {encrypted_path}")

    if output_path is None:
        output_path = default_decrypted_path(encrypted_path, ENCRYPTED_FILE_SUFFIX)
    else:
        output_path = Path(output_path)

    session = session or Aes256Gcm()

    with open(encrypted_path, "rb") as src, atomic_output(output_path) as dst:
        session.decrypt(src, password, dst).raise_for_error()

    _log.info("Decrypted %s -> %s", encrypted_path.name, output_path.name)
    return output_path
