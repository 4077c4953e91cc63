"""
Path Utilities
==============

Output-file handling for the file-level encrypt/decrypt helpers.
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

_log = logging.getLogger("sealstream.files")

BLOCK_SIZE = 64 * 1024


def _overwrite_with_zeros(path: Path) -> None:
    """Zero the file in place and sync it to disk."""
    file_size = path.stat().st_size
    zeros = b"\x00" * min(BLOCK_SIZE, file_size)
    with open(path, "r+b") as f:
        bytes_written = 0
        while bytes_written < file_size:
            chunk_size = min(BLOCK_SIZE, file_size - bytes_written)
            f.write(zeros[:chunk_size])
            bytes_written += chunk_size
        f.flush()
        os.fsync(f.fileno())


@contextmanager
def atomic_output(path: Path) -> Iterator[BinaryIO]:
    """
    Write to a temporary file next to ``path`` and move it into place.

    The temporary file is created with owner-only permissions in the
    destination directory (so the final rename never crosses devices).
    If the block raises, the temporary file is overwritten with zeros and
    removed, and ``path`` is left untouched.

    Usage:
        with atomic_output(Path("out.bin")) as fh:
            fh.write(data)
            if not verified:
                raise IntegrityError(...)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            yield fh
        os.replace(temp_path, path)
    except BaseException:
        try:
            _overwrite_with_zeros(temp_path)
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            _log.warning("Could not scrub temporary file %s", temp_path)
            try:
                temp_path.unlink()
            except OSError:
                _log.warning("Could not remove temporary file %s", temp_path)
        raise


def default_decrypted_path(encrypted_path: Path, suffix: str) -> Path:
    """Strip ``suffix`` from the name, or append ``.dec`` if it is absent."""
    if encrypted_path.name.endswith(suffix) and len(encrypted_path.name) > len(suffix):
        return encrypted_path.with_name(encrypted_path.name[: -len(suffix)])
    return encrypted_path.with_name(encrypted_path.name + ".dec")
