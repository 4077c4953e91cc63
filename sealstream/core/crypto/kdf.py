"""
Key Derivation Functions
========================

Password-based key derivation and header randomness.

Implements:
    - PBKDF2-HMAC-SHA256 for password stretching
    - CSPRNG salt and nonce generation

The iteration count is NOT stored in the envelope. Data encrypted with
one count can only be decrypted with the same count; a mismatch derives
a different key and surfaces as an authentication failure.
"""

from __future__ import annotations

import secrets
from typing import Callable, Final

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

KEY_LENGTH: Final[int] = 32  # 256 bits
SALT_LENGTH: Final[int] = 16
NONCE_LENGTH: Final[int] = 12  # 96 bits (NIST recommended for GCM)

RandomSource = Callable[[int], bytes]


def generate_salt(random_bytes: RandomSource = secrets.token_bytes) -> bytes:
    """Draw a ``SALT_LENGTH``-byte salt from ``random_bytes`` (OS CSPRNG by default)."""
    return random_bytes(SALT_LENGTH)


def generate_nonce(random_bytes: RandomSource = secrets.token_bytes) -> bytes:
    """
    Draw a ``NONCE_LENGTH``-byte GCM nonce from ``random_bytes``.

    Every envelope also gets a fresh salt, hence a fresh key, so a
    (key, nonce) pair is never reused even on a nonce collision.
    """
    return random_bytes(NONCE_LENGTH)


def derive_key_pbkdf2(
    password: str | bytes | bytearray,
    salt: bytes,
    iterations: int,
    length: int = KEY_LENGTH,
) -> bytes:
    """
    Derive a key from password using PBKDF2-HMAC-SHA256.

    Args:
        password: User password (text is UTF-8 encoded)
        salt: Random salt
        iterations: PBKDF2 iteration count
        length: Output key length

    Returns:
        Derived key bytes
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password)
