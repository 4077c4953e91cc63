"""
Cryptographic Primitive Provider
================================

Narrow wrapper around the ``cryptography`` package exposing exactly what
the cipher session needs:

    - random_bytes(n)
    - derive_key(password, salt, iterations, length)
    - new_session() -> AeadSession with init/update/finalize/get_tag/set_tag

The provider is built once at import (``default_provider()``) and injected into
every ``Aes256Gcm`` explicitly, so tests can substitute a spy or a
failing provider.
"""

from __future__ import annotations

import secrets
from enum import Enum, auto
from typing import Final, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from sealstream.core.crypto.kdf import KEY_LENGTH, NONCE_LENGTH, derive_key_pbkdf2
from sealstream.core.exceptions import AuthenticationError, CryptoError

TAG_LENGTH: Final[int] = 16  # 128 bits


class Direction(Enum):
    ENCRYPT = auto()
    DECRYPT = auto()


class AeadSession:
    """
    Single AES-256-GCM operation driven through update/finalize.

    The session holds at most one live encryption or decryption context.
    ``reset()`` discards it; ``init()`` always resets first, so a session
    object can be reused for any number of sequential operations.

    Decrypt side: the tag must be provided with ``set_tag()`` before
    ``finalize()``, which is where authentication happens.
    """

    __slots__ = ("_ctx", "_direction", "_tag")

    def __init__(self) -> None:
        self._ctx = None
        self._direction: Optional[Direction] = None
        self._tag: Optional[bytes] = None

    @property
    def direction(self) -> Optional[Direction]:
        return self._direction

    def reset(self) -> None:
        """Drop any in-flight cipher context."""
        self._ctx = None
        self._direction = None
        self._tag = None

    def init(self, direction: Direction, key: bytes | bytearray, nonce: bytes) -> None:
        """
        Start a new operation.

        Raises:
            CryptoError: If key or nonce have the wrong size
        """
        self.reset()
        if len(key) != KEY_LENGTH:
            raise CryptoError(f"Key must be exactly {KEY_LENGTH} bytes")
        if len(nonce) != NONCE_LENGTH:
            raise CryptoError(f"Nonce must be exactly {NONCE_LENGTH} bytes")

        cipher = Cipher(algorithms.AES(key), modes.GCM(nonce))
        self._ctx = cipher.encryptor() if direction is Direction.ENCRYPT else cipher.decryptor()
        self._direction = direction

    def _require(self, direction: Optional[Direction] = None):
        if self._ctx is None:
            raise CryptoError("Cipher session not initialized")
        if direction is not None and self._direction is not direction:
            raise CryptoError(f"Operation requires {direction.name.lower()} mode")
        return self._ctx

    def update(self, chunk: bytes) -> bytes:
        """Process a chunk; GCM output length equals input length."""
        return self._require().update(chunk)

    def set_tag(self, tag: bytes) -> None:
        """Provide the expected authentication tag (decrypt only)."""
        self._require(Direction.DECRYPT)
        if len(tag) != TAG_LENGTH:
            raise CryptoError(f"Tag must be exactly {TAG_LENGTH} bytes")
        self._tag = bytes(tag)

    def finalize(self) -> bytes:
        """
        Finish the operation.

        Raises:
            AuthenticationError: If the decrypt-side tag does not verify
            CryptoError: If the decrypt-side tag was never set
        """
        ctx = self._require()
        if self._direction is Direction.ENCRYPT:
            return ctx.finalize()

        if self._tag is None:
            raise CryptoError("Authentication tag not set")
        try:
            return ctx.finalize_with_tag(self._tag)
        except InvalidTag as e:
            raise AuthenticationError("Authentication failed") from e

    def get_tag(self) -> bytes:
        """Return the tag of a finalized encryption."""
        return self._require(Direction.ENCRYPT).tag


class CryptoProvider:
    """
    Source of randomness, key derivation and AEAD sessions.

    Security:
        - Randomness from the OS CSPRNG via ``secrets``
        - Keys from PBKDF2-HMAC-SHA256
        - AES-256-GCM with 96-bit nonce and 128-bit tag
    """

    def random_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)

    def derive_key(
        self,
        password: bytes | bytearray,
        salt: bytes,
        iterations: int,
        length: int = KEY_LENGTH,
    ) -> bytes:
        return derive_key_pbkdf2(password, salt, iterations, length)

    def new_session(self) -> AeadSession:
        return AeadSession()


_DEFAULT_PROVIDER: Final[CryptoProvider] = CryptoProvider()


def default_provider() -> CryptoProvider:
    """Return the provider built at import time."""
    return _DEFAULT_PROVIDER
