"""
AES-256-GCM Streaming Cipher Session
====================================

Password-based, chunked authenticated encryption into a self-describing
envelope (see :mod:`sealstream.core.crypto.envelope`).

Security Properties:
    - 256-bit key derived per call with PBKDF2-HMAC-SHA256 from a fresh salt
    - 96-bit random nonce per call
    - 128-bit authentication tag, verified at finalization
    - Key and password copies zeroed on every exit path

WARNING:
    - Decryption streams plaintext into the sink BEFORE the tag is checked.
      On any failed result the sink content must be discarded.
    - Wrong password and tampering produce the same AuthenticationError.
    - The iteration count is not stored in the envelope; decrypt with the
      same count that was used to encrypt.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, Tuple

from sealstream.core.config import DEFAULT_CHUNK_SIZE, DEFAULT_KDF_ITERATIONS, SecureConfig
from sealstream.core.crypto.envelope import (
    ENVELOPE_OVERHEAD,
    NONCE_SIZE,
    SALT_SIZE,
    EnvelopeHeader,
    envelope_size,
    read_header,
    read_tag,
    write_header,
)
from sealstream.core.crypto.kdf import KEY_LENGTH, generate_nonce, generate_salt
from sealstream.core.crypto.provider import AeadSession, CryptoProvider, Direction, default_provider
from sealstream.core.crypto.transfer import ProgressCallback, ProgressGate, pump
from sealstream.core.exceptions import (
    AuthenticationError,
    CryptoError,
    FormatError,
    ResourceError,
    SealError,
)
from sealstream.core.memory import SecureBuffer, ZeroizeContext, secure_zero
from sealstream.utils.streams import ByteSource, as_stream, stream_size

_log = logging.getLogger("sealstream.cipher")

_PASSWORD_TYPES = (str, bytes, bytearray, memoryview)


@dataclass(frozen=True, slots=True)
class CipherResult:
    """
    Outcome of one encrypt or decrypt call.

    Truthy only on success. ``processed`` and ``total`` are the final
    progress counters of a successful call and 0 otherwise.
    """

    ok: bool
    error: Optional[SealError] = None
    processed: int = 0
    total: int = 0

    def __bool__(self) -> bool:
        return self.ok

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def raise_for_error(self) -> None:
        """Raise the recorded error, if any."""
        if self.error is not None:
            raise self.error


def _guarded(step: Callable[[bytes], bytes], message: str) -> Callable[[bytes], bytes]:
    """Wrap a primitive call so that any failure becomes CryptoError(message)."""
    def call(chunk: bytes) -> bytes:
        try:
            return step(chunk)
        except Exception as e:
            raise CryptoError(message) from e
    return call


class Aes256Gcm:
    """
    Reusable AES-256-GCM cipher session.

    The session owns one AEAD context which is reset at the start of every
    call, so a single instance can process any number of messages one after
    another. It is not safe to share an instance between threads.

    Usage:
        aes = Aes256Gcm(iterations=600_000)
        with open("report.pdf", "rb") as src, open("report.pdf.gcm", "wb") as dst:
            result = aes.encrypt(src, "correct-password", dst)
        if not result:
            print(aes.last_error)

    Progress:
        ``on_progress(processed, total)`` is called after the header, after
        every chunk, and once at the end with processed == total. Returning
        True aborts the operation with CancelledError.
    """

    def __init__(
        self,
        iterations: int = DEFAULT_KDF_ITERATIONS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_progress: Optional[ProgressCallback] = None,
        provider: Optional[CryptoProvider] = None,
    ) -> None:
        self.iterations = iterations
        self.chunk_size = chunk_size
        self.on_progress = on_progress
        self._provider = provider or default_provider()
        self._session: Optional[AeadSession] = None
        self.last_error: str = ""
        self.last_exception: Optional[SealError] = None

    @classmethod
    def from_config(
        cls,
        config: SecureConfig,
        on_progress: Optional[ProgressCallback] = None,
        provider: Optional[CryptoProvider] = None,
    ) -> "Aes256Gcm":
        return cls(
            iterations=config.cipher.kdf_iterations,
            chunk_size=config.cipher.chunk_size,
            on_progress=on_progress,
            provider=provider,
        )

    @property
    def iterations(self) -> int:
        return self._iterations

    @iterations.setter
    def iterations(self, value: int) -> None:
        if value < 1:
            raise ValueError("Key derivation iterations must be positive")
        self._iterations = value

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @chunk_size.setter
    def chunk_size(self, value: int) -> None:
        if value < 1:
            raise ValueError("Chunk size must be positive")
        self._chunk_size = value

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def encrypt(self, source: ByteSource, password: str | bytes, sink: BinaryIO) -> CipherResult:
        """
        Encrypt ``source`` into one envelope written to ``sink``.

        Args:
            source: Bytes-like object or seekable binary stream (read from
                its current position to the end; may be empty)
            password: Text (UTF-8 encoded) or bytes
            sink: Writable binary stream

        Returns:
            CipherResult; on failure ``last_error`` holds the cause and the
            sink content is unusable
        """
        return self._run("Encryption", self._encrypt, source, password, sink)

    def decrypt(self, source: ByteSource, password: str | bytes, sink: BinaryIO) -> CipherResult:
        """
        Decrypt one envelope from ``source`` into ``sink``.

        The plaintext in ``sink`` is trustworthy ONLY if the result is
        successful. Plaintext is written as it is produced and the tag is
        checked last, so a failed call may leave unauthenticated bytes in
        the sink.
        """
        return self._run("Decryption", self._decrypt, source, password, sink)

    def encrypt_bytes(self, data: bytes, password: str | bytes) -> bytes:
        """
        Encrypt an in-memory buffer and return the envelope.

        Raises:
            SealError: The recorded failure
        """
        sink = io.BytesIO()
        self.encrypt(data, password, sink).raise_for_error()
        return sink.getvalue()

    def decrypt_bytes(self, data: bytes, password: str | bytes) -> bytes:
        """
        Decrypt an in-memory envelope and return the verified plaintext.

        Unauthenticated output is wiped and never returned.

        Raises:
            SealError: The recorded failure
        """
        sink = io.BytesIO()
        result = self.decrypt(data, password, sink)
        if not result:
            with sink.getbuffer() as view:
                secure_zero(view)
            result.raise_for_error()
        return sink.getvalue()

    # ------------------------------------------------------------------
    # Single cleanup point
    # ------------------------------------------------------------------

    def _run(
        self,
        label: str,
        operation: Callable[[BinaryIO, str | bytes, BinaryIO, ZeroizeContext], Tuple[int, int]],
        source: ByteSource,
        password: str | bytes,
        sink: BinaryIO,
    ) -> CipherResult:
        if not isinstance(password, _PASSWORD_TYPES):
            raise TypeError("password must be str or bytes-like")

        self.last_error = ""
        self.last_exception = None

        try:
            with ZeroizeContext() as guard:
                processed, total = operation(as_stream(source), password, sink, guard)
        except SealError as e:
            error = e
        except OSError as e:
            error = ResourceError(f"Stream I/O failed: {e.strerror or type(e).__name__}")
            error.__cause__ = e
        except Exception as e:
            _log.error("%s failed with an unexpected %s", label, type(e).__name__, exc_info=True)
            error = SealError("Unknown exception")
            error.__cause__ = e
        else:
            _log.debug("%s complete (%d bytes)", label, total)
            return CipherResult(ok=True, processed=processed, total=total)
        finally:
            if self._session is not None:
                self._session.reset()

        self.last_error = str(error)
        self.last_exception = error
        _log.warning("%s failed: %s", label, error)
        return CipherResult(ok=False, error=error)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _begin(self) -> AeadSession:
        """Return the session's AEAD context, freshly reset."""
        if self._session is None:
            try:
                self._session = self._provider.new_session()
            except Exception as e:
                raise ResourceError("Failed to create context") from e
        self._session.reset()
        return self._session

    @staticmethod
    def _source_size(stream: BinaryIO) -> int:
        size = stream_size(stream)
        if size is None:
            raise FormatError("Invalid stream size: source must report its length")
        return size

    def _generate_salt_and_nonce(self) -> Tuple[bytes, bytes]:
        try:
            salt = generate_salt(self._provider.random_bytes)
            nonce = generate_nonce(self._provider.random_bytes)
        except Exception as e:
            raise CryptoError("Salt/IV generation failed") from e
        if len(salt) != SALT_SIZE or len(nonce) != NONCE_SIZE:
            raise CryptoError("Salt/IV generation failed")
        return salt, nonce

    def _derive_key(self, password: str | bytes, salt: bytes, guard: ZeroizeContext) -> SecureBuffer:
        secret = guard.track(SecureBuffer.from_password(password))
        try:
            derived = self._provider.derive_key(secret.view, salt, self._iterations, KEY_LENGTH)
        except Exception as e:
            raise CryptoError("Key derivation failed") from e
        if derived is None or len(derived) != KEY_LENGTH:
            raise CryptoError("Key derivation failed")
        # PBKDF2 returns immutable bytes; only this copy can be wiped
        return guard.track(SecureBuffer.from_bytes(derived))

    def _encrypt(
        self,
        source: BinaryIO,
        password: str | bytes,
        sink: BinaryIO,
        guard: ZeroizeContext,
    ) -> Tuple[int, int]:
        size = self._source_size(source)
        total = envelope_size(size)
        aead = self._begin()

        salt, nonce = self._generate_salt_and_nonce()
        key = self._derive_key(password, salt, guard)

        try:
            aead.init(Direction.ENCRYPT, key.view, nonce)
        except Exception as e:
            raise CryptoError("Cipher initialization failed") from e

        gate = ProgressGate(self.on_progress)
        processed = write_header(sink, EnvelopeHeader(salt=salt, nonce=nonce))
        gate.check(processed, total, "Encryption aborted")

        processed = pump(
            source,
            sink,
            _guarded(aead.update, "Encryption failed"),
            gate,
            processed=processed,
            total=total,
            chunk_size=self._chunk_size,
            limit=size,
            message="Encryption aborted",
        )

        try:
            tail = aead.finalize()
            tag = aead.get_tag()
        except Exception as e:
            raise CryptoError("Finalization failed") from e

        if tail:
            sink.write(tail)
        sink.write(tag)
        processed += len(tag)

        gate.check(processed, total, "Encryption aborted")
        return processed, total

    def _decrypt(
        self,
        source: BinaryIO,
        password: str | bytes,
        sink: BinaryIO,
        guard: ZeroizeContext,
    ) -> Tuple[int, int]:
        size = self._source_size(source)
        if size < ENVELOPE_OVERHEAD:
            raise FormatError("Encrypted input is too short")

        header = read_header(source)
        aead = self._begin()
        key = self._derive_key(password, header.salt, guard)

        try:
            aead.init(Direction.DECRYPT, key.view, header.nonce)
        except Exception as e:
            raise CryptoError("Initialization failed") from e

        gate = ProgressGate(self.on_progress)
        processed = ENVELOPE_OVERHEAD
        gate.check(processed, size, "Decryption aborted")

        pump(
            source,
            sink,
            _guarded(aead.update, "Decryption failed"),
            gate,
            processed=processed,
            total=size,
            chunk_size=self._chunk_size,
            limit=size - ENVELOPE_OVERHEAD,
            message="Decryption aborted",
        )

        tag = read_tag(source)
        try:
            aead.set_tag(tag)
        except Exception as e:
            raise CryptoError("Failed to set authentication tag") from e

        try:
            tail = aead.finalize()
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError("Authentication failed") from e

        if tail:
            sink.write(tail)

        # Output is already authenticated; an abort here changes nothing.
        gate.report(size, size)
        return size, size

    def __repr__(self) -> str:
        return f"Aes256Gcm(iterations={self._iterations}, chunk_size={self._chunk_size})"


# ----------------------------------------------------------------------
# One-shot helpers with default settings
# ----------------------------------------------------------------------

def aes256_encrypt(
    data: bytes,
    password: str | bytes,
    on_progress: Optional[ProgressCallback] = None,
) -> bytes:
    """Encrypt bytes into an envelope; raises SealError on failure."""
    return Aes256Gcm(on_progress=on_progress).encrypt_bytes(data, password)


def aes256_decrypt(
    data: bytes,
    password: str | bytes,
    on_progress: Optional[ProgressCallback] = None,
) -> bytes:
    """Decrypt an envelope into verified plaintext; raises SealError on failure."""
    return Aes256Gcm(on_progress=on_progress).decrypt_bytes(data, password)


def aes256_encrypt_stream(
    source: ByteSource,
    password: str | bytes,
    sink: BinaryIO,
    on_progress: Optional[ProgressCallback] = None,
) -> CipherResult:
    return Aes256Gcm(on_progress=on_progress).encrypt(source, password, sink)


def aes256_decrypt_stream(
    source: ByteSource,
    password: str | bytes,
    sink: BinaryIO,
    on_progress: Optional[ProgressCallback] = None,
) -> CipherResult:
    return Aes256Gcm(on_progress=on_progress).decrypt(source, password, sink)
