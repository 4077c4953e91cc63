"""
Envelope Codec
==============

Fixed-layout framing around the AES-256-GCM ciphertext.

Wire format (no padding):
    offset  size  field
    0       7     format tag b"GCMv1__"
    7       16    salt
    23      12    nonce
    35      N     ciphertext (N = plaintext length)
    35+N    16    authentication tag

Total size is 51 + N; 51 is the smallest valid envelope (empty plaintext).

The PBKDF2 iteration count is not part of the format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Final

from sealstream.core.crypto.kdf import NONCE_LENGTH, SALT_LENGTH
from sealstream.core.crypto.provider import TAG_LENGTH
from sealstream.core.exceptions import FormatError
from sealstream.utils.streams import read_exact

FORMAT_TAG: Final[bytes] = b"GCMv1__"
FORMAT_TAG_SIZE: Final[int] = len(FORMAT_TAG)
SALT_SIZE: Final[int] = SALT_LENGTH
NONCE_SIZE: Final[int] = NONCE_LENGTH
TAG_SIZE: Final[int] = TAG_LENGTH
HEADER_SIZE: Final[int] = FORMAT_TAG_SIZE + SALT_SIZE + NONCE_SIZE  # 35
ENVELOPE_OVERHEAD: Final[int] = HEADER_SIZE + TAG_SIZE  # 51


def envelope_size(plaintext_length: int) -> int:
    """Size of the envelope produced for a plaintext of the given length."""
    return plaintext_length + ENVELOPE_OVERHEAD


def ciphertext_size(envelope_length: int) -> int:
    """
    Ciphertext length carried by an envelope of the given total length.

    Raises:
        FormatError: If the envelope is shorter than the fixed overhead
    """
    if envelope_length < ENVELOPE_OVERHEAD:
        raise FormatError("Encrypted input is too short")
    return envelope_length - ENVELOPE_OVERHEAD


@dataclass(frozen=True, slots=True)
class EnvelopeHeader:
    """Salt and nonce as they appear after the format tag."""

    salt: bytes
    nonce: bytes

    def __post_init__(self) -> None:
        if len(self.salt) != SALT_SIZE:
            raise FormatError(f"Salt must be exactly {SALT_SIZE} bytes")
        if len(self.nonce) != NONCE_SIZE:
            raise FormatError(f"Nonce must be exactly {NONCE_SIZE} bytes")

    def to_bytes(self) -> bytes:
        return FORMAT_TAG + self.salt + self.nonce

    def __repr__(self) -> str:
        return f"EnvelopeHeader(salt_len={len(self.salt)}, nonce_len={len(self.nonce)})"


@dataclass(frozen=True, slots=True)
class Envelope:
    """
    A complete in-memory envelope.

    Parsing only checks the layout; the tag is verified by decryption.
    """

    header: EnvelopeHeader
    ciphertext: bytes
    tag: bytes

    def __post_init__(self) -> None:
        if len(self.tag) != TAG_SIZE:
            raise FormatError(f"Tag must be exactly {TAG_SIZE} bytes")

    def to_bytes(self) -> bytes:
        return self.header.to_bytes() + self.ciphertext + self.tag

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        """
        Split a serialized envelope into its fields.

        Raises:
            FormatError: If data is too short or has the wrong format tag
        """
        ciphertext_size(len(data))
        if data[:FORMAT_TAG_SIZE] != FORMAT_TAG:
            raise FormatError("Invalid format")

        salt_end = FORMAT_TAG_SIZE + SALT_SIZE
        return cls(
            header=EnvelopeHeader(
                salt=bytes(data[FORMAT_TAG_SIZE:salt_end]),
                nonce=bytes(data[salt_end:HEADER_SIZE]),
            ),
            ciphertext=bytes(data[HEADER_SIZE:len(data) - TAG_SIZE]),
            tag=bytes(data[len(data) - TAG_SIZE:]),
        )

    def __len__(self) -> int:
        return len(self.ciphertext) + ENVELOPE_OVERHEAD

    def __repr__(self) -> str:
        return f"Envelope(ciphertext_len={len(self.ciphertext)})"


def write_header(sink: BinaryIO, header: EnvelopeHeader) -> int:
    """Write format tag, salt and nonce; return the number of bytes written."""
    data = header.to_bytes()
    sink.write(data)
    return len(data)


def read_header(source: BinaryIO) -> EnvelopeHeader:
    """
    Read and validate the envelope header from the current position.

    Raises:
        FormatError: On a short read or format tag mismatch
    """
    tag = read_exact(source, FORMAT_TAG_SIZE)
    if tag != FORMAT_TAG:
        raise FormatError("Invalid format")

    salt = read_exact(source, SALT_SIZE)
    if len(salt) < SALT_SIZE:
        raise FormatError("Failed to read salt")

    nonce = read_exact(source, NONCE_SIZE)
    if len(nonce) < NONCE_SIZE:
        raise FormatError("Failed to read initialization vector")

    return EnvelopeHeader(salt=salt, nonce=nonce)


def read_tag(source: BinaryIO) -> bytes:
    """
    Read the trailing authentication tag and ensure nothing follows it.

    Raises:
        FormatError: If the tag is truncated or trailing data is present
    """
    tag = read_exact(source, TAG_SIZE)
    if len(tag) < TAG_SIZE:
        raise FormatError("Unable to retrieve authentication tag")
    if source.read(1):
        raise FormatError("Trailing data after authentication tag")
    return tag
