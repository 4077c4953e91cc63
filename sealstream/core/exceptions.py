"""
Error Taxonomy
==============

Every failure the engine reports is a subclass of ``SealError``.

Categories:
    - FormatError: envelope is malformed (detected without cryptographic work)
    - CryptoError: key derivation or cipher primitive failure
    - AuthenticationError: tag mismatch (wrong password OR tampering)
    - CancelledError: progress callback requested an abort
    - ResourceError: the source or sink could not be read/written

Security Notes:
    - Wrong password and tampered ciphertext deliberately raise the
      same AuthenticationError with the same message
    - Messages never contain key, password or plaintext material
"""

from __future__ import annotations


class SealError(Exception):
    """Base class for all sealstream errors."""
    pass


class FormatError(SealError):
    """Raised when an envelope or source has an invalid layout or size."""
    pass


class CryptoError(SealError):
    """Raised when key derivation or the AEAD primitive fails."""
    pass


class AuthenticationError(CryptoError):
    """
    Raised when the authentication tag does not verify.

    Any plaintext already written to the sink must be discarded.
    """
    pass


class CancelledError(SealError):
    # raised when the progress callback returns True
    pass


class ResourceError(SealError):
    # raised when the source or sink fails at the I/O level
    pass
