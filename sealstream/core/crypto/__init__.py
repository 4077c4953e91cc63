"""
SealStream Cryptographic Core
=============================

Streaming password-based authenticated encryption.

Architecture:
    1. kdf: PBKDF2-HMAC-SHA256 key derivation, salt and nonce generation
    2. provider: Injectable AEAD provider (AES-256-GCM contexts, CSPRNG)
    3. envelope: Wire format (format tag, salt, nonce, ciphertext, tag)
    4. transfer: Chunked copy loop with progress and cancellation
    5. aes_gcm: The reusable cipher session tying the above together

WARNING: This module handles sensitive cryptographic material.
         Incorrect usage can compromise security.
"""

from sealstream.core.crypto.aes_gcm import Aes256Gcm, CipherResult
from sealstream.core.crypto.envelope import Envelope, EnvelopeHeader, ENVELOPE_OVERHEAD
from sealstream.core.crypto.provider import AeadSession, CryptoProvider, default_provider

__all__ = [
    "Aes256Gcm",
    "CipherResult",
    "Envelope",
    "EnvelopeHeader",
    "ENVELOPE_OVERHEAD",
    "AeadSession",
    "CryptoProvider",
    "default_provider",
]
