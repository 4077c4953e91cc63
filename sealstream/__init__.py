"""
SealStream - Password-Based Streaming Encryption
================================================

This package seals byte streams of any size into a single authenticated
AES-256-GCM envelope, keyed from a password with PBKDF2-HMAC-SHA256.

Security Notice:
- No secrets are logged
- Fail-closed design pattern
- Key material is zeroed on every exit path
"""

import logging

from sealstream.core.config import SecureConfig
from sealstream.core.crypto.aes_gcm import (
    Aes256Gcm,
    CipherResult,
    aes256_decrypt,
    aes256_decrypt_stream,
    aes256_encrypt,
    aes256_encrypt_stream,
)
from sealstream.core.exceptions import (
    AuthenticationError,
    CancelledError,
    CryptoError,
    FormatError,
    ResourceError,
    SealError,
)
from sealstream.core.logging import get_secure_logger

__version__ = "0.1.0"

# silent unless the application configures logging
logging.getLogger("sealstream").addHandler(logging.NullHandler())

__all__ = [
    "Aes256Gcm",
    "CipherResult",
    "aes256_encrypt",
    "aes256_decrypt",
    "aes256_encrypt_stream",
    "aes256_decrypt_stream",
    "SealError",
    "FormatError",
    "CryptoError",
    "AuthenticationError",
    "CancelledError",
    "ResourceError",
    "SecureConfig",
    "get_secure_logger",
    "__version__",
]
