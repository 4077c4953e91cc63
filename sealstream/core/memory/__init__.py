"""
Secure memory handling for key and password material.

Components:
- secure_memory.py: SecureBuffer, a lockable zeroizable bytearray
- zeroization.py: secure_zero and the ZeroizeContext scope guard

WARNING:
- Python's memory model doesn't guarantee secure erasure
- These are best-effort mitigations
"""

from sealstream.core.memory.secure_memory import SecureBuffer
from sealstream.core.memory.zeroization import secure_zero, ZeroizeContext

__all__ = [
    "SecureBuffer",
    "secure_zero",
    "ZeroizeContext",
]
