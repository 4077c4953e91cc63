"""
Secure Memory Buffers
=====================

``SecureBuffer`` holds a password copy or a derived key in a mutable
``bytearray`` that is overwritten in place when released.

Security Properties:
- Pages are locked against swapping where the OS allows it
- ``wipe()`` runs on context exit, on ``ZeroizeContext`` exit and in ``__del__``

Limitations:
- Immutable ``bytes`` given to ``from_bytes`` are copied, not wiped
- Locking is best effort; failure to lock is not an error
"""

from __future__ import annotations

import ctypes
import ctypes.util
import sys
from typing import Final, Optional

from sealstream.core.memory.zeroization import secure_zero

MAX_BUFFER_SIZE: Final[int] = 1024 * 1024  # passwords and keys only


def _load_libc() -> Optional[ctypes.CDLL]:
    if sys.platform == "win32":
        return None
    name = ctypes.util.find_library("c")
    try:
        return ctypes.CDLL(name, use_errno=True) if name else None
    except OSError:
        return None


_LIBC: Final[Optional[ctypes.CDLL]] = _load_libc()


def _set_page_lock(address: int, size: int, locked: bool) -> bool:
    """mlock/munlock (VirtualLock/VirtualUnlock on Windows). True on success."""
    addr, length = ctypes.c_void_p(address), ctypes.c_size_t(size)
    try:
        if sys.platform == "win32":
            kernel32 = ctypes.windll.kernel32
            call = kernel32.VirtualLock if locked else kernel32.VirtualUnlock
            return bool(call(addr, length))
        if _LIBC is None:
            return False
        call = _LIBC.mlock if locked else _LIBC.munlock
        return call(addr, length) == 0
    except (OSError, AttributeError):
        return False


class SecureBuffer:
    """
    Fixed-size, zeroizable byte buffer.

    ``view`` returns the live ``bytearray`` (not a copy), which the AEAD
    primitive and PBKDF2 accept directly as bytes-like input.

    Usage:
        with SecureBuffer.from_password("correct-password") as secret:
            key = derive_key_pbkdf2(secret.view, salt, iterations)
        # secret is zeroed here
    """

    __slots__ = ("_data", "_wiped", "_locked")

    def __init__(self, size: int, lock_memory: bool = True) -> None:
        if not 0 <= size <= MAX_BUFFER_SIZE:
            raise ValueError(f"Buffer size must be between 0 and {MAX_BUFFER_SIZE}, got {size}")
        self._data = bytearray(size)
        self._wiped = False
        self._locked = bool(size) and lock_memory and _set_page_lock(self._address(), size, True)

    @classmethod
    def from_bytes(
        cls,
        data: bytes | bytearray | memoryview,
        lock_memory: bool = True,
        wipe_source: bool = False,
    ) -> SecureBuffer:
        """
        Copy ``data`` into a new buffer.

        Args:
            data: Source bytes
            lock_memory: Try to lock the new buffer's pages
            wipe_source: Zero ``data`` after copying when it is a bytearray
        """
        buf = cls(len(data), lock_memory=lock_memory)
        buf._data[:] = data
        if wipe_source and isinstance(data, bytearray):
            secure_zero(data)
        return buf

    @classmethod
    def from_password(cls, password: str | bytes | bytearray | memoryview) -> SecureBuffer:
        """UTF-8 encode text passwords; copy bytes-like ones as they are."""
        if isinstance(password, str):
            return cls.from_bytes(bytearray(password.encode("utf-8")), wipe_source=True)
        return cls.from_bytes(password)

    def _address(self) -> int:
        return ctypes.addressof((ctypes.c_char * len(self._data)).from_buffer(self._data))

    @property
    def view(self) -> bytearray:
        if self._wiped:
            raise ValueError("Buffer has been wiped")
        return self._data

    @property
    def is_wiped(self) -> bool:
        return self._wiped

    @property
    def is_locked(self) -> bool:
        return self._locked

    def wipe(self) -> None:
        """Zero the contents and release the page lock. Idempotent."""
        if self._wiped:
            return
        secure_zero(self._data)
        if self._locked:
            _set_page_lock(self._address(), len(self._data), False)
            self._locked = False
        self._wiped = True

    def __enter__(self) -> SecureBuffer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    def __del__(self) -> None:
        # interpreter shutdown may have torn down ctypes already
        try:
            self.wipe()
        except Exception:
            pass

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        if self._wiped:
            return "SecureBuffer(WIPED)"
        return f"SecureBuffer(size={len(self._data)}, locked={self._locked})"
