"""
Zeroization
===========

In-place wiping of password and key buffers, and the scope guard the
cipher session uses as its single cleanup point.

A ``ZeroizeContext`` wipes everything registered with it when the
``with`` block exits, on success and on error alike. Material created
part way through an operation can be registered late with ``track()``.
"""

from __future__ import annotations

import ctypes
import logging
from typing import Any, Final, List

# final pass leaves zeros
WIPE_PATTERNS: Final[tuple[int, ...]] = (0x00, 0xFF, 0x00)

_log = logging.getLogger("sealstream.memory")


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Overwrite a mutable buffer in place.

    A bytearray is overwritten with each of ``WIPE_PATTERNS`` through
    ``ctypes.memset``; a memoryview (for instance ``BytesIO.getbuffer()``)
    is zero-filled through slice assignment. Best effort: copies made
    elsewhere by the interpreter are out of reach.
    """
    size = len(data)
    if size == 0:
        return

    if isinstance(data, memoryview):
        data[:] = bytes(size)
        return

    try:
        address = ctypes.addressof((ctypes.c_char * size).from_buffer(data))
    except (TypeError, ValueError):
        data[:] = bytes(size)
        return
    for pattern in WIPE_PATTERNS:
        ctypes.memset(address, pattern, size)


class ZeroizeContext:
    """
    Wipes every tracked buffer when the block exits.

    Usage:
        with ZeroizeContext() as guard:
            password = guard.track(SecureBuffer.from_password(pwd))
            key = guard.track(SecureBuffer.from_bytes(derive(...)))
            encrypt(data, key.view)
        # password and key are now zeroed
    """

    __slots__ = ("_tracked",)

    def __init__(self, *buffers: Any) -> None:
        self._tracked: List[Any] = list(buffers)

    def track(self, buffer: Any) -> Any:
        """Register a SecureBuffer or bytearray for wiping; returns it."""
        self._tracked.append(buffer)
        return buffer

    def wipe_all(self) -> None:
        for buf in self._tracked:
            try:
                if isinstance(buf, (bytearray, memoryview)):
                    secure_zero(buf)
                else:
                    buf.wipe()
            except Exception:
                _log.exception("Failed to wipe %s", type(buf).__name__)
        self._tracked.clear()

    def __enter__(self) -> "ZeroizeContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe_all()
