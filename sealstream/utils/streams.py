"""
Stream Utilities
================

Helpers for the byte sources and sinks handed to the cipher session.

A source is either a bytes-like object or a readable binary stream.
Its remaining length must be discoverable up front, which for streams
means they must be seekable.
"""

from __future__ import annotations

import io
import os
from typing import BinaryIO, Optional, Union

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


def as_stream(source: ByteSource) -> BinaryIO:
    """Wrap bytes-like sources in a BytesIO; return streams unchanged."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(source)
    return source


def stream_size(stream: BinaryIO) -> Optional[int]:
    """
    Return the number of bytes between the current position and the end.

    Returns None when the stream cannot report its size (not seekable).
    The stream position is left unchanged.
    """
    seekable = getattr(stream, "seekable", None)
    if seekable is None or not seekable():
        return None

    position = stream.tell()
    end = stream.seek(0, os.SEEK_END)
    stream.seek(position, os.SEEK_SET)
    return max(end - position, 0)


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """
    Read up to ``size`` bytes, retrying short reads until EOF.

    Returns fewer than ``size`` bytes only if the stream ended.
    """
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
