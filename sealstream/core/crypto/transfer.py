"""
Chunked transfer loop and progress gate.

The loop is synchronous: read a chunk, transform it, write the output,
report progress. Cancellation is only observed between chunks, so an
abort requested on the first report still lets that chunk complete.
"""

from __future__ import annotations

from typing import BinaryIO, Callable, Optional

from sealstream.core.exceptions import CancelledError

# (bytes processed so far, bytes expected in total) -> True to abort
ProgressCallback = Callable[[int, int], bool]


class ProgressGate:
    """Wraps an optional progress callback; a missing callback never cancels."""

    __slots__ = ("_callback",)

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback

    def report(self, processed: int, total: int) -> bool:
        """Invoke the callback; return True if it asked to abort."""
        if self._callback is None:
            return False
        return bool(self._callback(processed, total))

    def check(self, processed: int, total: int, message: str) -> None:
        """
        Report progress and raise if the callback asked to abort.

        Raises:
            CancelledError: With ``message`` when the callback returns True
        """
        if self.report(processed, total):
            raise CancelledError(message)


def pump(
    source: BinaryIO,
    sink: BinaryIO,
    transform: Callable[[bytes], bytes],
    gate: ProgressGate,
    *,
    processed: int,
    total: int,
    chunk_size: int,
    limit: Optional[int] = None,
    message: str = "Operation aborted",
) -> int:
    """
    Move bytes from ``source`` through ``transform`` into ``sink``.

    Args:
        source: Readable binary stream
        sink: Writable binary stream
        transform: Per-chunk function (the cipher update step)
        gate: Progress gate checked after every chunk
        processed: Progress count before the first chunk
        total: Progress total reported with every chunk
        chunk_size: Maximum bytes read per iteration
        limit: Stop after this many source bytes (None = until EOF)
        message: CancelledError message on abort

    Returns:
        The progress count after the last chunk
    """
    remaining = limit
    while remaining is None or remaining > 0:
        size = chunk_size if remaining is None else min(chunk_size, remaining)
        chunk = source.read(size)
        if not chunk:
            break

        out = transform(chunk)
        if out:
            sink.write(out)

        processed += len(chunk)
        if remaining is not None:
            remaining -= len(chunk)

        gate.check(processed, total, message)

    return processed
