"""
Utils module - Stream and path helpers used throughout SealStream.
"""

from sealstream.utils.paths import atomic_output, default_decrypted_path
from sealstream.utils.streams import ByteSource, as_stream, read_exact, stream_size

__all__ = [
    "atomic_output",
    "default_decrypted_path",
    "ByteSource",
    "as_stream",
    "read_exact",
    "stream_size",
]
