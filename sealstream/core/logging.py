"""
Secure Logging Module
=====================

Logger factory for sealstream with redaction on every handler.

Security Features:
- ``name=value`` pairs whose name looks like a password, key or token
  have their value replaced
- Long hex/base64 runs (derived keys, salts, tags) are replaced
- Raw byte buffers passed as arguments are logged by length only
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Final, Iterable, Optional, Pattern

from sealstream.core.config import LoggingConfig

REDACTED: Final[str] = "[REDACTED]"

_SECRET_ASSIGNMENT: Final[Pattern[str]] = re.compile(
    r'(?i)\b(password|passphrase|passwd|pwd|secret|key|token|bearer)(\s*[=:]\s*)'
    r'("[^"]*"|\'[^\']*\'|\S+)'
)
_ENCODED_BLOB: Final[Pattern[str]] = re.compile(
    r'\b(?:0x)?[0-9a-fA-F]{32,}\b|[A-Za-z0-9+/]{40,}={0,2}'
)

_FILE_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
)


def redact(text: str, extra_patterns: Iterable[Pattern[str]] = ()) -> str:
    """Return ``text`` with secret-looking substrings replaced."""
    text = _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)
    text = _ENCODED_BLOB.sub(REDACTED, text)
    for pattern in extra_patterns:
        text = pattern.sub(REDACTED, text)
    return text


class SecureLogFilter(logging.Filter):
    """
    Scrubs log records in place. Records are never dropped.

    String arguments go through :func:`redact`; ``bytes``, ``bytearray``
    and ``memoryview`` arguments are replaced by ``<N bytes>`` so that
    key or plaintext buffers cannot reach a handler by accident.
    """

    def __init__(self, name: str = "", extra_patterns: Iterable[Pattern[str]] = ()) -> None:
        super().__init__(name)
        self._extra = tuple(extra_patterns)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg, self._extra)

        if isinstance(record.args, Mapping):
            record.args = {k: self._scrub(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._scrub(arg) for arg in record.args)

        return True

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            return redact(value, self._extra)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return f"<{len(value)} bytes>"
        return value


class SecureRotatingFileHandler(RotatingFileHandler):
    """Size-rotating UTF-8 log file; refuses ``..`` in the path."""

    def __init__(self, filename: str | Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5) -> None:
        path = Path(filename)
        if ".." in path.parts:
            raise ValueError("Log path cannot contain path traversal sequences")

        path = path.resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            str(path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )


def _console_handler(config: LoggingConfig, secure_filter: logging.Filter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(config.format, datefmt=config.date_format))
    handler.addFilter(secure_filter)
    return handler


def _file_handler(name: str, config: LoggingConfig, secure_filter: logging.Filter) -> logging.Handler:
    handler = SecureRotatingFileHandler(
        config.log_dir / f"{name.replace('.', '_')}.log",
        max_bytes=config.max_file_size_bytes,
        backup_count=config.backup_count,
    )
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=config.date_format))
    handler.addFilter(secure_filter)
    return handler


def get_secure_logger(name: str, config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Return the named logger with redacting handlers attached.

    Handlers are attached on the first call for a name only; later calls
    return the logger unchanged whatever ``config`` they pass. The logger
    does not propagate, so records reach only these handlers.

    Args:
        name: Logger name, usually "sealstream"
        config: Logging configuration (default: console only, INFO)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    if any(not isinstance(h, logging.NullHandler) for h in logger.handlers):
        return logger

    config = config or LoggingConfig()
    logger.setLevel(config.level.upper())

    secure_filter = SecureLogFilter()
    if config.enable_console:
        logger.addHandler(_console_handler(config, secure_filter))
    if config.enable_file and config.log_dir is not None:
        logger.addHandler(_file_handler(name, config, secure_filter))

    logger.propagate = False
    return logger
