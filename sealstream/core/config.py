"""
Configuration
=============

Immutable settings for cipher sessions and logging, with optional
overrides from ``SEALSTREAM_SECTION__FIELD`` environment variables.

Nothing secret is configurable: passwords, keys, salts and nonces are
per-call values and environment variables naming them are ignored.
"""

from __future__ import annotations

import hashlib
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Final, Optional


DEFAULT_KDF_ITERATIONS: Final[int] = 600_000  # OWASP 2023, PBKDF2-HMAC-SHA256
DEFAULT_CHUNK_SIZE: Final[int] = 64 * 1024
MIN_RECOMMENDED_ITERATIONS: Final[int] = 100_000
MAX_CHUNK_SIZE: Final[int] = 64 * 1024 * 1024

ENV_PREFIX: Final[str] = "SEALSTREAM"

_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_SECRET_WORDS: Final[tuple[str, ...]] = (
    "password", "secret", "key", "token", "private", "credential", "salt", "nonce",
)


class SecurityWarning(UserWarning):
    """Emitted for settings that are accepted but weaken protection."""


def _names_secret(option: str) -> bool:
    option = option.lower()
    return any(word in option for word in _SECRET_WORDS)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class CipherConfig:
    """
    Cipher session settings.

    ``kdf_iterations`` must match between encryption and decryption; it
    is not recorded in the envelope.
    """

    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.kdf_iterations < 1:
            raise ValueError("Key derivation iterations must be positive")
        if not 0 < self.chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"Chunk size must be between 1 and {MAX_CHUNK_SIZE}")
        if self.kdf_iterations < MIN_RECOMMENDED_ITERATIONS:
            warnings.warn(
                f"kdf_iterations={self.kdf_iterations} is below the recommended "
                f"minimum of {MIN_RECOMMENDED_ITERATIONS}",
                SecurityWarning,
                stacklevel=3,
            )


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Handler settings consumed by :func:`sealstream.core.logging.get_secure_logger`."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_console: bool = True
    enable_file: bool = False
    log_dir: Optional[Path] = None
    max_file_size_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")
        if self.log_dir is not None and not self.log_dir.is_absolute():
            raise ValueError(f"log_dir must be an absolute path: {self.log_dir}")
        if self.enable_file and self.log_dir is None:
            raise ValueError("log_dir is required when file logging is enabled")


# "section.field" -> parser for the raw environment string
_ENV_FIELDS: Final[dict[str, Callable[[str], Any]]] = {
    "cipher.kdf_iterations": int,
    "cipher.chunk_size": int,
    "logging.level": str.upper,
    "logging.enable_console": _parse_bool,
    "logging.enable_file": _parse_bool,
    "logging.log_dir": Path,
}


@dataclass(frozen=True, slots=True, repr=False)
class SecureConfig:
    """
    Top-level configuration: one :class:`CipherConfig` and one
    :class:`LoggingConfig`.

    Usage:
        config = SecureConfig.load()          # SEALSTREAM_CIPHER__KDF_ITERATIONS=800000
        session = Aes256Gcm.from_config(config)
    """

    cipher: CipherConfig = field(default_factory=CipherConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_hash(self) -> str:
        """Short digest identifying these settings (safe to log)."""
        return hashlib.sha256(f"{self.cipher}|{self.logging}".encode()).hexdigest()[:16]

    @classmethod
    def load(cls, env_prefix: str = ENV_PREFIX) -> SecureConfig:
        """
        Build a configuration from defaults plus environment overrides.

        Args:
            env_prefix: Variable prefix, matched case-insensitively

        Raises:
            ValueError: If an override cannot be parsed or fails validation
        """
        sections: dict[str, dict[str, Any]] = {"cipher": {}, "logging": {}}
        for option, raw in cls._env_overrides(env_prefix).items():
            parser = _ENV_FIELDS.get(option)
            if parser is None:
                continue
            try:
                value = parser(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {option}: {raw!r}") from e
            section, name = option.split(".", 1)
            sections[section][name] = value

        return cls(
            cipher=CipherConfig(**sections["cipher"]),
            logging=LoggingConfig(**sections["logging"]),
        )

    @staticmethod
    def _env_overrides(prefix: str) -> dict[str, str]:
        """Map ``PREFIX_SECTION__FIELD`` variables to ``section.field``."""
        head = f"{prefix.upper()}_"
        overrides: dict[str, str] = {}
        for name, value in os.environ.items():
            if not name.upper().startswith(head):
                continue
            option = name[len(head):].lower().replace("__", ".")
            if _names_secret(option):
                continue
            overrides[option] = value
        return overrides

    def __repr__(self) -> str:
        return f"SecureConfig(hash={self.config_hash})"
