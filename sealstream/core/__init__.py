"""
Core module - Contains configuration, logging, and base components.
"""

from sealstream.core.config import SecureConfig
from sealstream.core.logging import get_secure_logger, SecureLogFilter

__all__ = ["SecureConfig", "get_secure_logger", "SecureLogFilter"]
