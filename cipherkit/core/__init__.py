"""
Core module - Configuration, logging, error taxonomy and the engines.
"""

from cipherkit.core.config import CipherKitConfig
from cipherkit.core.logging import configure_logging, get_secure_logger, SecureLogFilter

__all__ = ["CipherKitConfig", "configure_logging", "get_secure_logger", "SecureLogFilter"]
