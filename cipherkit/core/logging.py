"""
Secure Logging Module
=====================

Logging helpers that keep key material out of log output.

Features:
- Redaction of password/key/iv/tag/salt assignments and long hex or
  base64 runs that look like raw secrets
- Rotating log files with size limits
- Optional JSON output for log aggregation
"""

from __future__ import annotations

import json
import logging
import re
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Final, Optional, Pattern

if TYPE_CHECKING:
    from cipherkit.core.config import CipherKitConfig


_SENSITIVE_PATTERNS: Final[list[tuple[str, Pattern[str]]]] = [
    ("password", re.compile(r'(?i)\b(password|passwd|pwd|passphrase)\s*[=:]\s*["\']?[^\s"\',)]+["\']?')),
    ("key", re.compile(r'(?i)\b(key|secret|private[_-]?key)\s*[=:]\s*["\']?[^\s"\',)]+["\']?')),
    ("iv", re.compile(r'(?i)\b(iv|nonce)\s*[=:]\s*["\']?[^\s"\',)]+["\']?')),
    ("tag", re.compile(r'(?i)\b(tag)\s*[=:]\s*["\']?[^\s"\',)]+["\']?')),
    ("salt", re.compile(r'(?i)\b(salt)\s*[=:]\s*["\']?[^\s"\',)]+["\']?')),
    # Base64 runs long enough to be key material
    ("base64_secret", re.compile(r'[A-Za-z0-9+/]{40,}={0,2}')),
    # Hex runs of 128 bits or more
    ("hex_secret", re.compile(r'(?i)(?:0x)?[a-f0-9]{32,}')),
]

_REDACTED_TEXT: Final[str] = "[REDACTED]"

_CONSOLE_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_FILE_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


class SecureLogFilter(logging.Filter):
    """
    Log filter that redacts anything resembling key material.

    The record is always kept. Its arguments are merged into the message
    first, so a secret split across the format string and its arguments
    (``"password=%s", pw``) is still caught.
    """

    def __init__(self, name: str = "", additional_patterns: Optional[list[Pattern[str]]] = None) -> None:
        super().__init__(name)
        self._additional_patterns = additional_patterns or []

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Mismatched format arguments; redact the raw template instead
            message = str(record.msg)

        record.msg = self._sanitize(message)
        record.args = None
        return True

    def _sanitize(self, text: str) -> str:
        result = text

        for name, pattern in _SENSITIVE_PATTERNS:
            result = pattern.sub(f"{name}={_REDACTED_TEXT}", result)

        for pattern in self._additional_patterns:
            result = pattern.sub(_REDACTED_TEXT, result)

        return result


class StructuredLogFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class SecureRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that creates its directory and refuses
    paths containing traversal sequences.
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 10 * 1024 * 1024,
        backupCount: int = 5,
        encoding: str = "utf-8",
    ) -> None:
        if ".." in Path(filename).parts:
            raise ValueError("Log path cannot contain path traversal sequences")

        log_path = Path(filename).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        super().__init__(
            str(log_path),
            mode=mode,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
        )


_DEFAULT_LEVEL: Final[str] = "WARNING"
_DEFAULT_MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB
_DEFAULT_BACKUP_COUNT: Final[int] = 5

# Loggers handed out by get_secure_logger, reconfigured by configure_logging
_managed_loggers: set[str] = set()
_managed_lock = threading.Lock()


def _attach_handlers(
    logger: logging.Logger,
    log_dir: Optional[Path],
    level: str,
    enable_console: bool,
    enable_file: bool,
    enable_json: bool,
    max_file_size: int,
    backup_count: int,
) -> None:
    logger.setLevel(getattr(logging, level.upper()))

    secure_filter = SecureLogFilter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        console_handler.addFilter(secure_filter)
        logger.addHandler(console_handler)

    if enable_file:
        if log_dir is None:
            from cipherkit.core.config import PathConfig

            log_dir = PathConfig().log_dir
        log_file = log_dir / f"{logger.name.replace('.', '_')}.log"

        file_handler = SecureRotatingFileHandler(
            filename=log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)

        if enable_json:
            file_formatter: logging.Formatter = StructuredLogFormatter()
        else:
            file_formatter = logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

        file_handler.setFormatter(file_formatter)
        file_handler.addFilter(secure_filter)
        logger.addHandler(file_handler)

    logger.propagate = False


def get_secure_logger(
    name: str,
    log_dir: Optional[Path] = None,
    level: str = _DEFAULT_LEVEL,
    enable_console: bool = True,
    enable_file: bool = False,
    enable_json: bool = False,
    max_file_size: int = _DEFAULT_MAX_FILE_SIZE,
    backup_count: int = _DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """
    Create a logger with automatic secret redaction.

    Configuration is not consulted here, so engine modules can create
    their loggers at import time. Call ``configure_logging()`` to apply
    ``CipherKitConfig.logging`` (and its CIPHERKIT_LOGGING__* overrides).

    Args:
        name: Logger name (typically __name__)
        log_dir: Directory for log files (OS default if not provided)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Whether to output to stderr
        enable_file: Whether to output to a rotating file
        enable_json: Whether to use JSON format for file output
        max_file_size: Maximum log file size before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    with _managed_lock:
        _managed_loggers.add(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    _attach_handlers(
        logger, log_dir, level, enable_console, enable_file,
        enable_json, max_file_size, backup_count,
    )
    return logger


def configure_logging(config: Optional[CipherKitConfig] = None) -> None:
    """
    Rebuild every cipherkit logger from a configuration.

    Args:
        config: Configuration to apply (``CipherKitConfig.get_instance()``
            if not provided)

    Raises:
        ConfigurationError: The environment holds a malformed override
    """
    from cipherkit.core.config import CipherKitConfig

    config = config or CipherKitConfig.get_instance()
    settings = config.logging

    with _managed_lock:
        names = sorted(_managed_loggers)

    for name in names:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        _attach_handlers(
            logger,
            config.paths.log_dir,
            settings.level,
            settings.enable_console,
            settings.enable_file,
            settings.enable_json,
            settings.max_file_size_bytes,
            settings.backup_count,
        )
