"""
Configuration Module
====================

Immutable, environment-aware configuration for cipherkit.

Features:
- Frozen section dataclasses validated on construction
- Environment variable override support (CIPHERKIT_ prefix)
- Sensitive-looking keys are never read from the environment
- OS-aware log directory
"""

from __future__ import annotations

import hashlib
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Optional

from cipherkit.core.errors import ConfigurationError
from cipherkit.security import constants


_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "secret", "token", "api_key",
    "private", "credential", "auth",
})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might contain sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


def _get_default_log_dir() -> Path:
    """Get OS-appropriate default log directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "cipherkit" / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / "cipherkit"
    else:  # Linux and others
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "cipherkit" / "logs"


def _env_name(prefix: str, key: str) -> str:
    """Map ``section.key`` back to the variable it was read from."""
    return f"{prefix.upper()}_{key.upper().replace('.', '__')}"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    log_dir: Path = field(default_factory=_get_default_log_dir)

    def __post_init__(self) -> None:
        if not self.log_dir.is_absolute():
            raise ValueError(f"log_dir must be an absolute path: {self.log_dir}")


@dataclass(frozen=True, slots=True)
class CryptoDefaults:
    """Defaults used when a caller omits an optional engine argument."""

    tag_length: int = constants.DEFAULT_TAG_LENGTH
    gcm_iv_length: int = constants.GCM_DEFAULT_IV_LENGTH
    ccm_iv_length: int = constants.CCM_DEFAULT_IV_LENGTH
    salt_length: int = constants.DEFAULT_SALT_LENGTH
    key_derivation_rounds: int = constants.DEFAULT_KEY_DERIVATION_ROUNDS
    block_cipher: str = "aes-256-cbc"
    digest: str = "sha512"

    def __post_init__(self) -> None:
        """Validate crypto defaults."""
        if not constants.GCM_MIN_TAG_LENGTH <= self.tag_length <= constants.GCM_MAX_TAG_LENGTH:
            raise ValueError(f"Invalid default tag length: {self.tag_length}")
        if not constants.GCM_MIN_IV_LENGTH <= self.gcm_iv_length <= constants.GCM_MAX_IV_LENGTH:
            raise ValueError(f"Invalid default GCM IV length: {self.gcm_iv_length}")
        if not constants.CCM_MIN_IV_LENGTH <= self.ccm_iv_length <= constants.CCM_MAX_IV_LENGTH:
            raise ValueError(f"Invalid default CCM IV length: {self.ccm_iv_length}")
        if self.salt_length < 1:
            raise ValueError("Salt length must be at least 1 byte")
        if self.key_derivation_rounds < 1:
            raise ValueError("Key derivation rounds must be at least 1")


@dataclass(frozen=True, slots=True)
class Argon2Config:
    """Argon2id parameters for password pre-stretching."""

    time_cost: int = constants.ARGON2_TIME_COST
    memory_cost: int = constants.ARGON2_MEMORY_COST
    parallelism: int = constants.ARGON2_PARALLELISM

    def __post_init__(self) -> None:
        if self.time_cost < 1:
            raise ValueError("Argon2 time cost must be at least 1")
        if self.parallelism < 1:
            raise ValueError("Argon2 parallelism must be at least 1")
        if self.memory_cost < 8 * self.parallelism:
            raise ValueError("Argon2 memory cost must be at least 8 KiB per lane")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "WARNING"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")


class CipherKitConfig:
    """
    Centralized, immutable configuration with environment override support.

    Usage:
        config = CipherKitConfig.load()
        config.crypto.tag_length
        config.logging.level
    """

    __slots__ = ("_paths", "_crypto", "_argon2", "_logging", "_frozen", "_config_hash")

    _instance: Optional[CipherKitConfig] = None

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        crypto: Optional[CryptoDefaults] = None,
        argon2: Optional[Argon2Config] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        """Initialize configuration. Use CipherKitConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_crypto", crypto or CryptoDefaults())
        object.__setattr__(self, "_argon2", argon2 or Argon2Config())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a short fingerprint of the configuration."""
        config_str = f"{self._paths}|{self._crypto}|{self._argon2}|{self._logging}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def crypto(self) -> CryptoDefaults:
        return self._crypto

    @property
    def argon2(self) -> Argon2Config:
        return self._argon2

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def config_hash(self) -> str:
        return self._config_hash

    @classmethod
    def load(cls, env_prefix: str = "CIPHERKIT") -> CipherKitConfig:
        """
        Load configuration with environment variable overrides.

        Environment variables use the CIPHERKIT_ prefix and double
        underscores for nested values.

        Examples:
            CIPHERKIT_LOGGING__LEVEL=DEBUG
            CIPHERKIT_CRYPTO__TAG_LENGTH=12
            CIPHERKIT_CRYPTO__BLOCK_CIPHER=aes-128-ctr
            CIPHERKIT_PATHS__LOG_DIR=/var/log/cipherkit

        Args:
            env_prefix: Prefix for environment variables (default: CIPHERKIT)

        Returns:
            Configured CipherKitConfig instance

        Raises:
            ConfigurationError: An override is malformed or out of range;
                the message names the offending variable
        """
        env_overrides = cls._parse_env_overrides(env_prefix)

        def int_override(key: str) -> int:
            raw = env_overrides[key]
            try:
                return int(raw)
            except ValueError:
                raise ConfigurationError(
                    "config", f"{_env_name(env_prefix, key)} must be an integer, got {raw!r}"
                ) from None

        paths_kwargs: dict[str, Any] = {}
        if "paths.log_dir" in env_overrides:
            paths_kwargs["log_dir"] = Path(env_overrides["paths.log_dir"])

        crypto_kwargs: dict[str, Any] = {}
        for name in ("tag_length", "gcm_iv_length", "ccm_iv_length",
                     "salt_length", "key_derivation_rounds"):
            if f"crypto.{name}" in env_overrides:
                crypto_kwargs[name] = int_override(f"crypto.{name}")
        for name in ("block_cipher", "digest"):
            if f"crypto.{name}" in env_overrides:
                crypto_kwargs[name] = env_overrides[f"crypto.{name}"]

        argon2_kwargs: dict[str, Any] = {}
        for name in ("time_cost", "memory_cost", "parallelism"):
            if f"argon2.{name}" in env_overrides:
                argon2_kwargs[name] = int_override(f"argon2.{name}")

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in env_overrides:
            logging_kwargs["level"] = env_overrides["logging.level"]
        for name in ("enable_console", "enable_file", "enable_json"):
            if f"logging.{name}" in env_overrides:
                logging_kwargs[name] = _parse_bool(env_overrides[f"logging.{name}"])

        sections = (
            ("paths", PathConfig, paths_kwargs),
            ("crypto", CryptoDefaults, crypto_kwargs),
            ("argon2", Argon2Config, argon2_kwargs),
            ("logging", LoggingConfig, logging_kwargs),
        )
        built: dict[str, Any] = {}
        for section, section_class, kwargs in sections:
            if not kwargs:
                built[section] = None
                continue
            try:
                built[section] = section_class(**kwargs)
            except ValueError as exc:
                names = ", ".join(_env_name(env_prefix, f"{section}.{key}") for key in kwargs)
                raise ConfigurationError("config", f"{exc} (from {names})") from exc

        return cls(**built)

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # CIPHERKIT_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    @classmethod
    def get_instance(cls) -> CipherKitConfig:
        """Get or create the process-wide configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance. Use only for testing."""
        cls._instance = None

    def __repr__(self) -> str:
        return f"CipherKitConfig(hash={self._config_hash})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("CipherKitConfig is immutable after initialization")
        super().__setattr__(name, value)
