"""
Cryptographic Constants
=======================

Size bounds and defaults shared by the AEAD and password block-cipher
engines. The bounds mirror what the OpenSSL-backed ``cryptography``
primitives accept; values outside them are rejected up front.
"""

from typing import Final

# AES
AES_BLOCK_SIZE: Final[int] = 16
AES_KEY_SIZES: Final[tuple[int, ...]] = (16, 24, 32)

# GCM (NIST SP 800-38D)
GCM_DEFAULT_IV_LENGTH: Final[int] = 12  # 96 bits
GCM_MIN_IV_LENGTH: Final[int] = 8
GCM_MAX_IV_LENGTH: Final[int] = 128
GCM_MIN_TAG_LENGTH: Final[int] = 4
GCM_MAX_TAG_LENGTH: Final[int] = 16

# CCM (RFC 3610 / NIST SP 800-38C)
CCM_DEFAULT_IV_LENGTH: Final[int] = 12
CCM_MIN_IV_LENGTH: Final[int] = 7
CCM_MAX_IV_LENGTH: Final[int] = 13
CCM_TAG_LENGTHS: Final[frozenset[int]] = frozenset({4, 6, 8, 10, 12, 14, 16})

DEFAULT_TAG_LENGTH: Final[int] = 16  # 128 bits

# Legacy password-based key derivation (EVP_BytesToKey)
LEGACY_SALT_LENGTH: Final[int] = 8
LEGACY_MAX_KEY_LENGTH: Final[int] = 64
LEGACY_MAX_IV_LENGTH: Final[int] = 16
DEFAULT_SALT_LENGTH: Final[int] = LEGACY_SALT_LENGTH
DEFAULT_KEY_DERIVATION_ROUNDS: Final[int] = 1

# Argon2id pre-stretching (OWASP recommended)
ARGON2_TIME_COST: Final[int] = 3
ARGON2_MEMORY_COST: Final[int] = 65536  # 64 MB
ARGON2_PARALLELISM: Final[int] = 4
ARGON2_HASH_LEN: Final[int] = 32
ARGON2_MIN_SALT_LENGTH: Final[int] = 8

# Certificate store
MAX_VERIFY_DEPTH: Final[int] = 255
