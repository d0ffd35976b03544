"""
Key Derivation Functions
========================

Password-based key material for the block-cipher engine.

Implements:
    - Salt generation from the OS CSPRNG
    - Legacy salted, iterated digest stretching (OpenSSL ``EVP_BytesToKey``)
      producing a (key, IV) pair for a cipher selector
    - Argon2id pre-stretching for callers that need real password hardening

WARNING:
    The legacy routine is fast and not memory-hard. It exists for
    compatibility with data produced by ``openssl enc``-style tooling.
    For new designs run the password through ``prestretch_password`` (or
    another modern KDF) first and pass its output on as the "password".
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Iterator, Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes

from cipherkit.core.config import CipherKitConfig
from cipherkit.core.crypto.selectors import CipherSelector, DigestSelector
from cipherkit.core.crypto.steps import CipherStep, cipher_step
from cipherkit.core.errors import InvalidParameterError, OperationError
from cipherkit.core.logging import get_secure_logger
from cipherkit.security.constants import (
    ARGON2_HASH_LEN,
    ARGON2_MIN_SALT_LENGTH,
    LEGACY_MAX_IV_LENGTH,
    LEGACY_MAX_KEY_LENGTH,
    LEGACY_SALT_LENGTH,
)
from cipherkit.utils.validators import (
    validate_bytes,
    validate_optional_bytes,
    validate_positive_int,
)

logger = get_secure_logger(__name__)


@dataclass(frozen=True, slots=True)
class DerivedKeyMaterial:
    """
    Freshly derived key and IV.

    Unpacks as ``key, iv = derive_key_and_iv(...)``. The IV is empty for
    ECB selectors.
    """

    key: bytes
    iv: bytes

    def __iter__(self) -> Iterator[bytes]:
        return iter((self.key, self.iv))

    def __repr__(self) -> str:
        """Safe representation without exposing key material."""
        return f"DerivedKeyMaterial(key_len={len(self.key)}, iv_len={len(self.iv)})"


def generate_salt(size: Optional[int] = None) -> bytes:
    """
    Generate a cryptographically secure random salt.

    Args:
        size: Salt length in bytes (config default, normally 8)

    Returns:
        ``size`` random bytes from the OS CSPRNG
    """
    if size is None:
        size = CipherKitConfig.get_instance().crypto.salt_length
    size = validate_positive_int(size, "salt size")
    return secrets.token_bytes(size)


def derive_key_and_iv(
    password: bytes,
    salt: Optional[bytes],
    rounds: int,
    selector: CipherSelector | str,
    digest: DigestSelector | str,
) -> DerivedKeyMaterial:
    """
    Derive a (key, IV) pair with the legacy ``EVP_BytesToKey`` routine.

    Blocks are produced as::

        D_1 = H^rounds(password || salt)
        D_i = H^rounds(D_{i-1} || password || salt)

    and ``D_1 || D_2 || ...`` is split into the key followed by the IV.

    Args:
        password: Password bytes (an empty password is allowed)
        salt: Exactly 8 bytes, or None/b"" for unsalted derivation
        rounds: Number of digest iterations per block (>= 1)
        selector: Block cipher selector fixing key and IV sizes
        digest: Digest used for stretching

    Returns:
        DerivedKeyMaterial with new key and IV buffers

    Raises:
        InvalidParameterError: Bad salt size, rounds, or an incompatible
            cipher/digest pair
    """
    password = validate_bytes(password, "password")
    salt = validate_optional_bytes(salt, "salt") or b""
    rounds = validate_positive_int(rounds, "rounds")
    selector = CipherSelector.coerce(selector)
    digest = DigestSelector.coerce(digest)

    if salt and len(salt) != LEGACY_SALT_LENGTH:
        raise InvalidParameterError(
            "validate", f"salt must be exactly {LEGACY_SALT_LENGTH} bytes or empty, got {len(salt)}"
        )
    if selector.is_aead:
        raise InvalidParameterError(
            "validate", f"{selector} is an AEAD cipher; password derivation targets block cipher modes"
        )

    key_length = selector.key_size
    iv_length = selector.iv_size
    if key_length > LEGACY_MAX_KEY_LENGTH or iv_length > LEGACY_MAX_IV_LENGTH:
        raise InvalidParameterError(
            "validate", f"{selector} needs more key material than {digest} derivation supports"
        )

    needed = key_length + iv_length
    material = bytearray()
    block = b""

    with cipher_step(CipherStep.DERIVE_KEY):
        while len(material) < needed:
            hasher = hashes.Hash(digest.algorithm())
            hasher.update(block)
            hasher.update(password)
            hasher.update(salt)
            block = hasher.finalize()

            for _ in range(rounds - 1):
                hasher = hashes.Hash(digest.algorithm())
                hasher.update(block)
                block = hasher.finalize()

            material += block

    if len(material) < needed:
        raise OperationError(CipherStep.DERIVE_KEY.value, "digest produced too little key material")

    logger.debug(
        "Derived key material cipher=%s digest=%s rounds=%d salted=%s",
        selector, digest, rounds, bool(salt),
    )

    return DerivedKeyMaterial(
        key=bytes(material[:key_length]),
        iv=bytes(material[key_length:needed]),
    )


def prestretch_password(
    password: str | bytes,
    salt: bytes,
    length: int = ARGON2_HASH_LEN,
) -> bytes:
    """
    Harden a password with Argon2id before legacy derivation.

    Cost parameters come from ``CipherKitConfig.argon2``.

    Args:
        password: User password (str is encoded as UTF-8)
        salt: Random salt, at least 8 bytes (store it with the ciphertext)
        length: Output length in bytes

    Returns:
        ``length`` bytes suitable as the opaque password for
        ``derive_key_and_iv`` or ``PasswordBlockCipher``
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    password = validate_bytes(password, "password", allow_empty=False)
    salt = validate_bytes(salt, "salt")
    length = validate_positive_int(length, "length")
    if len(salt) < ARGON2_MIN_SALT_LENGTH:
        raise InvalidParameterError(
            "validate", f"Argon2 salt must be at least {ARGON2_MIN_SALT_LENGTH} bytes"
        )

    params = CipherKitConfig.get_instance().argon2
    try:
        return hash_secret_raw(
            secret=password,
            salt=salt,
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=length,
            type=Type.ID,
        )
    except HashingError as exc:
        raise OperationError(CipherStep.DERIVE_KEY.value, str(exc)) from exc
