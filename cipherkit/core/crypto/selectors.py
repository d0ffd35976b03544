"""
Cipher and Digest Selectors
===========================

Capability descriptors naming algorithm + mode + key size. The engines
never implement AES or the digests themselves; a selector only tells them
which ``cryptography`` primitive to drive and which sizes to enforce.

Names follow OpenSSL's (``aes-256-gcm``, ``sha512``) so selectors can be
read from configuration files and environment variables.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

from cryptography.hazmat.primitives import hashes

from cipherkit.core.errors import InvalidParameterError
from cipherkit.security.constants import (
    AES_BLOCK_SIZE,
    CCM_DEFAULT_IV_LENGTH,
    GCM_DEFAULT_IV_LENGTH,
)


class CipherMode(Enum):
    """Block cipher mode of operation."""

    GCM = "gcm"
    CCM = "ccm"
    ECB = "ecb"
    CBC = "cbc"
    CFB = "cfb"
    CFB8 = "cfb8"
    OFB = "ofb"
    CTR = "ctr"

    @property
    def is_aead(self) -> bool:
        return self in (CipherMode.GCM, CipherMode.CCM)

    @property
    def requires_padding(self) -> bool:
        """ECB and CBC operate on whole blocks and use PKCS#7 padding."""
        return self in (CipherMode.ECB, CipherMode.CBC)

    @property
    def requires_length_declaration(self) -> bool:
        """CCM must know the total message length before AAD is fed."""
        return self is CipherMode.CCM

    @property
    def requires_tag_length_up_front(self) -> bool:
        """CCM fixes the tag length before any data is processed."""
        return self is CipherMode.CCM

    @property
    def default_iv_size(self) -> int:
        if self is CipherMode.GCM:
            return GCM_DEFAULT_IV_LENGTH
        if self is CipherMode.CCM:
            return CCM_DEFAULT_IV_LENGTH
        if self is CipherMode.ECB:
            return 0
        return AES_BLOCK_SIZE


class CipherSelector(Enum):
    """
    AES key size x mode.

    Usage:
        selector = CipherSelector.from_name("AES-256-CBC")
        selector.key_size   # 32
        selector.iv_size    # 16
    """

    AES_128_GCM = "aes-128-gcm"
    AES_192_GCM = "aes-192-gcm"
    AES_256_GCM = "aes-256-gcm"
    AES_128_CCM = "aes-128-ccm"
    AES_192_CCM = "aes-192-ccm"
    AES_256_CCM = "aes-256-ccm"
    AES_128_ECB = "aes-128-ecb"
    AES_192_ECB = "aes-192-ecb"
    AES_256_ECB = "aes-256-ecb"
    AES_128_CBC = "aes-128-cbc"
    AES_192_CBC = "aes-192-cbc"
    AES_256_CBC = "aes-256-cbc"
    AES_128_CFB = "aes-128-cfb"
    AES_192_CFB = "aes-192-cfb"
    AES_256_CFB = "aes-256-cfb"
    AES_128_CFB8 = "aes-128-cfb8"
    AES_192_CFB8 = "aes-192-cfb8"
    AES_256_CFB8 = "aes-256-cfb8"
    AES_128_OFB = "aes-128-ofb"
    AES_192_OFB = "aes-192-ofb"
    AES_256_OFB = "aes-256-ofb"
    AES_128_CTR = "aes-128-ctr"
    AES_192_CTR = "aes-192-ctr"
    AES_256_CTR = "aes-256-ctr"

    @property
    def key_bits(self) -> int:
        return int(self.value.split("-")[1])

    @property
    def key_size(self) -> int:
        """Key length in bytes."""
        return self.key_bits // 8

    @property
    def mode(self) -> CipherMode:
        return CipherMode(self.value.split("-")[2])

    @property
    def iv_size(self) -> int:
        """Default IV length in bytes (0 for ECB)."""
        return self.mode.default_iv_size

    @property
    def block_size(self) -> int:
        return AES_BLOCK_SIZE

    @property
    def is_aead(self) -> bool:
        return self.mode.is_aead

    @classmethod
    def from_name(cls, name: str) -> CipherSelector:
        """Resolve an OpenSSL-style name such as ``AES-256-GCM``."""
        try:
            return cls(name.strip().lower())
        except (ValueError, AttributeError):
            raise InvalidParameterError("selector", f"unknown cipher: {name!r}") from None

    @classmethod
    def coerce(cls, value: CipherSelector | str) -> CipherSelector:
        """Accept either a selector or its name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_name(value)
        raise InvalidParameterError("selector", f"expected a cipher selector, got {type(value).__name__}")

    @classmethod
    def for_key(cls, key_size: int, mode: CipherMode) -> CipherSelector:
        """Pick the AES variant matching a key length in bytes."""
        try:
            return cls(f"aes-{key_size * 8}-{mode.value}")
        except ValueError:
            raise InvalidParameterError(
                "selector",
                f"no AES-{mode.name} cipher for a {key_size}-byte key (expected 16, 24 or 32)",
            ) from None

    def __str__(self) -> str:
        return self.value.upper()


_HASH_CLASSES: Final[dict[str, type[hashes.HashAlgorithm]]] = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


class DigestSelector(Enum):
    """Fixed-output digests usable for legacy key derivation."""

    MD5 = "md5"
    SHA1 = "sha1"
    SHA224 = "sha224"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    @property
    def digest_size(self) -> int:
        return self.algorithm().digest_size

    def algorithm(self) -> hashes.HashAlgorithm:
        """Return a fresh ``cryptography`` hash algorithm instance."""
        return _HASH_CLASSES[self.value]()

    @classmethod
    def coerce(cls, value: DigestSelector | str) -> DigestSelector:
        """Accept either a selector or its name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_name(value)
        raise InvalidParameterError("selector", f"expected a digest selector, got {type(value).__name__}")

    @classmethod
    def from_name(cls, name: str) -> DigestSelector:
        """Resolve a digest name; ``SHA-512`` and ``sha512`` are equivalent."""
        try:
            return cls(name.strip().lower().replace("-", ""))
        except (ValueError, AttributeError):
            raise InvalidParameterError("selector", f"unknown digest: {name!r}") from None

    def __str__(self) -> str:
        return self.name
