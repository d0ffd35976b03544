"""
Password-Based AES Block Cipher
===============================

Derives a key/IV pair from a password and salt, then runs a plain
(non-authenticated) AES mode over the data.

Supported modes:
    ECB, CBC    PKCS#7 padded, output grows by up to one block
    CFB, CFB8   streaming, output length equals input length
    OFB, CTR    streaming, output length equals input length

WARNING:
    Nothing here authenticates the ciphertext. Tampering is only noticed
    when it happens to break the padding of ECB/CBC output, and streaming
    modes never notice at all. Supply integrity separately, e.g. by
    sealing the result with ``AeadEngine`` or a MAC.
"""

from __future__ import annotations

from typing import Optional

from cryptography.hazmat.decrepit.ciphers import modes as decrepit_modes
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from cipherkit.core.config import CipherKitConfig
from cipherkit.core.crypto.kdf import derive_key_and_iv
from cipherkit.core.crypto.selectors import CipherMode, CipherSelector, DigestSelector
from cipherkit.core.crypto.steps import CipherStep, cipher_step
from cipherkit.core.errors import (
    CipherKitError,
    ContextInitializationError,
    IntegrityFailure,
    InvalidParameterError,
)
from cipherkit.core.logging import get_secure_logger
from cipherkit.utils.validators import validate_bytes, validate_exact_length

logger = get_secure_logger(__name__)


def _backend_mode(selector: CipherSelector, iv: bytes) -> modes.Mode:
    mode = selector.mode
    if mode is CipherMode.ECB:
        return modes.ECB()
    if mode is CipherMode.CBC:
        return modes.CBC(iv)
    if mode is CipherMode.CFB:
        return decrepit_modes.CFB(iv)
    if mode is CipherMode.CFB8:
        return decrepit_modes.CFB8(iv)
    if mode is CipherMode.OFB:
        return decrepit_modes.OFB(iv)
    if mode is CipherMode.CTR:
        return modes.CTR(iv)
    raise InvalidParameterError("selector", f"{selector} is not a block cipher mode")


def _block_selector(selector: CipherSelector | str) -> CipherSelector:
    selector = CipherSelector.coerce(selector)
    if selector.is_aead:
        raise InvalidParameterError(
            "selector", f"{selector} is an AEAD cipher; use AeadEngine"
        )
    return selector


def _wipe(buffer: bytearray) -> None:
    buffer[:] = bytes(len(buffer))


class PasswordBlockCipher:
    """
    AES block cipher keyed from a password.

    Usage:
        engine = PasswordBlockCipher()
        salt = generate_salt()

        ciphertext = engine.encrypt(b"payload", b"password", salt, rounds=10_000)
        plaintext = engine.decrypt(ciphertext, b"password", salt, rounds=10_000)

    Cipher and digest default to the configured ``aes-256-cbc`` / ``sha512``.
    """

    __slots__ = ()

    def encrypt_with_key(
        self,
        plaintext: bytes,
        key: bytes,
        iv: bytes,
        selector: CipherSelector | str,
    ) -> bytes:
        """
        Encrypt with an already derived key and IV.

        The padding block for ECB/CBC is emitted by the finalize step, so
        the result is ``update output + finalize output``.
        """
        selector = _block_selector(selector)
        plaintext = validate_bytes(plaintext, "plaintext")
        key, iv = _check_key_and_iv(selector, key, iv)

        with cipher_step(CipherStep.CREATE_CONTEXT, ContextInitializationError):
            cipher = Cipher(algorithms.AES(key), _backend_mode(selector, iv))
        with cipher_step(CipherStep.INIT, ContextInitializationError):
            encryptor = cipher.encryptor()

        padder = padding.PKCS7(selector.block_size * 8).padder() if selector.mode.requires_padding else None

        ciphertext = bytearray()
        with cipher_step(CipherStep.UPDATE):
            ciphertext += encryptor.update(padder.update(plaintext) if padder else plaintext)
        with cipher_step(CipherStep.FINALIZE):
            if padder:
                ciphertext += encryptor.update(padder.finalize())
            ciphertext += encryptor.finalize()

        return bytes(ciphertext)

    def decrypt_with_key(
        self,
        ciphertext: bytes,
        key: bytes,
        iv: bytes,
        selector: CipherSelector | str,
    ) -> bytes:
        """
        Decrypt with an already derived key and IV.

        Raises:
            IntegrityFailure: Finalize failed (bad padding, or a padded-mode
                ciphertext that is not a whole number of blocks). Usually a
                wrong password or corrupted data.
        """
        selector = _block_selector(selector)
        ciphertext = validate_bytes(ciphertext, "ciphertext")
        key, iv = _check_key_and_iv(selector, key, iv)

        with cipher_step(CipherStep.CREATE_CONTEXT, ContextInitializationError):
            cipher = Cipher(algorithms.AES(key), _backend_mode(selector, iv))
        with cipher_step(CipherStep.INIT, ContextInitializationError):
            decryptor = cipher.decryptor()

        candidate = bytearray()
        try:
            with cipher_step(CipherStep.UPDATE):
                candidate += decryptor.update(ciphertext)
            with cipher_step(CipherStep.FINALIZE, IntegrityFailure):
                candidate += decryptor.finalize()
                if selector.mode.requires_padding:
                    unpadder = padding.PKCS7(selector.block_size * 8).unpadder()
                    plaintext = unpadder.update(bytes(candidate)) + unpadder.finalize()
                else:
                    plaintext = bytes(candidate)
        except IntegrityFailure:
            _wipe(candidate)
            logger.warning("Block cipher finalize failed cipher=%s", selector)
            raise
        except CipherKitError:
            _wipe(candidate)
            raise

        return plaintext

    def encrypt(
        self,
        plaintext: bytes,
        password: bytes,
        salt: Optional[bytes],
        rounds: Optional[int] = None,
        selector: Optional[CipherSelector | str] = None,
        digest: Optional[DigestSelector | str] = None,
    ) -> bytes:
        """
        Derive key material from ``password`` and ``salt`` and encrypt.

        Args:
            plaintext: Data to encrypt
            password: Password bytes (or a modern KDF's output)
            salt: 8-byte salt from ``generate_salt()``, or None for unsalted
            rounds: Derivation rounds (config default)
            selector: Block cipher selector (config default aes-256-cbc)
            digest: Derivation digest (config default sha512)

        Returns:
            Ciphertext; for ECB/CBC up to one block longer than plaintext
        """
        selector, digest, rounds = _resolve_defaults(selector, digest, rounds)
        key, iv = derive_key_and_iv(password, salt, rounds, selector, digest)

        logger.debug(
            "Password encrypt cipher=%s digest=%s plaintext_len=%d",
            selector, digest, len(validate_bytes(plaintext, "plaintext")),
        )
        return self.encrypt_with_key(plaintext, key, iv, selector)

    def decrypt(
        self,
        ciphertext: bytes,
        password: bytes,
        salt: Optional[bytes],
        rounds: Optional[int] = None,
        selector: Optional[CipherSelector | str] = None,
        digest: Optional[DigestSelector | str] = None,
    ) -> bytes:
        """
        Derive key material from ``password`` and ``salt`` and decrypt.

        Raises:
            IntegrityFailure: Padding check failed (wrong password or
                corrupted ciphertext)
        """
        selector, digest, rounds = _resolve_defaults(selector, digest, rounds)
        key, iv = derive_key_and_iv(password, salt, rounds, selector, digest)

        logger.debug(
            "Password decrypt cipher=%s digest=%s ciphertext_len=%d",
            selector, digest, len(validate_bytes(ciphertext, "ciphertext")),
        )
        return self.decrypt_with_key(ciphertext, key, iv, selector)


def _check_key_and_iv(selector: CipherSelector, key: bytes, iv: bytes) -> tuple[bytes, bytes]:
    key = validate_exact_length(validate_bytes(key, "key", allow_empty=False), selector.key_size, "key")
    iv = validate_exact_length(validate_bytes(iv, "iv"), selector.iv_size, "iv")
    return key, iv


def _resolve_defaults(
    selector: Optional[CipherSelector | str],
    digest: Optional[DigestSelector | str],
    rounds: Optional[int],
) -> tuple[CipherSelector, DigestSelector, int]:
    defaults = CipherKitConfig.get_instance().crypto
    selector = _block_selector(selector if selector is not None else defaults.block_cipher)
    digest = DigestSelector.coerce(digest if digest is not None else defaults.digest)
    rounds = rounds if rounds is not None else defaults.key_derivation_rounds
    return selector, digest, rounds


_engine = PasswordBlockCipher()


def encrypt_password_block_cipher(
    data: bytes,
    password: bytes,
    salt: Optional[bytes],
    rounds: Optional[int] = None,
    cipher: Optional[CipherSelector | str] = None,
    digest: Optional[DigestSelector | str] = None,
) -> bytes:
    """Module-level shortcut for ``PasswordBlockCipher().encrypt``."""
    return _engine.encrypt(data, password, salt, rounds=rounds, selector=cipher, digest=digest)


def decrypt_password_block_cipher(
    data: bytes,
    password: bytes,
    salt: Optional[bytes],
    rounds: Optional[int] = None,
    cipher: Optional[CipherSelector | str] = None,
    digest: Optional[DigestSelector | str] = None,
) -> bytes:
    """Module-level shortcut for ``PasswordBlockCipher().decrypt``; raises IntegrityFailure on bad padding."""
    return _engine.decrypt(data, password, salt, rounds=rounds, selector=cipher, digest=digest)
