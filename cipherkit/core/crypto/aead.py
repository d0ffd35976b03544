"""
AES-GCM / AES-CCM Authenticated Encryption
==========================================

Authenticated encryption with optional Additional Authenticated Data (AAD)
and a caller-chosen tag length.

Both modes run through the same step sequence:

    create context -> init(key, iv) -> set IV length
        -> [CCM: set tag length]
        -> [decrypt: set expected tag]
        -> [AAD present and CCM: declare message length]
        -> [AAD present: feed AAD]
        -> update -> finalize -> [encrypt: get tag]

GCM and CCM differ only in the mode-specific pre-steps, which are driven
by ``CipherMode`` flags rather than separate code paths. Every call gets a
fresh context; nothing is shared between calls, so an ``AeadEngine`` may
be used from several threads at once.

Security Properties:
    - Key, IV and tag sizes are checked before any cipher work
    - On decryption no plaintext is returned unless the tag verifies
    - Tag verification is done by the backend (constant time)

WARNING:
    - Never reuse a (key, iv) pair for two different messages
    - Encrypt and decrypt must agree on the tag length
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESCCM

from cipherkit.core.config import CipherKitConfig
from cipherkit.core.crypto.selectors import CipherMode, CipherSelector
from cipherkit.core.crypto.steps import CipherStep, cipher_step
from cipherkit.core.errors import (
    AuthenticationFailure,
    CipherKitError,
    ContextInitializationError,
    InvalidParameterError,
    OperationError,
)
from cipherkit.core.logging import get_secure_logger
from cipherkit.security.constants import (
    CCM_MAX_IV_LENGTH,
    CCM_MIN_IV_LENGTH,
    CCM_TAG_LENGTHS,
    GCM_MAX_IV_LENGTH,
    GCM_MAX_TAG_LENGTH,
    GCM_MIN_IV_LENGTH,
    GCM_MIN_TAG_LENGTH,
)
from cipherkit.utils.validators import (
    validate_bytes,
    validate_exact_length,
    validate_int_choice,
    validate_int_range,
    validate_length_range,
    validate_optional_bytes,
)

logger = get_secure_logger(__name__)


@dataclass(frozen=True, slots=True)
class AeadResult:
    """
    Immutable result of AEAD encryption.

    Attributes:
        ciphertext: Encrypted data, same length as the plaintext
        tag: Authentication tag of the requested length

    Unpacks as ``ciphertext, tag = engine.encrypt(...)``.
    """

    ciphertext: bytes
    tag: bytes

    def __iter__(self) -> Iterator[bytes]:
        return iter((self.ciphertext, self.tag))

    def __repr__(self) -> str:
        """Safe representation without exposing ciphertext or tag bytes."""
        return f"AeadResult(ciphertext_len={len(self.ciphertext)}, tag_len={len(self.tag)})"


class _AeadContext(ABC):
    """
    One AEAD session over a backend primitive.

    Subclasses translate the shared step methods onto what the
    ``cryptography`` primitive for their mode exposes. Step methods raise
    backend-style exceptions (``ValueError``, ``InvalidTag``); the engine
    maps them onto cipherkit errors.
    """

    mode: CipherMode
    min_iv_length: int
    max_iv_length: int

    def __init__(self, decrypting: bool) -> None:
        self._decrypting = decrypting
        self._key: Optional[bytes] = None
        self._iv: Optional[bytes] = None
        self._expected_tag: Optional[bytes] = None

    def init(self, key: bytes, iv: bytes) -> None:
        # Rejects key sizes AES does not support
        algorithms.AES(key)
        self._key = key
        self._iv = iv

    def set_iv_length(self, length: int) -> None:
        if self._iv is None:
            raise ValueError("context is not initialized")
        if length != len(self._iv):
            raise ValueError(f"IV length {length} does not match the {len(self._iv)}-byte IV")
        if not self.min_iv_length <= length <= self.max_iv_length:
            raise ValueError(
                f"{self.mode.name} IV must be {self.min_iv_length}..{self.max_iv_length} bytes"
            )

    @abstractmethod
    def set_tag_length(self, length: int) -> None:
        ...

    @abstractmethod
    def set_expected_tag(self, tag: bytes) -> None:
        ...

    @abstractmethod
    def declare_length(self, length: int) -> None:
        ...

    @abstractmethod
    def update_aad(self, aad: bytes) -> None:
        ...

    @abstractmethod
    def update(self, data: bytes) -> bytes:
        ...

    @abstractmethod
    def finalize(self) -> bytes:
        ...

    @abstractmethod
    def get_tag(self, length: int) -> bytes:
        ...


class _GcmContext(_AeadContext):
    """
    Streaming GCM over ``Cipher(AES, modes.GCM)``.

    The backend context is created on first use so that a decrypting
    session can size ``min_tag_length`` from the expected tag.
    """

    mode = CipherMode.GCM
    min_iv_length = GCM_MIN_IV_LENGTH
    max_iv_length = GCM_MAX_IV_LENGTH

    def __init__(self, decrypting: bool) -> None:
        super().__init__(decrypting)
        self._tag_length = GCM_MAX_TAG_LENGTH
        self._backend = None

    def _context(self):
        if self._backend is None:
            if self._decrypting and self._expected_tag is None:
                raise ValueError("expected tag must be set before GCM decryption")
            cipher = Cipher(
                algorithms.AES(self._key),
                modes.GCM(self._iv, min_tag_length=self._tag_length),
            )
            self._backend = cipher.decryptor() if self._decrypting else cipher.encryptor()
        return self._backend

    def set_tag_length(self, length: int) -> None:
        if not GCM_MIN_TAG_LENGTH <= length <= GCM_MAX_TAG_LENGTH:
            raise ValueError(f"GCM tag must be {GCM_MIN_TAG_LENGTH}..{GCM_MAX_TAG_LENGTH} bytes")
        if self._backend is not None:
            raise ValueError("tag length must be set before data is processed")
        self._tag_length = length

    def set_expected_tag(self, tag: bytes) -> None:
        if not self._decrypting:
            raise ValueError("expected tag is only used when decrypting")
        self.set_tag_length(len(tag))
        self._expected_tag = tag

    def declare_length(self, length: int) -> None:
        # GCM does not need the message length in advance
        pass

    def update_aad(self, aad: bytes) -> None:
        self._context().authenticate_additional_data(aad)

    def update(self, data: bytes) -> bytes:
        return self._context().update(data)

    def finalize(self) -> bytes:
        context = self._context()
        if self._decrypting:
            return context.finalize_with_tag(self._expected_tag)
        return context.finalize()

    def get_tag(self, length: int) -> bytes:
        if self._decrypting:
            raise ValueError("tag is only produced when encrypting")
        if length > len(self._context().tag):
            raise ValueError(f"tag length {length} exceeds the {GCM_MAX_TAG_LENGTH}-byte GCM tag")
        return self._context().tag[:length]


class _CcmContext(_AeadContext):
    """
    CCM over ``AESCCM``.

    CCM processes the whole message in a single update: AAD is buffered
    until then, and on decryption the tag is verified inside that update,
    before any plaintext is handed back.
    """

    mode = CipherMode.CCM
    min_iv_length = CCM_MIN_IV_LENGTH
    max_iv_length = CCM_MAX_IV_LENGTH

    def __init__(self, decrypting: bool) -> None:
        super().__init__(decrypting)
        self._aead: Optional[AESCCM] = None
        self._tag_length: Optional[int] = None
        self._declared_length: Optional[int] = None
        self._aad = bytearray()
        self._tag: Optional[bytes] = None
        self._updated = False

    def set_tag_length(self, length: int) -> None:
        if self._key is None:
            raise ValueError("context is not initialized")
        self._aead = AESCCM(self._key, tag_length=length)
        self._tag_length = length

    def set_expected_tag(self, tag: bytes) -> None:
        if not self._decrypting:
            raise ValueError("expected tag is only used when decrypting")
        if self._tag_length is None:
            raise ValueError("tag length must be set before the expected tag")
        if len(tag) != self._tag_length:
            raise ValueError(f"expected a {self._tag_length}-byte tag, got {len(tag)}")
        self._expected_tag = tag

    def declare_length(self, length: int) -> None:
        if self._aad or self._updated:
            raise ValueError("message length must be declared before AAD and data")
        self._declared_length = length

    def update_aad(self, aad: bytes) -> None:
        if self._updated:
            raise ValueError("AAD must be supplied before the message")
        if aad and self._declared_length is None:
            raise ValueError("message length must be declared before AAD")
        self._aad += aad

    def update(self, data: bytes) -> bytes:
        if self._aead is None:
            raise ValueError("tag length must be set before data is processed")
        if self._updated:
            raise ValueError("CCM accepts a single update call")
        if self._declared_length is not None and self._declared_length != len(data):
            raise ValueError(
                f"declared length {self._declared_length} does not match {len(data)}-byte message"
            )
        self._updated = True
        aad = bytes(self._aad) or None

        if self._decrypting:
            if self._expected_tag is None:
                raise ValueError("expected tag must be set before CCM decryption")
            return self._aead.decrypt(self._iv, data + self._expected_tag, aad)

        sealed = self._aead.encrypt(self._iv, data, aad)
        self._tag = sealed[len(data):]
        return sealed[:len(data)]

    def finalize(self) -> bytes:
        if not self._updated:
            raise ValueError("CCM finalize called before update")
        return b""

    def get_tag(self, length: int) -> bytes:
        if self._tag is None:
            raise ValueError("tag is only available after encryption")
        if length != self._tag_length:
            raise ValueError(f"CCM tag length is fixed at {self._tag_length} bytes")
        return self._tag


_CONTEXTS: dict[CipherMode, type[_AeadContext]] = {
    CipherMode.GCM: _GcmContext,
    CipherMode.CCM: _CcmContext,
}


def _wipe(buffer: bytearray) -> None:
    """Overwrite a candidate output buffer before dropping it."""
    buffer[:] = bytes(len(buffer))


class AeadEngine:
    """
    AES-GCM / AES-CCM engine.

    Usage:
        engine = AeadEngine()
        key = engine.generate_key(CipherSelector.AES_256_GCM)
        iv = engine.generate_iv(CipherSelector.AES_256_GCM)

        ciphertext, tag = engine.encrypt(
            b"payload", key, iv, CipherSelector.AES_256_GCM, aad=b"header"
        )
        plaintext = engine.decrypt(
            ciphertext, key, iv, tag, CipherSelector.AES_256_GCM, aad=b"header"
        )

    Errors:
        InvalidParameterError for bad sizes or selectors,
        ContextInitializationError / OperationError for backend failures,
        AuthenticationFailure when the tag does not verify.
    """

    __slots__ = ()

    @staticmethod
    def generate_key(selector: CipherSelector | str) -> bytes:
        """Generate a random key of the selector's size."""
        return secrets.token_bytes(_aead_selector(selector).key_size)

    @staticmethod
    def generate_iv(selector: CipherSelector | str, length: Optional[int] = None) -> bytes:
        """
        Generate a random IV.

        Defaults to the configured IV length for the selector's mode
        (12 bytes for both GCM and CCM unless overridden).
        """
        selector = _aead_selector(selector)
        if length is None:
            defaults = CipherKitConfig.get_instance().crypto
            length = defaults.gcm_iv_length if selector.mode is CipherMode.GCM else defaults.ccm_iv_length
        context = _CONTEXTS[selector.mode]
        validate_int_range(length, context.min_iv_length, context.max_iv_length, "iv length")
        return secrets.token_bytes(length)

    def encrypt(
        self,
        plaintext: bytes,
        key: bytes,
        iv: bytes,
        selector: CipherSelector | str,
        tag_length: Optional[int] = None,
        aad: Optional[bytes] = None,
    ) -> AeadResult:
        """
        Encrypt and authenticate ``plaintext``.

        Args:
            plaintext: Data to encrypt (can be empty)
            key: Key of exactly ``selector.key_size`` bytes
            iv: Nonce, unique per message under this key
            selector: An AES GCM or CCM selector
            tag_length: Tag size in bytes (config default, normally 16)
            aad: Additional Authenticated Data (authenticated, not encrypted)

        Returns:
            AeadResult with ciphertext and tag

        Raises:
            InvalidParameterError: Sizes or selector rejected
            ContextInitializationError: Backend could not be set up
            OperationError: A cipher step failed
        """
        selector = _aead_selector(selector)
        plaintext = validate_bytes(plaintext, "plaintext")
        key = validate_bytes(key, "key", allow_empty=False)
        iv = validate_bytes(iv, "iv", allow_empty=False)
        aad = validate_optional_bytes(aad, "aad")
        if tag_length is None:
            tag_length = CipherKitConfig.get_instance().crypto.tag_length
        _check_sizes(selector, key, iv, tag_length, len(plaintext))

        logger.debug(
            "AEAD encrypt cipher=%s plaintext_len=%d aad_len=%d tag_length=%d",
            selector, len(plaintext), len(aad or b""), tag_length,
        )

        context = _open_context(selector, key, iv, decrypting=False, tag_length=tag_length)
        _feed_aad(context, selector, aad, len(plaintext))

        ciphertext = bytearray()
        with cipher_step(CipherStep.UPDATE):
            ciphertext += context.update(plaintext)
        with cipher_step(CipherStep.FINALIZE):
            ciphertext += context.finalize()
        with cipher_step(CipherStep.GET_TAG):
            tag = context.get_tag(tag_length)

        if len(ciphertext) != len(plaintext) or len(tag) != tag_length:
            raise OperationError(CipherStep.FINALIZE.value, "backend produced unexpected output size")

        return AeadResult(ciphertext=bytes(ciphertext), tag=bytes(tag))

    def decrypt(
        self,
        ciphertext: bytes,
        key: bytes,
        iv: bytes,
        tag: bytes,
        selector: CipherSelector | str,
        aad: Optional[bytes] = None,
        tag_length: Optional[int] = None,
    ) -> bytes:
        """
        Verify and decrypt ``ciphertext``.

        Args:
            ciphertext: Data produced by ``encrypt``
            key: The key used for encryption
            iv: The IV used for encryption
            tag: The authentication tag produced by ``encrypt``
            selector: The selector used for encryption
            aad: The AAD used for encryption (None and b"" are equivalent)
            tag_length: Optional expected tag size; must equal ``len(tag)``

        Returns:
            Decrypted plaintext bytes

        Raises:
            InvalidParameterError: Sizes or selector rejected
            AuthenticationFailure: Tag did not verify; no plaintext released
            ContextInitializationError / OperationError: Backend failure
        """
        selector = _aead_selector(selector)
        ciphertext = validate_bytes(ciphertext, "ciphertext")
        key = validate_bytes(key, "key", allow_empty=False)
        iv = validate_bytes(iv, "iv", allow_empty=False)
        tag = validate_bytes(tag, "tag", allow_empty=False)
        aad = validate_optional_bytes(aad, "aad")
        if tag_length is not None:
            validate_exact_length(tag, tag_length, "tag")
        _check_sizes(selector, key, iv, len(tag), len(ciphertext))

        logger.debug(
            "AEAD decrypt cipher=%s ciphertext_len=%d aad_len=%d tag_length=%d",
            selector, len(ciphertext), len(aad or b""), len(tag),
        )

        context = _open_context(selector, key, iv, decrypting=True, tag_length=len(tag))
        with cipher_step(CipherStep.SET_EXPECTED_TAG):
            context.set_expected_tag(tag)
        _feed_aad(context, selector, aad, len(ciphertext))

        candidate = bytearray()
        try:
            with cipher_step(CipherStep.UPDATE):
                candidate += context.update(ciphertext)
            with cipher_step(CipherStep.FINALIZE):
                candidate += context.finalize()
        except AuthenticationFailure:
            _wipe(candidate)
            logger.warning("AEAD authentication failed cipher=%s", selector)
            raise
        except CipherKitError:
            _wipe(candidate)
            raise

        return bytes(candidate)


def _aead_selector(selector: CipherSelector | str) -> CipherSelector:
    selector = CipherSelector.coerce(selector)
    if not selector.is_aead:
        raise InvalidParameterError(
            "selector", f"{selector} is not an AEAD cipher; use PasswordBlockCipher"
        )
    return selector


def _check_sizes(
    selector: CipherSelector,
    key: bytes,
    iv: bytes,
    tag_length: int,
    message_length: int,
) -> None:
    """Reject key, IV, tag and message sizes the selected mode cannot take."""
    validate_exact_length(key, selector.key_size, "key")
    context = _CONTEXTS[selector.mode]
    validate_length_range(iv, context.min_iv_length, context.max_iv_length, "iv")

    if selector.mode is CipherMode.CCM:
        validate_int_choice(tag_length, CCM_TAG_LENGTHS, "tag length")
        # CCM encodes the message length in 15 - len(iv) bytes
        limit = 2 ** (8 * (15 - len(iv)))
        if message_length >= limit:
            raise InvalidParameterError(
                "validate", f"message too long for a {len(iv)}-byte CCM IV (limit {limit - 1} bytes)"
            )
    else:
        validate_int_range(tag_length, GCM_MIN_TAG_LENGTH, GCM_MAX_TAG_LENGTH, "tag length")


def _open_context(
    selector: CipherSelector,
    key: bytes,
    iv: bytes,
    decrypting: bool,
    tag_length: int,
) -> _AeadContext:
    """Create and key a fresh context and run the mode-specific setup steps."""
    with cipher_step(CipherStep.CREATE_CONTEXT, ContextInitializationError):
        context = _CONTEXTS[selector.mode](decrypting)
    with cipher_step(CipherStep.INIT, ContextInitializationError):
        context.init(key, iv)
    with cipher_step(CipherStep.SET_IV_LENGTH):
        context.set_iv_length(len(iv))
    if selector.mode.requires_tag_length_up_front:
        with cipher_step(CipherStep.SET_TAG_LENGTH):
            context.set_tag_length(tag_length)
    return context


def _feed_aad(
    context: _AeadContext,
    selector: CipherSelector,
    aad: Optional[bytes],
    message_length: int,
) -> None:
    """Declare the message length where required, then feed AAD. Empty AAD skips both."""
    if not aad:
        return
    if selector.mode.requires_length_declaration:
        with cipher_step(CipherStep.DECLARE_LENGTH):
            context.declare_length(message_length)
    with cipher_step(CipherStep.AAD):
        context.update_aad(aad)


_engine = AeadEngine()


def encrypt_aes_gcm(
    data: bytes,
    key: bytes,
    iv: bytes,
    tag_length: Optional[int] = None,
    aad: Optional[bytes] = None,
) -> AeadResult:
    """Encrypt with AES-GCM; AES-128/192/256 is picked from the key length."""
    key = validate_bytes(key, "key", allow_empty=False)
    selector = CipherSelector.for_key(len(key), CipherMode.GCM)
    return _engine.encrypt(data, key, iv, selector, tag_length=tag_length, aad=aad)


def decrypt_aes_gcm(
    data: bytes,
    key: bytes,
    iv: bytes,
    tag: bytes,
    aad: Optional[bytes] = None,
    tag_length: Optional[int] = None,
) -> bytes:
    """Decrypt with AES-GCM; raises AuthenticationFailure if the tag does not verify."""
    key = validate_bytes(key, "key", allow_empty=False)
    selector = CipherSelector.for_key(len(key), CipherMode.GCM)
    return _engine.decrypt(data, key, iv, tag, selector, aad=aad, tag_length=tag_length)


def encrypt_aes_ccm(
    data: bytes,
    key: bytes,
    iv: bytes,
    tag_length: Optional[int] = None,
    aad: Optional[bytes] = None,
) -> AeadResult:
    """Encrypt with AES-CCM; AES-128/192/256 is picked from the key length."""
    key = validate_bytes(key, "key", allow_empty=False)
    selector = CipherSelector.for_key(len(key), CipherMode.CCM)
    return _engine.encrypt(data, key, iv, selector, tag_length=tag_length, aad=aad)


def decrypt_aes_ccm(
    data: bytes,
    key: bytes,
    iv: bytes,
    tag: bytes,
    aad: Optional[bytes] = None,
    tag_length: Optional[int] = None,
) -> bytes:
    """Decrypt with AES-CCM; raises AuthenticationFailure if the tag does not verify."""
    key = validate_bytes(key, "key", allow_empty=False)
    selector = CipherSelector.for_key(len(key), CipherMode.CCM)
    return _engine.decrypt(data, key, iv, tag, selector, aad=aad, tag_length=tag_length)
