"""
Error Taxonomy
==============

Every failure raised by the engines is a ``CipherKitError`` subclass that
names the step that failed and carries the backend's diagnostic text. The
original backend exception, when there is one, is chained with
``raise ... from`` so it stays available on ``__cause__``.

Categories:
    InvalidParameterError       bad key/iv/tag sizes, bad selectors (fail fast)
    ContextInitializationError  cipher context could not be created or keyed
    OperationError              AAD, update, length or tag step failed
    AuthenticationFailure       AEAD tag did not verify, plaintext discarded
    IntegrityFailure            block-cipher finalize/padding check failed
    ResourceExhaustionError     buffer allocation failed
    CertificateStoreError       certificate store setter failed
    ConfigurationError          bad CIPHERKIT_* environment override
"""

from __future__ import annotations

from typing import Optional


class CipherKitError(Exception):
    """Base class for all cipherkit failures."""

    default_detail = "cryptographic operation failed"

    def __init__(self, step: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.step = step
        self.detail = detail or self.default_detail
        super().__init__(self._compose())

    def _compose(self) -> str:
        if self.step:
            return f"{self.step}: {self.detail}"
        return self.detail


class InvalidParameterError(CipherKitError, ValueError):
    """A parameter was rejected before any cipher operation ran."""

    default_detail = "invalid parameter"


class ContextInitializationError(CipherKitError):
    """The cipher context could not be created or initialized."""

    default_detail = "cipher context initialization failed"


class OperationError(CipherKitError):
    """An AAD, update, length-declaration or tag step failed."""


class AuthenticationFailure(CipherKitError):
    """
    The authentication tag did not verify.

    Raised only after the candidate plaintext has been dropped. Callers
    should treat it as tampered or forged input, not as a usage error.
    """

    default_detail = "authentication tag verification failed"


class IntegrityFailure(CipherKitError):
    """Block-cipher finalize failed (bad padding or truncated ciphertext)."""

    default_detail = "ciphertext integrity check failed"


class ResourceExhaustionError(CipherKitError, MemoryError):
    """A buffer for the operation could not be allocated."""

    default_detail = "out of memory"


class CertificateStoreError(CipherKitError):
    """A certificate store setter failed; the store was left unchanged."""

    default_detail = "certificate store update failed"


class ConfigurationError(CipherKitError, ValueError):
    """An environment override could not be turned into a valid setting."""

    default_detail = "invalid configuration"
