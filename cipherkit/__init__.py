"""
cipherkit - Authenticated and Password-Based Symmetric Encryption
=================================================================

AES-GCM / AES-CCM authenticated encryption with optional associated data,
and password-derived AES block cipher modes (ECB/CBC/CFB/OFB/CTR) keyed
through the legacy salted EVP_BytesToKey routine.

Security Notice:
- No key material is logged
- Failed decryption never returns plaintext
- Errors carry the failing step and the backend diagnostic
"""

from cipherkit.core.config import CipherKitConfig
from cipherkit.core.crypto import (
    AeadEngine,
    AeadResult,
    CipherMode,
    CipherSelector,
    DerivedKeyMaterial,
    DigestSelector,
    PasswordBlockCipher,
    decrypt_aes_ccm,
    decrypt_aes_gcm,
    decrypt_password_block_cipher,
    derive_key_and_iv,
    encrypt_aes_ccm,
    encrypt_aes_gcm,
    encrypt_password_block_cipher,
    generate_salt,
    prestretch_password,
)
from cipherkit.core.errors import (
    AuthenticationFailure,
    CertificateStoreError,
    CipherKitError,
    ConfigurationError,
    ContextInitializationError,
    IntegrityFailure,
    InvalidParameterError,
    OperationError,
    ResourceExhaustionError,
)
from cipherkit.core.logging import configure_logging, get_secure_logger
from cipherkit.core.x509 import CertificateStore

__version__ = "0.1.0"

__all__ = [
    "AeadEngine",
    "AeadResult",
    "AuthenticationFailure",
    "CertificateStore",
    "CertificateStoreError",
    "CipherKitConfig",
    "CipherKitError",
    "ConfigurationError",
    "CipherMode",
    "CipherSelector",
    "ContextInitializationError",
    "DerivedKeyMaterial",
    "DigestSelector",
    "IntegrityFailure",
    "InvalidParameterError",
    "OperationError",
    "PasswordBlockCipher",
    "ResourceExhaustionError",
    "configure_logging",
    "decrypt_aes_ccm",
    "decrypt_aes_gcm",
    "decrypt_password_block_cipher",
    "derive_key_and_iv",
    "encrypt_aes_ccm",
    "encrypt_aes_gcm",
    "encrypt_password_block_cipher",
    "generate_salt",
    "get_secure_logger",
    "prestretch_password",
    "__version__",
]
