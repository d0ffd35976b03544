"""
cipherkit Cryptographic Core
============================

Architecture:
    1. AeadEngine: AES-GCM / AES-CCM authenticated encryption
    2. PasswordBlockCipher: legacy password-derived AES block cipher modes
    3. Selectors: capability descriptors for cipher and digest choice

Security Properties:
    - AEAD decryption never releases unauthenticated plaintext
    - Sizes are validated before any backend call
    - Each call owns its own cipher context (thread safe, no shared state)

WARNING: The block cipher engine does not authenticate ciphertext.
"""

from cipherkit.core.crypto.aead import (
    AeadEngine,
    AeadResult,
    decrypt_aes_ccm,
    decrypt_aes_gcm,
    encrypt_aes_ccm,
    encrypt_aes_gcm,
)
from cipherkit.core.crypto.block_cipher import (
    PasswordBlockCipher,
    decrypt_password_block_cipher,
    encrypt_password_block_cipher,
)
from cipherkit.core.crypto.kdf import (
    DerivedKeyMaterial,
    derive_key_and_iv,
    generate_salt,
    prestretch_password,
)
from cipherkit.core.crypto.selectors import CipherMode, CipherSelector, DigestSelector
from cipherkit.core.crypto.steps import CipherStep

__all__ = [
    "AeadEngine",
    "AeadResult",
    "CipherMode",
    "CipherSelector",
    "CipherStep",
    "DerivedKeyMaterial",
    "DigestSelector",
    "PasswordBlockCipher",
    "decrypt_aes_ccm",
    "decrypt_aes_gcm",
    "decrypt_password_block_cipher",
    "derive_key_and_iv",
    "encrypt_aes_ccm",
    "encrypt_aes_gcm",
    "encrypt_password_block_cipher",
    "generate_salt",
    "prestretch_password",
]
