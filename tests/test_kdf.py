"""
Tests for salt generation, legacy key derivation and Argon2id pre-stretching.
"""

import pytest

from cipherkit import (
    CipherSelector,
    DerivedKeyMaterial,
    DigestSelector,
    InvalidParameterError,
    derive_key_and_iv,
    generate_salt,
    prestretch_password,
)


class TestDeriveKeyAndIv:

    @pytest.mark.parametrize(
        "password, salt, rounds, cipher, digest, key_hex, iv_hex",
        [
            (b"correct horse", b"saltsalt", 1, "aes-256-cbc", "sha512",
             "e74aec44d05ff23dc8e7113e430687745c8c84ecc84ecb19f01077531c10f922",
             "3524aca0626e997916130ee532159208"),
            (b"correct horse", b"saltsalt", 1000, "aes-256-cbc", "sha512",
             "d1c3904b38cb367b5d140d1f9265f87df9c129cd9cf7901f9815d1494e17a0f5",
             "0c1b288e1f0af79f92af00695ebbbf91"),
            (b"correct horse", None, 1, "aes-128-ctr", "md5",
             "3cb4e732631f47e6eb961f34554b7cde",
             "8ace33bdac244269f1a356b6733e4cf5"),
            (b"pw", b"12345678", 3, "aes-192-ecb", "sha256",
             "b6817b7c8da335c1e595754e7b4e53d95791c8f24481c392",
             ""),
            (b"password", bytes(range(1, 9)), 1, "aes-256-cbc", "md5",
             "e7b0971e52ca5cc8d0539fb3412f6316f7ba2e6ee293d9f3457b99436b51ce02",
             "8d450e2ed75a84a923d4eac9fe49226b"),
        ],
    )
    def test_reference_vectors(self, password, salt, rounds, cipher, digest, key_hex, iv_hex):
        key, iv = derive_key_and_iv(password, salt, rounds, cipher, digest)
        assert key.hex() == key_hex
        assert iv.hex() == iv_hex

    def test_md5_needs_several_blocks_for_aes_256(self):
        # 32-byte key + 16-byte iv from 16-byte digests: three blocks chained
        material = derive_key_and_iv(b"password", bytes(range(1, 9)), 1, "aes-256-cbc", DigestSelector.MD5)
        assert len(material.key) == 32
        assert len(material.iv) == 16

    def test_none_and_empty_salt_are_equivalent(self):
        unsalted = derive_key_and_iv(b"pw", None, 1, "aes-128-cbc", "sha256")
        empty = derive_key_and_iv(b"pw", b"", 1, "aes-128-cbc", "sha256")
        assert unsalted == empty

    def test_deterministic(self):
        first = derive_key_and_iv(b"pw", b"12345678", 5, CipherSelector.AES_256_CFB, "sha1")
        second = derive_key_and_iv(b"pw", b"12345678", 5, CipherSelector.AES_256_CFB, "sha1")
        assert first == second

    def test_salt_changes_output(self):
        first = derive_key_and_iv(b"pw", b"12345678", 1, "aes-256-cbc", "sha256")
        second = derive_key_and_iv(b"pw", b"12345679", 1, "aes-256-cbc", "sha256")
        assert first.key != second.key

    def test_rounds_change_output(self):
        one = derive_key_and_iv(b"pw", b"12345678", 1, "aes-256-cbc", "sha256")
        two = derive_key_and_iv(b"pw", b"12345678", 2, "aes-256-cbc", "sha256")
        assert one.key != two.key

    @pytest.mark.parametrize("selector", [s for s in CipherSelector if not s.is_aead])
    def test_sizes_follow_selector(self, selector):
        key, iv = derive_key_and_iv(b"pw", b"12345678", 1, selector, "sha256")
        assert len(key) == selector.key_size
        assert len(iv) == selector.iv_size

    def test_repr_hides_material(self):
        material = derive_key_and_iv(b"pw", b"12345678", 1, "aes-128-cbc", "sha256")
        assert isinstance(material, DerivedKeyMaterial)
        assert repr(material) == "DerivedKeyMaterial(key_len=16, iv_len=16)"
        assert material.key.hex() not in repr(material)

    @pytest.mark.parametrize("salt", [b"1234567", b"123456789"])
    def test_salt_length(self, salt):
        with pytest.raises(InvalidParameterError, match="exactly 8 bytes"):
            derive_key_and_iv(b"pw", salt, 1, "aes-128-cbc", "sha256")

    @pytest.mark.parametrize("rounds", [0, -5, True, 1.5])
    def test_rounds_validation(self, rounds):
        with pytest.raises(InvalidParameterError):
            derive_key_and_iv(b"pw", b"12345678", rounds, "aes-128-cbc", "sha256")

    @pytest.mark.parametrize("cipher", ["aes-128-gcm", "aes-256-ccm"])
    def test_aead_selectors_rejected(self, cipher):
        with pytest.raises(InvalidParameterError, match="AEAD"):
            derive_key_and_iv(b"pw", b"12345678", 1, cipher, "sha256")

    def test_password_must_be_bytes(self):
        with pytest.raises(InvalidParameterError):
            derive_key_and_iv("pw", b"12345678", 1, "aes-128-cbc", "sha256")


class TestGenerateSalt:

    def test_default_size(self):
        assert len(generate_salt()) == 8

    def test_explicit_size(self):
        assert len(generate_salt(32)) == 32

    def test_configured_size(self, monkeypatch):
        monkeypatch.setenv("CIPHERKIT_CRYPTO__SALT_LENGTH", "16")
        assert len(generate_salt()) == 16

    def test_unique(self):
        salts = {generate_salt() for _ in range(64)}
        assert len(salts) == 64

    @pytest.mark.parametrize("size", [0, -1])
    def test_rejects_non_positive(self, size):
        with pytest.raises(InvalidParameterError):
            generate_salt(size)


class TestPrestretchPassword:

    @pytest.fixture(autouse=True)
    def cheap_argon2(self, monkeypatch):
        monkeypatch.setenv("CIPHERKIT_ARGON2__TIME_COST", "1")
        monkeypatch.setenv("CIPHERKIT_ARGON2__MEMORY_COST", "1024")
        monkeypatch.setenv("CIPHERKIT_ARGON2__PARALLELISM", "1")

    def test_output_length(self):
        assert len(prestretch_password("hunter2", b"0123456789abcdef")) == 32
        assert len(prestretch_password(b"hunter2", b"0123456789abcdef", length=64)) == 64

    def test_str_and_utf8_bytes_agree(self):
        salt = b"0123456789abcdef"
        assert prestretch_password("pässword", salt) == prestretch_password("pässword".encode(), salt)

    def test_salt_changes_output(self):
        assert prestretch_password("pw", b"A" * 16) != prestretch_password("pw", b"B" * 16)

    def test_feeds_block_cipher(self):
        from cipherkit import decrypt_password_block_cipher, encrypt_password_block_cipher

        salt = generate_salt()
        stretched = prestretch_password("hunter2", salt + salt)
        ciphertext = encrypt_password_block_cipher(b"payload", stretched, salt)
        assert decrypt_password_block_cipher(ciphertext, stretched, salt) == b"payload"

    def test_short_salt_rejected(self):
        with pytest.raises(InvalidParameterError, match="at least 8 bytes"):
            prestretch_password("pw", b"1234567")

    def test_empty_password_rejected(self):
        with pytest.raises(InvalidParameterError):
            prestretch_password("", b"0123456789abcdef")
