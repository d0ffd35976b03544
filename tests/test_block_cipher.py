"""
Tests for the password-based AES block cipher engine.

Reference ciphertexts match ``openssl enc -aes-... -md ... -S ... -iter``
style derivation for the same password, salt and round count.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from cipherkit import (
    CipherSelector,
    DigestSelector,
    IntegrityFailure,
    InvalidParameterError,
    PasswordBlockCipher,
    decrypt_password_block_cipher,
    encrypt_password_block_cipher,
)

PASSWORD = b"correct horse"
SALT = b"saltsalt"
PLAINTEXT = b"attack at dawn"

STREAM_SELECTORS = [
    CipherSelector.AES_128_CFB,
    CipherSelector.AES_256_CFB8,
    CipherSelector.AES_192_OFB,
    CipherSelector.AES_128_CTR,
    CipherSelector.AES_256_CTR,
]
PADDED_SELECTORS = [
    CipherSelector.AES_128_ECB,
    CipherSelector.AES_256_ECB,
    CipherSelector.AES_128_CBC,
    CipherSelector.AES_192_CBC,
    CipherSelector.AES_256_CBC,
]


@pytest.fixture
def engine():
    return PasswordBlockCipher()


class TestReferenceVectors:

    @pytest.mark.parametrize(
        "cipher, digest, password, salt, rounds, plaintext, expected",
        [
            ("aes-256-cbc", "sha512", PASSWORD, SALT, 1, PLAINTEXT,
             "87c29cf7ac51dc373a36f627015c8b87"),
            ("aes-256-cbc", "sha512", PASSWORD, SALT, 1000, PLAINTEXT,
             "153f1493cf057e15aed3e0c68f3299e9"),
            ("aes-128-ctr", "md5", PASSWORD, None, 1, PLAINTEXT,
             "3ed64404bbd4c7730d45e7ad0b63"),
            ("aes-192-ecb", "sha256", b"pw", b"12345678", 3, PLAINTEXT,
             "ee599e2bfd99371ac6f53a63559c3b6b"),
            ("aes-256-cbc", "md5", b"password", bytes(range(1, 9)), 1, b"",
             "0c9e42496a60aacaf65b33f63aeab2cd"),
        ],
    )
    def test_matches_openssl(self, cipher, digest, password, salt, rounds, plaintext, expected):
        ciphertext = encrypt_password_block_cipher(
            plaintext, password, salt, rounds=rounds, cipher=cipher, digest=digest
        )
        assert ciphertext.hex() == expected

        recovered = decrypt_password_block_cipher(
            ciphertext, password, salt, rounds=rounds, cipher=cipher, digest=digest
        )
        assert recovered == plaintext

    def test_defaults_are_aes_256_cbc_sha512(self):
        ciphertext = encrypt_password_block_cipher(PLAINTEXT, PASSWORD, SALT)
        assert ciphertext.hex() == "87c29cf7ac51dc373a36f627015c8b87"

    def test_configured_defaults(self, monkeypatch):
        monkeypatch.setenv("CIPHERKIT_CRYPTO__BLOCK_CIPHER", "aes-128-ctr")
        monkeypatch.setenv("CIPHERKIT_CRYPTO__DIGEST", "md5")
        ciphertext = encrypt_password_block_cipher(PLAINTEXT, PASSWORD, None)
        assert ciphertext.hex() == "3ed64404bbd4c7730d45e7ad0b63"


class TestRoundTrip:

    @pytest.mark.parametrize("selector", PADDED_SELECTORS + STREAM_SELECTORS)
    @pytest.mark.parametrize("length", [0, 1, 15, 16, 17, 100])
    def test_roundtrip(self, engine, selector, length):
        plaintext = bytes(range(length))
        ciphertext = engine.encrypt(plaintext, PASSWORD, SALT, rounds=2, selector=selector)
        assert engine.decrypt(ciphertext, PASSWORD, SALT, rounds=2, selector=selector) == plaintext

    @pytest.mark.parametrize("selector", PADDED_SELECTORS)
    @pytest.mark.parametrize("length, expected", [(0, 16), (15, 16), (16, 32), (17, 32)])
    def test_padded_output_length(self, engine, selector, length, expected):
        ciphertext = engine.encrypt(bytes(length), PASSWORD, SALT, selector=selector)
        assert len(ciphertext) == expected

    @pytest.mark.parametrize("selector", STREAM_SELECTORS)
    def test_stream_modes_keep_length(self, engine, selector):
        for length in (0, 1, 31, 64):
            assert len(engine.encrypt(bytes(length), PASSWORD, SALT, selector=selector)) == length

    def test_different_salts_give_different_ciphertexts(self, engine):
        first = engine.encrypt(PLAINTEXT, PASSWORD, b"AAAAAAAA")
        second = engine.encrypt(PLAINTEXT, PASSWORD, b"BBBBBBBB")
        assert first != second

    def test_with_key_matches_password_path(self, engine):
        from cipherkit import derive_key_and_iv

        key, iv = derive_key_and_iv(PASSWORD, SALT, 1, "aes-256-cbc", "sha512")
        direct = engine.encrypt_with_key(PLAINTEXT, key, iv, CipherSelector.AES_256_CBC)
        assert direct == engine.encrypt(PLAINTEXT, PASSWORD, SALT)
        assert engine.decrypt_with_key(direct, key, iv, "aes-256-cbc") == PLAINTEXT

    def test_empty_password_is_allowed(self, engine):
        ciphertext = engine.encrypt(PLAINTEXT, b"", SALT)
        assert engine.decrypt(ciphertext, b"", SALT) == PLAINTEXT


class TestIntegrity:

    def test_wrong_password_fails_padding(self, engine):
        ciphertext = engine.encrypt(b"x" * 40, PASSWORD, SALT, selector=CipherSelector.AES_128_ECB)
        # A wrong key almost never yields valid PKCS#7 padding; try several
        failures = 0
        for attempt in range(8):
            try:
                engine.decrypt(
                    ciphertext, b"wrong-%d" % attempt, SALT, selector=CipherSelector.AES_128_ECB
                )
            except IntegrityFailure:
                failures += 1
        assert failures >= 6

    @pytest.mark.parametrize("selector", PADDED_SELECTORS)
    def test_truncated_ciphertext(self, engine, selector):
        ciphertext = engine.encrypt(b"x" * 40, PASSWORD, SALT, selector=selector)
        with pytest.raises(IntegrityFailure) as excinfo:
            engine.decrypt(ciphertext[:-1], PASSWORD, SALT, selector=selector)
        assert excinfo.value.step == "finalize"

    def test_corrupted_padding(self, engine):
        key = bytes(32)
        iv = bytes(16)
        # Last plaintext byte 0x00 is never valid PKCS#7 padding
        raw = engine.encrypt_with_key(bytes(15) + b"\x00", key, iv, CipherSelector.AES_256_CBC)[:16]
        with pytest.raises(IntegrityFailure):
            engine.decrypt_with_key(raw, key, iv, CipherSelector.AES_256_CBC)

    def test_stream_modes_do_not_detect_tampering(self, engine):
        ciphertext = bytearray(engine.encrypt(PLAINTEXT, PASSWORD, SALT, selector="aes-256-ctr"))
        ciphertext[0] ^= 0x01
        recovered = engine.decrypt(bytes(ciphertext), PASSWORD, SALT, selector="aes-256-ctr")
        assert recovered != PLAINTEXT
        assert recovered[1:] == PLAINTEXT[1:]

    def test_integrity_failure_is_not_invalid_parameter(self, engine):
        with pytest.raises(IntegrityFailure) as excinfo:
            engine.decrypt(b"\x00" * 17, PASSWORD, SALT)
        assert not isinstance(excinfo.value, InvalidParameterError)


class TestParameterValidation:

    @pytest.mark.parametrize("selector", ["aes-256-gcm", CipherSelector.AES_128_CCM])
    def test_aead_selector_rejected(self, engine, selector):
        with pytest.raises(InvalidParameterError, match="AEAD"):
            engine.encrypt(PLAINTEXT, PASSWORD, SALT, selector=selector)

    def test_unknown_cipher_name(self):
        with pytest.raises(InvalidParameterError, match="unknown cipher"):
            encrypt_password_block_cipher(PLAINTEXT, PASSWORD, SALT, cipher="des-ede3-cbc")

    def test_unknown_digest_name(self):
        with pytest.raises(InvalidParameterError, match="unknown digest"):
            encrypt_password_block_cipher(PLAINTEXT, PASSWORD, SALT, digest="whirlpool")

    @pytest.mark.parametrize("salt", [b"short", b"nine-byte", b"\x00" * 16])
    def test_salt_must_be_eight_bytes(self, salt):
        with pytest.raises(InvalidParameterError, match="salt"):
            encrypt_password_block_cipher(PLAINTEXT, PASSWORD, salt)

    @pytest.mark.parametrize("rounds", [0, -1])
    def test_rounds_must_be_positive(self, rounds):
        with pytest.raises(InvalidParameterError, match="rounds"):
            encrypt_password_block_cipher(PLAINTEXT, PASSWORD, SALT, rounds=rounds)

    def test_with_key_checks_sizes(self, engine):
        with pytest.raises(InvalidParameterError, match="key must be exactly 32 bytes"):
            engine.encrypt_with_key(PLAINTEXT, bytes(16), bytes(16), CipherSelector.AES_256_CBC)
        with pytest.raises(InvalidParameterError, match="iv must be exactly 16 bytes"):
            engine.encrypt_with_key(PLAINTEXT, bytes(32), bytes(12), CipherSelector.AES_256_CBC)
        with pytest.raises(InvalidParameterError, match="iv must be exactly 0 bytes"):
            engine.encrypt_with_key(PLAINTEXT, bytes(16), bytes(16), CipherSelector.AES_128_ECB)

    def test_text_input_rejected(self, engine):
        with pytest.raises(InvalidParameterError, match="must be bytes"):
            engine.encrypt("attack at dawn", PASSWORD, SALT)

    def test_digest_selector_object_accepted(self, engine):
        ciphertext = engine.encrypt(PLAINTEXT, PASSWORD, SALT, digest=DigestSelector.SHA512)
        assert ciphertext.hex() == "87c29cf7ac51dc373a36f627015c8b87"


class TestConcurrency:

    def test_parallel_roundtrips_share_module_engine(self):
        selectors = PADDED_SELECTORS + STREAM_SELECTORS

        def roundtrip(index):
            password = f"password {index}".encode()
            salt = index.to_bytes(8, "big")
            selector = selectors[index % len(selectors)]
            plaintext = bytes(range(index % 50))
            ciphertext = encrypt_password_block_cipher(plaintext, password, salt, rounds=3, cipher=selector)
            recovered = decrypt_password_block_cipher(ciphertext, password, salt, rounds=3, cipher=selector)
            return plaintext, recovered

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(roundtrip, range(200)))

        assert len(results) == 200
        for plaintext, recovered in results:
            assert recovered == plaintext
