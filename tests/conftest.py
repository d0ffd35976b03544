"""
Shared fixtures for the cipherkit test suite.
"""

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from cipherkit.core.config import CipherKitConfig


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from a freshly loaded configuration."""
    CipherKitConfig.reset_instance()
    yield
    CipherKitConfig.reset_instance()


def make_certificate(common_name: str) -> x509.Certificate:
    """Build a self-signed CA certificate for store tests."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )


@pytest.fixture
def ca_certificate():
    return make_certificate("cipherkit test root")


@pytest.fixture
def second_ca_certificate():
    return make_certificate("cipherkit second root")


@pytest.fixture
def pem_bytes():
    def encode(*certificates):
        return b"".join(c.public_bytes(serialization.Encoding.PEM) for c in certificates)
    return encode


@pytest.fixture
def der_bytes():
    def encode(certificate):
        return certificate.public_bytes(serialization.Encoding.DER)
    return encode


@pytest.fixture
def private_key_pem():
    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
