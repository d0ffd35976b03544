"""
Certificate store configuration for higher-level verification code.
"""

from cipherkit.core.x509.store import (
    CertificateStore,
    LookupMethod,
    Purpose,
    Trust,
    VerifyFlag,
)

__all__ = ["CertificateStore", "LookupMethod", "Purpose", "Trust", "VerifyFlag"]
