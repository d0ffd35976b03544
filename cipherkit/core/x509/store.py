"""
Certificate Store Configuration
===============================

Trust policy for a caller-owned certificate store: trusted certificates,
lookup methods, verification depth, flags, purpose and trust level, and
CA material loaded from the system defaults or from files/directories.

The store does not validate chains itself; ``to_policy_builder`` hands
its certificates and depth to ``cryptography.x509.verification`` for the
code that does.

Every setter either succeeds (returns True) or raises
``CertificateStoreError`` with the store left exactly as it was.
"""

from __future__ import annotations

import enum
import functools
import operator
import re
import ssl
import threading
from pathlib import Path
from typing import Final, Iterable, Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.verification import PolicyBuilder, Store

from cipherkit.core.errors import CertificateStoreError
from cipherkit.core.logging import get_secure_logger
from cipherkit.security.constants import MAX_VERIFY_DEPTH

logger = get_secure_logger(__name__)

# OpenSSL hashed directory entries look like "5ad8a5d6.0"
_HASHED_NAME: Final[re.Pattern[str]] = re.compile(r"^[0-9a-f]{8}\.\d+$")
_CERT_SUFFIXES: Final[frozenset[str]] = frozenset({".pem", ".crt", ".cer", ".der"})
_PEM_MARKER: Final[bytes] = b"-----BEGIN CERTIFICATE-----"


class LookupMethod(enum.Enum):
    """Where the store looks for certificates it does not hold directly."""

    FILE = "file"
    HASH_DIR = "hash_dir"


class VerifyFlag(enum.IntFlag):
    """Verification flags, bit-compatible with OpenSSL's X509_V_FLAG_*."""

    NONE = 0
    CB_ISSUER_CHECK = 0x1
    USE_CHECK_TIME = 0x2
    CRL_CHECK = 0x4
    CRL_CHECK_ALL = 0x8
    IGNORE_CRITICAL = 0x10
    X509_STRICT = 0x20
    ALLOW_PROXY_CERTS = 0x40
    POLICY_CHECK = 0x80
    EXPLICIT_POLICY = 0x100
    INHIBIT_ANY = 0x200
    INHIBIT_MAP = 0x400
    NOTIFY_POLICY = 0x800
    EXTENDED_CRL_SUPPORT = 0x1000
    USE_DELTAS = 0x2000
    CHECK_SS_SIGNATURE = 0x4000
    TRUSTED_FIRST = 0x8000
    PARTIAL_CHAIN = 0x80000
    NO_ALT_CHAINS = 0x100000
    NO_CHECK_TIME = 0x200000


_ALL_FLAGS: Final[int] = functools.reduce(
    operator.or_, (flag.value for flag in VerifyFlag.__members__.values()), 0
)


def _coerce_flags(step: str, flags: object) -> VerifyFlag:
    if isinstance(flags, bool) or not isinstance(flags, int):
        raise CertificateStoreError(step, f"verification flags must be an integer, got {flags!r}")
    if flags < 0 or flags & ~_ALL_FLAGS:
        raise CertificateStoreError(step, f"unknown verification flags: {flags:#x}")
    return VerifyFlag(flags)


class Purpose(enum.IntEnum):
    """Verification purpose (X509_PURPOSE_*)."""

    SSL_CLIENT = 1
    SSL_SERVER = 2
    NS_SSL_SERVER = 3
    SMIME_SIGN = 4
    SMIME_ENCRYPT = 5
    CRL_SIGN = 6
    ANY = 7
    OCSP_HELPER = 8
    TIMESTAMP_SIGN = 9


class Trust(enum.IntEnum):
    """Trust setting (X509_TRUST_*)."""

    COMPAT = 1
    SSL_CLIENT = 2
    SSL_SERVER = 3
    EMAIL = 4
    OBJECT_SIGN = 5
    OCSP_SIGN = 6
    OCSP_REQUEST = 7
    TSA = 8


def _fingerprint(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.DER)


def _read_certificates(path: Path) -> list[x509.Certificate]:
    """Read every certificate in a PEM bundle or a single DER file."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise CertificateStoreError("load", f"cannot read {path}: {exc}") from exc

    try:
        if _PEM_MARKER in data:
            return x509.load_pem_x509_certificates(data)
        return [x509.load_der_x509_certificate(data)]
    except ValueError as exc:
        raise CertificateStoreError("load", f"{path} does not hold a certificate: {exc}") from exc


def _directory_entries(directory: Path) -> Iterable[Path]:
    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        if _HASHED_NAME.match(entry.name) or entry.suffix.lower() in _CERT_SUFFIXES:
            yield entry


class CertificateStore:
    """
    Mutable trust configuration for certificate verification.

    Usage:
        store = CertificateStore()
        store.load_locations(cafile="/etc/ssl/certs/ca-certificates.crt")
        store.set_depth(4)
        store.set_purpose(Purpose.SSL_SERVER)
        verifier = store.to_policy_builder().build_server_verifier(
            x509.DNSName("example.com")
        )

    Every setter takes the store's lock, so a store can be configured
    from several threads; reads return snapshots. Flags, purpose, trust
    and lookups are bookkeeping: ``to_policy_builder`` exports only the
    certificates and the depth.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._certificates: dict[bytes, x509.Certificate] = {}
        self._lookups: list[LookupMethod] = []
        self._locations: list[Path] = []
        self._depth: Optional[int] = None
        self._flags = VerifyFlag.NONE
        self._purpose: Optional[Purpose] = None
        self._trust: Optional[Trust] = None

    @property
    def certificates(self) -> list[x509.Certificate]:
        with self._lock:
            return list(self._certificates.values())

    @property
    def lookups(self) -> list[LookupMethod]:
        with self._lock:
            return list(self._lookups)

    @property
    def locations(self) -> list[Path]:
        with self._lock:
            return list(self._locations)

    @property
    def depth(self) -> Optional[int]:
        return self._depth

    @property
    def flags(self) -> VerifyFlag:
        return self._flags

    @property
    def purpose(self) -> Optional[Purpose]:
        return self._purpose

    @property
    def trust(self) -> Optional[Trust]:
        return self._trust

    def __len__(self) -> int:
        return len(self._certificates)

    def add_certificate(self, certificate: x509.Certificate) -> bool:
        """Trust ``certificate``. Adding one already present is a no-op."""
        if not isinstance(certificate, x509.Certificate):
            raise CertificateStoreError(
                "add_certificate", f"expected an x509.Certificate, got {type(certificate).__name__}"
            )
        with self._lock:
            self._certificates.setdefault(_fingerprint(certificate), certificate)
        return True

    def add_lookup(self, method: LookupMethod) -> bool:
        """Register a lookup method; registering it twice is a no-op."""
        if not isinstance(method, LookupMethod):
            raise CertificateStoreError("add_lookup", f"unknown lookup method: {method!r}")
        with self._lock:
            if method not in self._lookups:
                self._lookups.append(method)
        return True

    def set_depth(self, depth: int) -> bool:
        """Set the maximum number of intermediate certificates in a chain."""
        if isinstance(depth, bool) or not isinstance(depth, int) or not 0 <= depth <= MAX_VERIFY_DEPTH:
            raise CertificateStoreError("set_depth", f"depth must be 0..{MAX_VERIFY_DEPTH}, got {depth!r}")
        with self._lock:
            self._depth = depth
        return True

    def set_flags(self, flags: VerifyFlag | int) -> bool:
        """OR ``flags`` into the current verification flags."""
        flags = _coerce_flags("set_flags", flags)
        with self._lock:
            self._flags |= flags
        return True

    def clear_flags(self, flags: VerifyFlag | int) -> bool:
        """Remove ``flags`` from the current verification flags."""
        flags = _coerce_flags("clear_flags", flags)
        with self._lock:
            self._flags &= ~flags
        return True

    def set_purpose(self, purpose: Purpose | int) -> bool:
        try:
            purpose = Purpose(purpose)
        except ValueError as exc:
            raise CertificateStoreError("set_purpose", f"unknown purpose: {purpose!r}") from exc
        with self._lock:
            self._purpose = purpose
        return True

    def set_trust(self, trust: Trust | int) -> bool:
        try:
            trust = Trust(trust)
        except ValueError as exc:
            raise CertificateStoreError("set_trust", f"unknown trust setting: {trust!r}") from exc
        with self._lock:
            self._trust = trust
        return True

    def load_default_certificates(self) -> bool:
        """
        Load the platform's default CA file and directory.

        Missing default locations are skipped; the file and directory
        lookups are registered either way.
        """
        paths = ssl.get_default_verify_paths()
        cafile = Path(paths.cafile) if paths.cafile else None
        capath = Path(paths.capath) if paths.capath else None

        loaded = self._load(
            cafile if cafile is not None and cafile.is_file() else None,
            capath if capath is not None and capath.is_dir() else None,
        )
        self.add_lookup(LookupMethod.FILE)
        self.add_lookup(LookupMethod.HASH_DIR)
        logger.info("Loaded %d default CA certificates", loaded)
        return True

    def load_locations(
        self,
        cafile: Optional[str | Path] = None,
        capath: Optional[str | Path] = None,
    ) -> bool:
        """
        Load CA certificates from a file and/or a directory.

        Args:
            cafile: PEM bundle or DER certificate
            capath: Directory of PEM/DER certificates (hashed names or
                .pem/.crt/.cer/.der files). Entries that do not parse as
                certificates, such as private keys, are skipped.

        Raises:
            CertificateStoreError: A location is missing or ``cafile``
                holds no certificate
        """
        if cafile is None and capath is None:
            raise CertificateStoreError("load_locations", "cafile or capath is required")

        file_path = Path(cafile) if cafile is not None else None
        dir_path = Path(capath) if capath is not None else None
        if file_path is not None and not file_path.is_file():
            raise CertificateStoreError("load_locations", f"CA file not found: {file_path}")
        if dir_path is not None and not dir_path.is_dir():
            raise CertificateStoreError("load_locations", f"CA directory not found: {dir_path}")

        self._load(file_path, dir_path)
        return True

    def load_location_file(self, path: str | Path) -> bool:
        """
        Load a CA file together with the directory holding it.

        The file itself must hold certificates. Other files in its
        directory are picked up only when they parse as certificates.

        Returns:
            False if ``path`` does not exist, True once loaded
        """
        path = Path(path)
        if not path.exists():
            return False
        if not path.is_file():
            raise CertificateStoreError("load_location_file", f"not a file: {path}")

        self._load(path, path.resolve().parent)
        return True

    def _load(self, cafile: Optional[Path], capath: Optional[Path]) -> int:
        # Parse everything first so a bad cafile leaves the store unchanged
        certificates: list[x509.Certificate] = []
        lookups: list[LookupMethod] = []
        locations: list[Path] = []

        if cafile is not None:
            certificates.extend(_read_certificates(cafile))
            lookups.append(LookupMethod.FILE)
            locations.append(cafile)
        if capath is not None:
            for entry in _directory_entries(capath):
                if cafile is not None and entry.resolve() == cafile.resolve():
                    continue
                # Keys and CSRs share the .pem suffix with certificates
                try:
                    certificates.extend(_read_certificates(entry))
                except CertificateStoreError as exc:
                    logger.debug("Skipping %s: %s", entry.name, exc.detail)
            lookups.append(LookupMethod.HASH_DIR)
            locations.append(capath)

        with self._lock:
            before = len(self._certificates)
            for certificate in certificates:
                self._certificates.setdefault(_fingerprint(certificate), certificate)
            for method in lookups:
                if method not in self._lookups:
                    self._lookups.append(method)
            for location in locations:
                if location not in self._locations:
                    self._locations.append(location)
            added = len(self._certificates) - before

        logger.debug("Certificate store loaded %d new certificates", added)
        return added

    def to_policy_builder(self) -> PolicyBuilder:
        """
        Build a ``PolicyBuilder`` trusting this store's certificates.

        Only the certificates and the depth carry over. Flags, purpose,
        trust and lookups stay recorded on the store for callers that
        consult them; ``cryptography``'s verifier has no counterpart for
        them, and purpose is chosen by building a client or server
        verifier from the returned builder.

        Raises:
            CertificateStoreError: The store holds no certificates
        """
        with self._lock:
            certificates = list(self._certificates.values())
            depth = self._depth
        if not certificates:
            raise CertificateStoreError("to_policy_builder", "store holds no trusted certificates")

        builder = PolicyBuilder().store(Store(certificates))
        if depth is not None:
            builder = builder.max_chain_depth(depth)
        return builder

    def __repr__(self) -> str:
        return (
            f"CertificateStore(certificates={len(self._certificates)}, depth={self._depth}, "
            f"flags={self._flags!r}, purpose={self._purpose}, trust={self._trust})"
        )
