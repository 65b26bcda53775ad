"""Certificate loading for mutual TLS.

Turns the RP certificate material (a PKCS#12 archive or PEM certificate
and key) plus a passphrase into a private key, a leaf certificate and the
root certificates to trust. Loading is pure; files are only read by
:meth:`CertificateBundle.from_paths`.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

from .constants import DEFAULT_CA_RESOURCES
from .exceptions import CertificateError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----.*?-----END \1-----", re.DOTALL
)
_PLAIN_KEY_LABELS = {b"PRIVATE KEY", b"EC PRIVATE KEY", b"RSA PRIVATE KEY"}
_LEGACY_ENCRYPTED_HEADER = b"Proc-Type: 4,ENCRYPTED"


class CertificateFormat(Enum):
    """Encoding of the RP certificate material."""

    PKCS12 = "pkcs12"
    PEM = "pem"


@dataclass(frozen=True)
class CertificateBundle:
    """RP certificate material as supplied by the caller.

    Attributes:
        data: PKCS#12 archive, or PEM text holding the certificate and key.
        format: Which of the two encodings ``data`` uses.
        passphrase: Passphrase protecting the key.
        ca_certificate: PEM root certificate(s) of the service. When None
            the bundled root for the selected endpoint is used.

    Example:
        >>> bundle = CertificateBundle.from_paths("rp.p12", "qwerty123")
        >>> bundle.format
        <CertificateFormat.PKCS12: 'pkcs12'>
    """

    data: bytes = field(repr=False)
    format: CertificateFormat
    passphrase: str = field(default="", repr=False)
    ca_certificate: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_pkcs12(
        cls,
        data: bytes,
        passphrase: str = "",
        ca_certificate: Optional[bytes] = None,
    ) -> "CertificateBundle":
        return cls(data, CertificateFormat.PKCS12, passphrase, ca_certificate)

    @classmethod
    def from_pem(
        cls,
        certificate: bytes,
        key: Optional[bytes] = None,
        passphrase: str = "",
        ca_certificate: Optional[bytes] = None,
    ) -> "CertificateBundle":
        """Create a PEM bundle.

        Args:
            certificate: PEM certificate, possibly followed by the key.
            key: PEM private key when it is kept separately.
            passphrase: Passphrase of an encrypted key.
            ca_certificate: Optional PEM root certificate.
        """
        data = certificate if key is None else certificate.rstrip() + b"\n" + key
        return cls(data, CertificateFormat.PEM, passphrase, ca_certificate)

    @classmethod
    def from_paths(
        cls,
        certificate_path: PathLike,
        passphrase: str = "",
        ca_path: Optional[PathLike] = None,
        key_path: Optional[PathLike] = None,
    ) -> "CertificateBundle":
        """Read certificate material from files.

        The format is detected from the content: PEM armor means PEM,
        anything else is treated as PKCS#12.

        Raises:
            CertificateError: If a file cannot be read.
        """
        data = _read(certificate_path)
        key = _read(key_path) if key_path else None
        ca = _read(ca_path) if ca_path else None
        if key is not None or b"-----BEGIN" in data:
            return cls.from_pem(data, key, passphrase, ca)
        return cls.from_pkcs12(data, passphrase, ca)


@dataclass(frozen=True)
class LoadedCertificate:
    """Decoded certificate material ready for a TLS context.

    Attributes:
        private_key: The RP private key.
        certificate: The RP leaf certificate.
        chain: Additional certificates sent along with the leaf.
        root_certificates: Certificates trusted for the server.
    """

    private_key: PrivateKeyTypes = field(repr=False)
    certificate: x509.Certificate
    chain: list[x509.Certificate] = field(default_factory=list)
    root_certificates: list[x509.Certificate] = field(default_factory=list)

    @property
    def key_matches_certificate(self) -> bool:
        return _public_der(self.certificate) == _public_der(self.private_key)

    def roots_pem(self) -> str:
        """Root certificates as concatenated PEM text."""
        return "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in self.root_certificates
        )


def _read(path: PathLike) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise CertificateError(
            f"Cannot read certificate file: {e.strerror}", {"path": str(path)}
        ) from e


def _public_der(obj: Union[x509.Certificate, PrivateKeyTypes]) -> bytes:
    return obj.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _password(passphrase: str) -> Optional[bytes]:
    return passphrase.encode("utf-8") if passphrase else None


# =============================================================================
# Decoders
# =============================================================================


def _load_pkcs12(
    bundle: CertificateBundle,
) -> tuple[PrivateKeyTypes, x509.Certificate, list[x509.Certificate]]:
    try:
        key, cert, extra = pkcs12.load_key_and_certificates(
            bundle.data, _password(bundle.passphrase)
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CertificateError(
            "Cannot decode PKCS#12 archive, wrong passphrase or corrupt data"
        ) from e
    if key is None:
        raise CertificateError("PKCS#12 archive contains no private key")
    if cert is None:
        raise CertificateError("PKCS#12 archive contains no certificate")
    return key, cert, list(extra)


def _load_pem_key(label: bytes, block: bytes, passphrase: str) -> PrivateKeyTypes:
    if label == b"ENCRYPTED PRIVATE KEY" or _LEGACY_ENCRYPTED_HEADER in block:
        if not passphrase:
            raise CertificateError("Private key is encrypted but no passphrase given")
        password = _password(passphrase)
    else:
        password = None
    try:
        return serialization.load_pem_private_key(block, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CertificateError(
            "Cannot decode private key, wrong passphrase or corrupt data",
            {"block": label.decode("ascii")},
        ) from e


def _load_pem(
    bundle: CertificateBundle,
) -> tuple[PrivateKeyTypes, x509.Certificate, list[x509.Certificate]]:
    key: Optional[PrivateKeyTypes] = None
    certs: list[x509.Certificate] = []

    for match in _PEM_BLOCK.finditer(bundle.data):
        label, block = match.group(1), match.group(0)
        if label == b"CERTIFICATE":
            try:
                certs.append(x509.load_pem_x509_certificate(block))
            except ValueError as e:
                raise CertificateError("Cannot decode PEM certificate") from e
        elif label == b"ENCRYPTED PRIVATE KEY" or label in _PLAIN_KEY_LABELS:
            if key is None:
                key = _load_pem_key(label, block, bundle.passphrase)
        else:
            logger.debug(f"Skipping PEM block {label.decode('ascii')}")

    if key is None:
        raise CertificateError("No private key block found in PEM data")
    if not certs:
        raise CertificateError("No certificate block found in PEM data")

    key_der = _public_der(key)
    leaf = next((c for c in certs if _public_der(c) == key_der), certs[0])
    chain = [c for c in certs if c is not leaf]
    return key, leaf, chain


_DECODERS = {
    CertificateFormat.PKCS12: _load_pkcs12,
    CertificateFormat.PEM: _load_pem,
}


# =============================================================================
# Root Certificates
# =============================================================================


def default_root_certificate(base_url: str) -> bytes:
    """Return the bundled root certificate for a known endpoint.

    Args:
        base_url: Production or test base URL.

    Returns:
        PEM encoded root certificate.

    Raises:
        CertificateError: If the endpoint is unknown or the bundled file is
            missing.
    """
    name = DEFAULT_CA_RESOURCES.get(base_url.rstrip("/"))
    if name is None:
        raise CertificateError(
            "No default root certificate for endpoint, supply one explicitly",
            {"url": base_url},
        )
    try:
        return resources.files("bankid.roots").joinpath(name).read_bytes()
    except OSError as e:
        raise CertificateError(
            "Bundled root certificate is missing", {"resource": name}
        ) from e


def parse_root_certificates(data: bytes) -> list[x509.Certificate]:
    """Parse one or more PEM root certificates.

    Raises:
        CertificateError: If no certificate can be parsed.
    """
    try:
        roots = x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise CertificateError("Cannot parse root certificate") from e
    if not roots:
        raise CertificateError("Root certificate data is empty")
    return roots


# =============================================================================
# Loader
# =============================================================================


def load_certificate(bundle: CertificateBundle, base_url: str) -> LoadedCertificate:
    """Decode a certificate bundle.

    Args:
        bundle: The RP certificate material.
        base_url: Endpoint the client talks to, used to pick the default
            root certificate when the bundle carries none.

    Returns:
        The decoded key, leaf certificate, chain and root certificates.

    Raises:
        CertificateError: If any part of the material cannot be decoded.
    """
    key, leaf, chain = _DECODERS[bundle.format](bundle)

    ca_data = bundle.ca_certificate
    if ca_data is None:
        ca_data = default_root_certificate(base_url)
    roots = parse_root_certificates(ca_data)

    logger.debug(
        f"Loaded {bundle.format.value} certificate {leaf.subject.rfc4514_string()} "
        f"with {len(roots)} root(s)"
    )
    return LoadedCertificate(
        private_key=key, certificate=leaf, chain=chain, root_certificates=roots
    )
