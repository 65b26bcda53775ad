"""Mutual TLS transport construction.

Builds the SSL context presenting the RP certificate and trusting only the
service's root certificate, and wraps it in the ``httpx.AsyncClient`` shared
by every request of a client.
"""

import logging
import os
import secrets
import ssl
import tempfile
from pathlib import Path

import httpx
from cryptography.hazmat.primitives import serialization

from .certs import LoadedCertificate
from .constants import DEFAULT_TIMEOUT
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _client_pem(loaded: LoadedCertificate, password: bytes) -> bytes:
    certs = [loaded.certificate, *loaded.chain]
    pem = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in certs)
    return pem + loaded.private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(password),
    )


def build_ssl_context(loaded: LoadedCertificate) -> ssl.SSLContext:
    """Create the SSL context for mutual TLS.

    The system trust store is never loaded. The client key is handed to
    OpenSSL through a temporary file, encrypted with a one-time password,
    which is removed as soon as it has been read.

    Args:
        loaded: Decoded RP certificate material.

    Returns:
        Configured client SSLContext.

    Raises:
        ConfigurationError: If the trust pool is empty, the certificate and
            key do not match, or OpenSSL rejects the material.
    """
    if not loaded.root_certificates:
        raise ConfigurationError(
            "Root certificate pool is empty", config_key="ca_certificate"
        )
    if not loaded.key_matches_certificate:
        raise ConfigurationError(
            "Client certificate does not match private key", config_key="certificate"
        )

    password = secrets.token_urlsafe(32).encode("ascii")
    try:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.verify_mode = ssl.CERT_REQUIRED
        context.check_hostname = True
        context.load_verify_locations(cadata=loaded.roots_pem())

        with tempfile.TemporaryDirectory(prefix="bankid-") as tmp:
            certfile = Path(tmp) / "client.pem"
            fd = os.open(certfile, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(_client_pem(loaded, password))
            context.load_cert_chain(certfile, password=password)

    except ssl.SSLError as e:
        raise ConfigurationError(
            f"Invalid SSL configuration: {e}",
            config_key="certificate",
        ) from e

    return context


def build_transport(
    loaded: LoadedCertificate,
    base_url: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> httpx.AsyncClient:
    """Create the long-lived HTTP transport for a client.

    Args:
        loaded: Decoded RP certificate material.
        base_url: Versioned API base URL.
        timeout: Timeout in seconds applied to every request.

    Returns:
        An AsyncClient performing mutual TLS against ``base_url``.

    Example:
        >>> transport = build_transport(loaded, TEST_URL, timeout=5)
        >>> await transport.post("/collect", json={"orderRef": ref})
    """
    context = build_ssl_context(loaded)
    logger.debug(f"Building transport for {base_url} (timeout={timeout}s)")
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        verify=context,
        timeout=httpx.Timeout(timeout),
        http1=True,
        http2=False,
    )
