"""
Pytest configuration and fixtures for bankid tests.

This module provides shared fixtures for testing bankid components,
including generated RP certificates in every supported encoding and a
mock HTTP transport standing in for the BankID API.
"""

import datetime
import json
from typing import Callable, List

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from bankid.certs import CertificateBundle, load_certificate
from bankid.constants import TEST_PASSPHRASE, TEST_URL

ORDER_REF = "131daac9-16c6-4618-beb0-365768f37288"


# ============================================================================
# Certificates
# ============================================================================


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _issue(subject_key, issuer_key, subject: str, issuer: str, ca: bool) -> x509.Certificate:
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(_name(subject))
        .issuer_name(_name(issuer))
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def ca_key():
    """Private key of the test root CA."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ca_cert(ca_key) -> x509.Certificate:
    """Self-signed test root CA certificate."""
    return _issue(ca_key, ca_key, "Test BankID Root CA", "Test BankID Root CA", ca=True)


@pytest.fixture(scope="session")
def ca_pem(ca_cert) -> bytes:
    return ca_cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def rp_key():
    """EC private key of the test RP."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def rp_cert(rp_key, ca_key) -> x509.Certificate:
    """RP leaf certificate issued by the test CA."""
    return _issue(rp_key, ca_key, "Test RP", "Test BankID Root CA", ca=False)


@pytest.fixture(scope="session")
def rp_cert_pem(rp_cert) -> bytes:
    return rp_cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def p12_bytes(rp_key, rp_cert, ca_cert) -> bytes:
    """PKCS#12 archive protected with the public test passphrase."""
    return pkcs12.serialize_key_and_certificates(
        b"rp",
        rp_key,
        rp_cert,
        [ca_cert],
        serialization.BestAvailableEncryption(TEST_PASSPHRASE.encode()),
    )


@pytest.fixture(scope="session")
def pem_plain(rp_key, rp_cert_pem) -> bytes:
    """Certificate followed by an unencrypted PKCS#8 key."""
    return rp_cert_pem + rp_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def pem_encrypted(rp_key, rp_cert_pem) -> bytes:
    """Certificate followed by an encrypted PKCS#8 key."""
    return rp_cert_pem + rp_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(TEST_PASSPHRASE.encode()),
    )


@pytest.fixture(scope="session")
def pem_ec_traditional(rp_key, rp_cert_pem) -> bytes:
    """Key in ``EC PRIVATE KEY`` form placed before the certificate."""
    key = rp_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    return key + rp_cert_pem


@pytest.fixture(scope="session")
def rsa_material(ca_key):
    """RSA key and certificate with a legacy encrypted ``RSA PRIVATE KEY`` PEM.

    Returns:
        Tuple of (private key, PEM bundle bytes).
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = _issue(key, ca_key, "Test RP RSA", "Test BankID Root CA", ca=False)
    pem = cert.public_bytes(serialization.Encoding.PEM) + key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.BestAvailableEncryption(TEST_PASSPHRASE.encode()),
    )
    return key, pem


@pytest.fixture
def p12_bundle(p12_bytes, ca_pem) -> CertificateBundle:
    return CertificateBundle.from_pkcs12(p12_bytes, TEST_PASSPHRASE, ca_pem)


@pytest.fixture
def loaded_certificate(p12_bundle):
    """Decoded test RP certificate trusting the test CA."""
    return load_certificate(p12_bundle, TEST_URL)


# ============================================================================
# Mock BankID API
# ============================================================================


class MockBankIDAPI:
    """Scripted stand-in for the BankID API.

    Responses are queued per path and consumed in order. Every request is
    recorded with its decoded JSON body.

    Example:
        >>> api = MockBankIDAPI()
        >>> api.add("/collect", 200, {"orderRef": "x", "status": "pending"})
    """

    def __init__(self):
        self.responses: dict = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, status_code: int, body=None, content: bytes = None) -> None:
        self.responses.setdefault(path, []).append((status_code, body, content))

    def add_error(self, path: str, status_code: int, error_code: str, details: str = "") -> None:
        self.add(path, status_code, {"errorCode": error_code, "details": details})

    def bodies(self, path: str) -> list:
        suffix = "/rp/v6.0" + path
        return [json.loads(r.content) for r in self.requests if r.url.path == suffix]

    def calls(self, path: str) -> int:
        return len(self.bodies(path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/rp/v6.0")
        queue = self.responses.get(path)
        if not queue:
            return httpx.Response(404, json={"errorCode": "notFound", "details": path})
        status_code, body, content = queue.pop(0) if len(queue) > 1 else queue[0]
        if content is not None:
            return httpx.Response(status_code, content=content)
        return httpx.Response(status_code, json=body)

    def transport(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), base_url=TEST_URL
        )


@pytest.fixture
def api() -> MockBankIDAPI:
    """Mock BankID API with no scripted responses."""
    return MockBankIDAPI()


@pytest.fixture
def make_status() -> Callable[..., dict]:
    """Factory for collect response bodies."""

    def factory(status: str = "pending", hint_code: str = "outstandingTransaction", **extra):
        body = {"orderRef": ORDER_REF, "status": status}
        if hint_code:
            body["hintCode"] = hint_code
        if status == "complete":
            body["completionData"] = {
                "user": {
                    "personalNumber": "190000000000",
                    "name": "Karl Karlsson",
                    "givenName": "Karl",
                    "surname": "Karlsson",
                },
                "device": {"ipAddress": "192.0.2.1", "uhi": "OZvYM9VvyiAmG7NA5jU5zqGcVpo="},
                "bankIdIssueDate": "2020-02-01",
                "stepUp": {"mrtd": True},
                "signature": "PD94bWwgdmVyc2lvbj0iMS4wIj8+",
                "ocspResponse": "MIIHfgoBAKCCB3cw",
            }
            body.pop("hintCode", None)
        body.update(extra)
        return body

    return factory


@pytest.fixture
def auth_response() -> dict:
    return {
        "orderRef": ORDER_REF,
        "autoStartToken": "7c40b5c9-fa74-49cf-b98c-bfe651f9a7c6",
        "qrStartToken": "67df3917-fa0d-44e5-b327-edcc928297f8",
        "qrStartSecret": "d28db9a7-4cde-429e-a983-359be676944c",
    }


@pytest.fixture
def order_ref() -> str:
    """Order reference used by every scripted response."""
    return ORDER_REF
