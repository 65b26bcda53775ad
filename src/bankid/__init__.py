"""BankID relying-party client.

Async client for starting, following and cancelling BankID authentication
and signing orders over mutual TLS.

Example:
    >>> from bankid import BankIDClient, ClientConfig, CertificateBundle, AuthRequest
    >>> config = ClientConfig.for_test(
    ...     CertificateBundle.from_paths("FPTestcert5_20240610.p12", "qwerty123")
    ... )
    >>> async with BankIDClient(config) as client:
    ...     handle = await client.auth(AuthRequest(end_user_ip="192.0.2.1"))
"""

from .certs import CertificateBundle, CertificateFormat, LoadedCertificate, load_certificate
from .classifier import ErrorCategory, ErrorCode, StructuredError, classify
from .client import BankIDClient
from .config import ClientConfig, load_config
from .constants import PRODUCTION_URL, TEST_PASSPHRASE, TEST_URL
from .exceptions import (
    BankIDClientError,
    BankIDError,
    CertificateError,
    ConfigurationError,
    InputInvalidError,
    ProtocolError,
    RequiredInputMissingError,
    TransportError,
    UnknownError,
)
from .http_client import BankIDHTTPClient
from .models import (
    AuthRequest,
    CancelRequest,
    CollectRequest,
    CompletionData,
    Device,
    HintCode,
    OrderHandle,
    OrderRequest,
    OrderStatus,
    PhoneAuthRequest,
    PhoneSignRequest,
    Requirement,
    SignRequest,
    Status,
    User,
)
from .poller import OrderPoller
from .qr import QRCodeGenerator, generate_qr_payload
from .transport import build_ssl_context, build_transport
from .validation import (
    encode_text,
    is_valid_personal_number,
    normalize_request,
    validate_checksum,
    validate_ip,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "BankIDClient",
    "BankIDHTTPClient",
    "ClientConfig",
    "load_config",
    "PRODUCTION_URL",
    "TEST_URL",
    "TEST_PASSPHRASE",
    # Certificates and transport
    "CertificateBundle",
    "CertificateFormat",
    "LoadedCertificate",
    "load_certificate",
    "build_ssl_context",
    "build_transport",
    # Requests
    "AuthRequest",
    "SignRequest",
    "PhoneAuthRequest",
    "PhoneSignRequest",
    "OrderRequest",
    "Requirement",
    "CollectRequest",
    "CancelRequest",
    # Responses
    "OrderHandle",
    "OrderStatus",
    "Status",
    "HintCode",
    "CompletionData",
    "User",
    "Device",
    # Validation
    "normalize_request",
    "validate_checksum",
    "is_valid_personal_number",
    "validate_ip",
    "encode_text",
    # Polling and QR
    "OrderPoller",
    "QRCodeGenerator",
    "generate_qr_payload",
    # Errors
    "classify",
    "ErrorCode",
    "ErrorCategory",
    "StructuredError",
    "BankIDClientError",
    "BankIDError",
    "CertificateError",
    "ConfigurationError",
    "InputInvalidError",
    "ProtocolError",
    "RequiredInputMissingError",
    "TransportError",
    "UnknownError",
]
