"""Protocol constants for the BankID relying-party API.

This module defines the endpoints, timeouts, polling parameters and
validation limits used throughout the client.
"""

# =============================================================================
# Endpoints
# =============================================================================

PRODUCTION_URL: str = "https://appapi2.bankid.com/rp/v6.0"
"""Base URL of the production relying-party API."""

TEST_URL: str = "https://appapi2.test.bankid.com/rp/v6.0"
"""Base URL of the test relying-party API."""

PATH_AUTH: str = "/auth"
PATH_SIGN: str = "/sign"
PATH_PHONE_AUTH: str = "/phone/auth"
PATH_PHONE_SIGN: str = "/phone/sign"
PATH_COLLECT: str = "/collect"
PATH_CANCEL: str = "/cancel"

DEFAULT_CA_RESOURCES: dict[str, str] = {
    PRODUCTION_URL: "ca_prod.crt",
    TEST_URL: "ca_test.crt",
}
"""Bundled root certificate file for each known endpoint."""

TEST_PASSPHRASE: str = "qwerty123"
"""Passphrase of the publicly distributed test RP certificate."""

# =============================================================================
# Timeouts (seconds)
# =============================================================================

DEFAULT_TIMEOUT: float = 5.0
"""Default timeout for a single API request."""

POLL_INTERVAL_SECONDS: float = 2.0
"""Fixed interval between two collect calls for the same order."""

QR_REFRESH_INTERVAL: float = 1.0
"""Interval at which the animated QR payload changes."""

# =============================================================================
# Request Encoding
# =============================================================================

DEFAULT_VISIBLE_DATA_FORMAT: str = "simpleMarkdownV1"
"""Format tag sent when the caller does not set one."""

QR_PREFIX: str = "bankid"
"""First component of every animated QR payload."""

CALL_INITIATORS: frozenset[str] = frozenset({"user", "RP"})
"""Accepted values for the phone order call initiator."""

CARD_READER_CLASSES: frozenset[str] = frozenset({"class1", "class2"})
"""Accepted card reader requirement values."""

RISK_LEVELS: frozenset[str] = frozenset({"low", "moderate"})
"""Accepted risk requirement values."""

# Auth and phone auth
MAX_AUTH_VISIBLE_DATA: int = 1_500
MAX_AUTH_NON_VISIBLE_DATA: int = 1_500
# Sign and phone sign
MAX_SIGN_VISIBLE_DATA: int = 40_000
MAX_SIGN_NON_VISIBLE_DATA: int = 200_000

MAX_RETURN_URL_LENGTH: int = 512

# =============================================================================
# Certificate Policies
# =============================================================================

PRODUCTION_CERTIFICATE_POLICIES: frozenset[str] = frozenset({
    "1.2.752.78.1.1",  # BankID on file
    "1.2.752.78.1.2",  # BankID on smart card
    "1.2.752.78.1.5",  # Mobile BankID
    "1.2.752.71.1.3",  # Nordea e-id on file and on smart card
})

TEST_CERTIFICATE_POLICIES: frozenset[str] = frozenset({
    "1.2.3.4.5",  # BankID on file
    "1.2.3.4.10",  # BankID on smart card
    "1.2.3.4.25",  # Mobile BankID
    "1.2.752.60.1.6",  # Test BankID for some BankID Banks
})

CERTIFICATE_POLICIES: frozenset[str] = (
    PRODUCTION_CERTIFICATE_POLICIES | TEST_CERTIFICATE_POLICIES
)
"""Every policy OID a requirement may name."""
