"""Input validation and normalization for order requests.

Every order-starting request passes through :func:`normalize_request`
before it is sent. The function is pure: it either returns a normalized
copy of the request or raises the first rule violation as an
:class:`~bankid.exceptions.InputInvalidError`.
"""

import base64
import binascii
import ipaddress
import logging
from dataclasses import replace
from typing import Optional

from .constants import (
    CALL_INITIATORS,
    CARD_READER_CLASSES,
    CERTIFICATE_POLICIES,
    DEFAULT_VISIBLE_DATA_FORMAT,
    MAX_RETURN_URL_LENGTH,
    RISK_LEVELS,
)
from .exceptions import InputInvalidError, RequiredInputMissingError
from .models import OrderRequest, Requirement

logger = logging.getLogger(__name__)

# Separators accepted between the date and serial parts
_PERSONAL_NUMBER_SEPARATORS = "-+"


# =============================================================================
# Personal Number Checksum
# =============================================================================


def _luhn_digits(number: str) -> str:
    digits = number.strip()
    for sep in _PERSONAL_NUMBER_SEPARATORS:
        digits = digits.replace(sep, "")
    if not digits or not digits.isascii() or not digits.isdigit():
        raise InputInvalidError(
            "Personal number must contain only digits",
            field="personal_number",
        )
    # YYYYMMDDNNNN carries the century, which is not part of the checksum
    if len(digits) == 12:
        digits = digits[2:]
    return digits


def is_valid_personal_number(number: str) -> bool:
    """Check a personal number with the Luhn (mod 10) algorithm.

    Starting from the rightmost digit, every second digit moving left is
    doubled, 9 is subtracted from doubled values above 9, and the sum of
    all digits must be divisible by 10.

    Args:
        number: Personal number in 10 or 12 digit form, optionally with a
            ``-`` or ``+`` separator.

    Returns:
        True if the checksum holds, False otherwise (including malformed
        input).

    Example:
        >>> is_valid_personal_number("3810260632")
        True
        >>> is_valid_personal_number("9512011294")
        False
    """
    try:
        digits = _luhn_digits(number)
    except InputInvalidError:
        return False

    total = 0
    for i, char in enumerate(reversed(digits)):
        value = int(char)
        if i % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0


def validate_checksum(number: str, field: str = "personal_number") -> None:
    """Raise InputInvalidError if ``number`` fails the Luhn check."""
    if not is_valid_personal_number(number):
        raise InputInvalidError("Personal number checksum is invalid", field=field)


# =============================================================================
# Field Rules
# =============================================================================


def validate_ip(address: str) -> str:
    """Validate an IPv4 or IPv6 literal.

    Args:
        address: The end user's IP address as seen by the RP.

    Returns:
        The address unchanged.

    Raises:
        RequiredInputMissingError: If the address is empty.
        InputInvalidError: If the address is not an IP literal.
    """
    if not address:
        raise RequiredInputMissingError("End user IP is required", field="end_user_ip")
    try:
        ipaddress.ip_address(address)
    except ValueError:
        raise InputInvalidError(
            f"Invalid IP address: {address!r}", field="end_user_ip"
        ) from None
    return address


def is_base64(text: str) -> bool:
    """Return True if ``text`` decodes as strict standard base64."""
    try:
        base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def encode_text(text: str, field: str = "user_visible_data") -> str:
    """Base64 encode request text unless it is already encoded.

    Args:
        text: Plain or base64 encoded text.
        field: Field name used in the error.

    Returns:
        Base64 encoded text.

    Raises:
        InputInvalidError: If the text cannot be encoded as UTF-8.
    """
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError:
        raise InputInvalidError("Text is not valid UTF-8", field=field) from None
    if is_base64(text):
        return text
    return base64.b64encode(raw).decode("ascii")


def validate_requirement(requirement: Requirement) -> None:
    """Check every set field of a requirement.

    Raises:
        InputInvalidError: On the first invalid field.
    """
    if requirement.card_reader is not None and (
        requirement.card_reader not in CARD_READER_CLASSES
    ):
        raise InputInvalidError(
            f"Card reader must be one of {sorted(CARD_READER_CLASSES)}",
            field="requirement.card_reader",
        )
    for policy in requirement.certificate_policies:
        if policy not in CERTIFICATE_POLICIES:
            raise InputInvalidError(
                f"Unknown certificate policy: {policy}",
                field="requirement.certificate_policies",
            )
    if requirement.personal_number:
        validate_checksum(
            requirement.personal_number, field="requirement.personal_number"
        )
    if requirement.risk is not None and requirement.risk not in RISK_LEVELS:
        raise InputInvalidError(
            f"Risk must be one of {sorted(RISK_LEVELS)}",
            field="requirement.risk",
        )


def _encode_limited(text: Optional[str], field: str, limit: int) -> Optional[str]:
    if not text:
        return None
    encoded = encode_text(text, field=field)
    if len(encoded) > limit:
        raise InputInvalidError(
            f"Encoded text is {len(encoded)} characters, limit is {limit}",
            field=field,
        )
    return encoded


# =============================================================================
# Request Normalization
# =============================================================================


def _check_required(request: OrderRequest) -> None:
    if request.requires_end_user_ip and not request.end_user_ip:
        raise RequiredInputMissingError("End user IP is required", field="end_user_ip")
    if request.requires_visible_data and not request.user_visible_data:
        raise RequiredInputMissingError(
            "Visible text is required", field="user_visible_data"
        )
    if request.is_phone_order:
        if not request.personal_number:
            raise RequiredInputMissingError(
                "Personal number is required", field="personal_number"
            )
        if not request.call_initiator:
            raise RequiredInputMissingError(
                "Call initiator is required", field="call_initiator"
            )


def normalize_request(request: OrderRequest) -> OrderRequest:
    """Validate an order request and return its normalized form.

    Rules are checked in a fixed order and the first violation is raised:
    required fields, IP syntax, phone order fields, text encoding,
    requirement, return URL. The returned copy has its texts base64
    encoded and the visible text format set.

    Args:
        request: Any order-starting request.

    Returns:
        A new request instance ready to send.

    Raises:
        RequiredInputMissingError: If a mandatory field is empty.
        InputInvalidError: If a field is malformed.

    Example:
        >>> normalize_request(AuthRequest(end_user_ip="192.0.2.1",
        ...                               user_visible_data="Log in"))
        AuthRequest(user_visible_data='TG9nIGlu', ...)
    """
    _check_required(request)

    if request.requires_end_user_ip:
        validate_ip(request.end_user_ip)

    if request.is_phone_order:
        validate_checksum(request.personal_number)
        if request.call_initiator not in CALL_INITIATORS:
            raise InputInvalidError(
                f"Call initiator must be one of {sorted(CALL_INITIATORS)}",
                field="call_initiator",
            )

    visible = _encode_limited(
        request.user_visible_data, "user_visible_data", request.max_visible_data
    )
    non_visible = _encode_limited(
        request.user_non_visible_data,
        "user_non_visible_data",
        request.max_non_visible_data,
    )

    if request.requirement is not None:
        validate_requirement(request.requirement)

    if request.supports_return_url and request.return_url is not None and not (
        1 <= len(request.return_url) <= MAX_RETURN_URL_LENGTH
    ):
        raise InputInvalidError(
            f"Return URL must be 1-{MAX_RETURN_URL_LENGTH} characters",
            field="return_url",
        )

    normalized = replace(
        request,
        user_visible_data=visible,
        user_non_visible_data=non_visible,
        user_visible_data_format=request.user_visible_data_format
        or DEFAULT_VISIBLE_DATA_FORMAT,
    )
    logger.debug(f"Normalized {type(request).__name__} for {request.path}")
    return normalized
