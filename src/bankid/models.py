"""Data models for the BankID client.

This module contains the request variants sent to the service, the typed
responses decoded from it, and the enums describing order progress.

Request bodies and responses use camelCase JSON keys; the dataclasses use
snake_case attributes and convert in ``to_dict``/``from_dict``.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from .constants import (
    MAX_AUTH_NON_VISIBLE_DATA,
    MAX_AUTH_VISIBLE_DATA,
    MAX_SIGN_NON_VISIBLE_DATA,
    MAX_SIGN_VISIBLE_DATA,
    PATH_AUTH,
    PATH_PHONE_AUTH,
    PATH_PHONE_SIGN,
    PATH_SIGN,
)


def _camel(name: str) -> str:
    """Convert a snake_case attribute name to its camelCase JSON key."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _to_json_dict(obj: Any) -> dict[str, Any]:
    """Serialize a dataclass, omitting unset fields."""
    body: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None or value == "" or value == []:
            continue
        if hasattr(value, "to_dict"):
            value = value.to_dict()
            if not value:
                continue
        body[_camel(f.name)] = value
    return body


# =============================================================================
# Enums
# =============================================================================


class Status(Enum):
    """Order status returned by collect.

    States:
        PENDING: The order is being processed.
        FAILED: Something went wrong. The hint code says what.
        COMPLETE: The order is complete and completion data is present.
    """

    PENDING = "pending"
    FAILED = "failed"
    COMPLETE = "complete"

    @property
    def is_terminal(self) -> bool:
        """True for states after which the order does not change."""
        return self is not Status.PENDING


class HintCode(str, Enum):
    """Known hint codes.

    The service may add new hint codes at any time, so
    :attr:`OrderStatus.hint_code` keeps the raw string and this enum is only
    used for comparison.
    """

    # Pending
    OUTSTANDING_TRANSACTION = "outstandingTransaction"
    NO_CLIENT = "noClient"
    STARTED = "started"
    USER_MRTD = "userMrtd"
    USER_CALL_CONFIRM = "userCallConfirm"
    USER_SIGN = "userSign"
    # Failed
    EXPIRED_TRANSACTION = "expiredTransaction"
    CERTIFICATE_ERR = "certificateErr"
    USER_CANCEL = "userCancel"
    CANCELLED = "cancelled"
    START_FAILED = "startFailed"


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class Requirement:
    """Constraints on which BankID may complete an order.

    Attributes:
        pin_code: Require the user to enter their security code.
        mrtd: Require a travel document (passport or ID card) check.
        card_reader: ``"class1"`` or ``"class2"``.
        certificate_policies: Allowed certificate policy OIDs.
        personal_number: Only this personal number may complete the order.
        risk: Highest accepted risk level, ``"low"`` or ``"moderate"``.
    """

    pin_code: Optional[bool] = None
    mrtd: Optional[bool] = None
    card_reader: Optional[str] = None
    certificate_policies: list[str] = field(default_factory=list)
    personal_number: Optional[str] = None
    risk: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _to_json_dict(self)


@dataclass(frozen=True)
class _OrderRequest:
    """Fields shared by every order-starting request.

    Subclasses declare their traits as class variables; validation and the
    client read these traits instead of checking the concrete type.
    """

    path: ClassVar[str]
    requires_end_user_ip: ClassVar[bool] = False
    requires_visible_data: ClassVar[bool] = False
    is_phone_order: ClassVar[bool] = False
    supports_return_url: ClassVar[bool] = False
    max_visible_data: ClassVar[int] = MAX_AUTH_VISIBLE_DATA
    max_non_visible_data: ClassVar[int] = MAX_AUTH_NON_VISIBLE_DATA

    user_visible_data: Optional[str] = None
    user_non_visible_data: Optional[str] = None
    user_visible_data_format: Optional[str] = None
    requirement: Optional[Requirement] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON request body."""
        return _to_json_dict(self)


@dataclass(frozen=True)
class _DeviceOrderRequest(_OrderRequest):
    """Order started on a device the end user is interacting with."""

    requires_end_user_ip: ClassVar[bool] = True
    supports_return_url: ClassVar[bool] = True

    end_user_ip: str = ""
    return_url: Optional[str] = None
    return_risk: Optional[bool] = None


@dataclass(frozen=True)
class _PhoneOrderRequest(_OrderRequest):
    """Order started while the user is in a phone call with the RP."""

    is_phone_order: ClassVar[bool] = True

    personal_number: str = ""
    call_initiator: str = ""


@dataclass(frozen=True)
class AuthRequest(_DeviceOrderRequest):
    """Start an authentication order.

    Example:
        >>> request = AuthRequest(end_user_ip="192.0.2.10")
        >>> request.to_dict()
        {'endUserIp': '192.0.2.10'}
    """

    path: ClassVar[str] = PATH_AUTH


@dataclass(frozen=True)
class SignRequest(_DeviceOrderRequest):
    """Start a signing order. Visible text is required."""

    path: ClassVar[str] = PATH_SIGN
    requires_visible_data: ClassVar[bool] = True
    max_visible_data: ClassVar[int] = MAX_SIGN_VISIBLE_DATA
    max_non_visible_data: ClassVar[int] = MAX_SIGN_NON_VISIBLE_DATA


@dataclass(frozen=True)
class PhoneAuthRequest(_PhoneOrderRequest):
    """Start an authentication order over the phone."""

    path: ClassVar[str] = PATH_PHONE_AUTH


@dataclass(frozen=True)
class PhoneSignRequest(_PhoneOrderRequest):
    """Start a signing order over the phone. Visible text is required."""

    path: ClassVar[str] = PATH_PHONE_SIGN
    requires_visible_data: ClassVar[bool] = True
    max_visible_data: ClassVar[int] = MAX_SIGN_VISIBLE_DATA
    max_non_visible_data: ClassVar[int] = MAX_SIGN_NON_VISIBLE_DATA


OrderRequest = Union[AuthRequest, SignRequest, PhoneAuthRequest, PhoneSignRequest]
"""Closed set of order-starting requests."""


@dataclass(frozen=True)
class CollectRequest:
    """Body of a collect call."""

    order_ref: str

    def to_dict(self) -> dict[str, Any]:
        return {"orderRef": self.order_ref}


@dataclass(frozen=True)
class CancelRequest:
    """Body of a cancel call."""

    order_ref: str

    def to_dict(self) -> dict[str, Any]:
        return {"orderRef": self.order_ref}


# =============================================================================
# Responses
# =============================================================================


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"missing or invalid '{key}'")
    return value


def _optional_str(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _object(data: dict[str, Any], key: str, required: bool = False) -> dict[str, Any]:
    value = data.get(key)
    if value is None and not required:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a JSON object")
    return value


@dataclass(frozen=True)
class OrderHandle:
    """Reference to an outstanding order.

    Phone orders return only ``order_ref``; the start tokens are set for
    auth and sign orders.

    Attributes:
        order_ref: Used to collect and cancel the order.
        auto_start_token: Used to launch the BankID app on the same device.
        qr_start_token: Public part of the animated QR code.
        qr_start_secret: Secret used to derive the animated QR code.
    """

    order_ref: str
    auto_start_token: Optional[str] = None
    qr_start_token: Optional[str] = None
    qr_start_secret: Optional[str] = field(default=None, repr=False)

    @property
    def supports_qr(self) -> bool:
        """True if the handle carries the inputs for an animated QR code."""
        return bool(self.qr_start_token and self.qr_start_secret)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderHandle":
        return cls(
            order_ref=_require_str(data, "orderRef"),
            auto_start_token=_optional_str(data, "autoStartToken"),
            qr_start_token=_optional_str(data, "qrStartToken"),
            qr_start_secret=_optional_str(data, "qrStartSecret"),
        )


@dataclass(frozen=True)
class User:
    """Identity of the user who completed the order."""

    personal_number: str
    name: str = ""
    given_name: str = ""
    surname: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            personal_number=_require_str(data, "personalNumber"),
            name=data.get("name", ""),
            given_name=data.get("givenName", ""),
            surname=data.get("surname", ""),
        )


@dataclass(frozen=True)
class Device:
    """Device used to complete the order."""

    ip_address: str = ""
    uhi: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Device":
        return cls(ip_address=data.get("ipAddress", ""), uhi=data.get("uhi"))


@dataclass(frozen=True)
class CompletionData:
    """Result of a completed order.

    Attributes:
        user: Identity of the user.
        device: Device the order was completed on.
        bank_id_issue_date: Date the BankID was issued.
        step_up: True if an additional MRTD check was performed.
        signature: Base64 encoded XML signature.
        ocsp_response: Base64 encoded OCSP response.
        risk: Risk level reported by the service, if requested.
    """

    user: User
    device: Device = field(default_factory=Device)
    bank_id_issue_date: str = ""
    step_up: bool = False
    signature: str = field(default="", repr=False)
    ocsp_response: str = field(default="", repr=False)
    risk: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompletionData":
        step_up = data.get("stepUp", False)
        # Newer API versions report {"mrtd": true} instead of a flag
        if isinstance(step_up, dict):
            step_up = bool(step_up.get("mrtd", False))
        return cls(
            user=User.from_dict(_object(data, "user", required=True)),
            device=Device.from_dict(_object(data, "device")),
            bank_id_issue_date=data.get("bankIdIssueDate", ""),
            step_up=bool(step_up),
            signature=data.get("signature", ""),
            ocsp_response=data.get("ocspResponse", ""),
            risk=data.get("risk"),
        )


@dataclass(frozen=True)
class OrderStatus:
    """State of an order as returned by collect.

    Attributes:
        order_ref: The order reference.
        status: Current status.
        hint_code: Reason for a pending or failed status. Unknown hint
            codes are kept as the raw string.
        completion_data: Present only when status is COMPLETE.
    """

    order_ref: str
    status: Status
    hint_code: Optional[str] = None
    completion_data: Optional[CompletionData] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def hint(self) -> Optional[HintCode]:
        """The hint code as an enum member, or None if absent or unknown."""
        try:
            return HintCode(self.hint_code)
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderStatus":
        status = Status(data.get("status"))
        completion = None
        if status is Status.COMPLETE:
            completion = _object(data, "completionData")
            if not completion:
                raise ValueError("complete order without completionData")
        return cls(
            order_ref=_require_str(data, "orderRef"),
            status=status,
            hint_code=_optional_str(data, "hintCode"),
            completion_data=CompletionData.from_dict(completion) if completion else None,
        )


@dataclass(frozen=True)
class CancelResponse:
    """Empty body returned by a successful cancel."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CancelResponse":
        return cls()
