"""Classification of remote BankID error codes.

Every ``errorCode`` the service can return is mapped to a
:class:`StructuredError` carrying retry guidance and, where the end user
must be told, the recommended user message. Unrecognized codes map to the
``unknownErrorCode`` fallback, so :func:`classify` never returns None.

HTTP status codes are kept for reference only; the service has used
different statuses for the same code over time, so callers should dispatch
on :attr:`StructuredError.code`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# =============================================================================
# User Messages
# =============================================================================

RFA4 = (
    "An identification or signing for this personal number is already started. "
    "Please try again."
)
RFA5 = "Internal error. Please try again."
RFA22 = "Unknown error. Please try again."


class ErrorCode(str, Enum):
    """Error codes returned in the ``errorCode`` field of error bodies."""

    ALREADY_IN_PROGRESS = "alreadyInProgress"
    UNKNOWN_ERROR_CODE = "unknownErrorCode"
    REQUEST_TIMEOUT = "requestTimeout"
    INTERNAL_ERROR = "internalError"
    MAINTENANCE = "maintenance"
    INVALID_PARAMETERS = "invalidParameters"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "notFound"
    METHOD_NOT_ALLOWED = "methodNotAllowed"
    UNSUPPORTED_MEDIA_TYPE = "unsupportedMediaType"


class ErrorCategory(Enum):
    """What the caller should do about an error.

    Values:
        USER_FACING: Do not retry; show the user message.
        RETRYABLE: May be retried without telling the user. If it keeps
            happening, the user must be told.
        CALLER_FAULT: A bug on the relying-party side. Never retry the
            same request and never show it to the user as a BankID error.
    """

    USER_FACING = "user_facing"
    RETRYABLE = "retryable"
    CALLER_FAULT = "caller_fault"


@dataclass(frozen=True)
class StructuredError:
    """Classified remote error.

    Attributes:
        code: The error code.
        status_code: Reference HTTP status for the code.
        details: Human-readable description.
        category: Handling category.
        user_message: Message to present to the end user, if one applies.
    """

    code: ErrorCode
    status_code: int
    details: str
    category: ErrorCategory
    user_message: Optional[str] = None

    @property
    def retryable(self) -> bool:
        """True if the request may be retried automatically."""
        return self.category is ErrorCategory.RETRYABLE

    @property
    def inform_user(self) -> bool:
        """True if the end user must be informed right away."""
        return self.category is ErrorCategory.USER_FACING

    @property
    def caller_fault(self) -> bool:
        """True if the error is caused by the relying party itself."""
        return self.category is ErrorCategory.CALLER_FAULT


_ERRORS: dict[ErrorCode, StructuredError] = {
    ErrorCode.ALREADY_IN_PROGRESS: StructuredError(
        code=ErrorCode.ALREADY_IN_PROGRESS,
        status_code=400,
        details=RFA4,
        category=ErrorCategory.USER_FACING,
        user_message=RFA4,
    ),
    ErrorCode.UNKNOWN_ERROR_CODE: StructuredError(
        code=ErrorCode.UNKNOWN_ERROR_CODE,
        status_code=501,
        details=RFA22,
        category=ErrorCategory.USER_FACING,
        user_message=RFA22,
    ),
    ErrorCode.REQUEST_TIMEOUT: StructuredError(
        code=ErrorCode.REQUEST_TIMEOUT,
        status_code=408,
        details=RFA5,
        category=ErrorCategory.USER_FACING,
        user_message=RFA5,
    ),
    ErrorCode.INTERNAL_ERROR: StructuredError(
        code=ErrorCode.INTERNAL_ERROR,
        status_code=500,
        details=RFA5,
        category=ErrorCategory.USER_FACING,
        user_message=RFA5,
    ),
    ErrorCode.MAINTENANCE: StructuredError(
        code=ErrorCode.MAINTENANCE,
        status_code=503,
        details=RFA5,
        category=ErrorCategory.RETRYABLE,
        user_message=RFA5,
    ),
    ErrorCode.INVALID_PARAMETERS: StructuredError(
        code=ErrorCode.INVALID_PARAMETERS,
        status_code=400,
        details=(
            "Invalid parameter. Invalid use of method. Potential causes include "
            "using an orderRef that previously resulted in a completed or failed "
            "order, orderRef that is too old, using the wrong certificate, "
            "oversized content, or non-JSON bodies."
        ),
        category=ErrorCategory.CALLER_FAULT,
    ),
    ErrorCode.UNAUTHORIZED: StructuredError(
        code=ErrorCode.UNAUTHORIZED,
        status_code=403,
        details="RP does not have access to the service.",
        category=ErrorCategory.CALLER_FAULT,
    ),
    ErrorCode.NOT_FOUND: StructuredError(
        code=ErrorCode.NOT_FOUND,
        status_code=404,
        details="An erroneous URL path was used.",
        category=ErrorCategory.CALLER_FAULT,
    ),
    ErrorCode.METHOD_NOT_ALLOWED: StructuredError(
        code=ErrorCode.METHOD_NOT_ALLOWED,
        status_code=405,
        details="Only http method POST is allowed.",
        category=ErrorCategory.CALLER_FAULT,
    ),
    ErrorCode.UNSUPPORTED_MEDIA_TYPE: StructuredError(
        code=ErrorCode.UNSUPPORTED_MEDIA_TYPE,
        status_code=415,
        details="Adding a 'charset' parameter after 'application/json' is not allowed.",
        category=ErrorCategory.CALLER_FAULT,
    ),
}


def classify(error_code: Optional[str]) -> StructuredError:
    """Map a remote error code to its structured error.

    Args:
        error_code: Value of the ``errorCode`` field, possibly None.

    Returns:
        The matching StructuredError, or the ``unknownErrorCode`` entry for
        any code not in the table.

    Example:
        >>> classify("maintenance").retryable
        True
        >>> classify("somethingNew").code
        <ErrorCode.UNKNOWN_ERROR_CODE: 'unknownErrorCode'>
    """
    try:
        code = ErrorCode(error_code)
    except ValueError:
        code = ErrorCode.UNKNOWN_ERROR_CODE
    return _ERRORS[code]


def known_errors() -> list[StructuredError]:
    """Return every entry of the classification table."""
    return list(_ERRORS.values())
