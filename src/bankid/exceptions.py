"""Custom exception hierarchy for the BankID client.

This module defines all exceptions raised by the client, separating local
input problems from transport, protocol and remote failures.

Exception Hierarchy:
    BankIDClientError (base)
    ├── CertificateError - Unusable certificate material
    ├── ConfigurationError - Invalid configuration or TLS setup
    ├── InputInvalidError - Request rejected before sending
    │   └── RequiredInputMissingError - Mandatory field not supplied
    ├── TransportError - Connection, TLS or timeout failures
    ├── ProtocolError - Response does not match the expected schema
    └── BankIDError - Error reported by the remote service
        └── UnknownError - Error body could not be decoded
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .classifier import StructuredError


class BankIDClientError(Exception):
    """Base exception for all BankID client errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error context and details.

    Example:
        >>> raise BankIDClientError("Operation failed", {"path": "/auth"})
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def __repr__(self) -> str:
        """Return detailed string representation."""
        return f"{self.__class__.__name__}({self.message!r}, details={self.details!r})"


class CertificateError(BankIDClientError):
    """Exception raised when certificate material cannot be used.

    This exception is raised for:
    - Undecodable PKCS#12 or PEM containers
    - Wrong passphrase
    - Missing private key or certificate blocks
    - Unparseable root certificate
    - Unreadable certificate files
    """

    pass


class ConfigurationError(BankIDClientError):
    """Exception raised for invalid client configuration.

    Attributes:
        config_key: The configuration key that is invalid.
        config_value: The invalid value, if safe to report.

    Example:
        >>> raise ConfigurationError(
        ...     "Timeout must be positive",
        ...     config_key="timeout",
        ...     config_value=-1,
        ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
    ) -> None:
        """Initialize the configuration error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
            config_key: The configuration key that is invalid.
            config_value: The invalid value.
        """
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = config_value
        super().__init__(message, details)
        self.config_key = config_key
        self.config_value = config_value


class InputInvalidError(BankIDClientError):
    """Exception raised when a request fails local validation.

    Raised before any network call. A request that fails validation must
    be fixed by the caller and is never retried.

    Attributes:
        field: Name of the offending request field.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        field: Optional[str] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field


class RequiredInputMissingError(InputInvalidError):
    """Exception raised when a mandatory request field is empty."""

    pass


class TransportError(BankIDClientError):
    """Exception raised for connection, TLS and timeout failures.

    The request may or may not have reached the service. Retrying is left
    to the caller.

    Attributes:
        url: The URL that was being requested.
        cause: The underlying cause of the failure.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        url: Optional[str] = None,
        cause: Optional[str] = None,
    ) -> None:
        details = details or {}
        if url:
            details["url"] = url
        if cause:
            details["cause"] = cause
        super().__init__(message, details)
        self.url = url
        self.cause = cause


class ProtocolError(BankIDClientError):
    """Exception raised when a response body does not match its schema."""

    pass


class BankIDError(BankIDClientError):
    """Exception raised for an error reported by the remote service.

    Attributes:
        error: Classification of the remote error code.
        http_status: HTTP status code of the response.
        remote_details: The ``details`` text sent by the service.

    Example:
        >>> try:
        ...     await client.collect(order_ref)
        ... except BankIDError as e:
        ...     if e.error.retryable:
        ...         schedule_retry()
    """

    def __init__(
        self,
        error: "StructuredError",
        http_status: Optional[int] = None,
        remote_details: Optional[str] = None,
    ) -> None:
        """Initialize the remote error.

        Args:
            error: Classified error.
            http_status: Actual HTTP status of the response.
            remote_details: Free text details from the error body.
        """
        details: dict[str, Any] = {"error_code": error.code.value}
        if http_status is not None:
            details["http_status"] = http_status
        if remote_details:
            details["remote_details"] = remote_details
        super().__init__(error.details, details)
        self.error = error
        self.http_status = http_status
        self.remote_details = remote_details

    @property
    def retryable(self) -> bool:
        """True if the caller may retry automatically."""
        return self.error.retryable

    @property
    def user_message(self) -> Optional[str]:
        """Message to show the end user, if any."""
        return self.error.user_message


class UnknownError(BankIDError):
    """Exception raised when an error response body cannot be decoded."""

    pass
