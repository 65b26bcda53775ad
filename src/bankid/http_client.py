"""JSON request/response exchange with the BankID API.

Every API call is a POST of a flat JSON object. A successful response is
decoded into the expected model; an error response is decoded as
``{"errorCode": ..., "details": ...}`` and raised as a classified
:class:`~bankid.exceptions.BankIDError`.
"""

import json
import logging
from typing import Any, Protocol, TypeVar

import httpx

from .classifier import ErrorCode, classify
from .exceptions import BankIDError, ProtocolError, TransportError, UnknownError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"


class ResponseModel(Protocol):
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any: ...


T = TypeVar("T", bound=ResponseModel)


class BankIDHTTPClient:
    """Request/response exchanger over a shared transport.

    The exchanger performs no retries. Remote errors are raised as
    :class:`BankIDError` with their classification; transport failures as
    :class:`TransportError`; malformed success bodies as
    :class:`ProtocolError`.

    Example:
        >>> exchanger = BankIDHTTPClient(transport)
        >>> status = await exchanger.request(
        ...     "/collect", {"orderRef": ref}, OrderStatus
        ... )
    """

    def __init__(self, transport: httpx.AsyncClient):
        """Initialize with a transport.

        Args:
            transport: AsyncClient configured with base URL and mutual TLS.
        """
        if transport is None:
            raise ValueError("transport cannot be None")

        self.transport = transport
        self._request_count = 0

    @property
    def request_count(self) -> int:
        """Number of requests sent so far."""
        return self._request_count

    async def request(self, path: str, body: dict[str, Any], response_type: type[T]) -> T:
        """POST a JSON body and decode the response.

        Args:
            path: Operation path relative to the base URL, e.g. ``/auth``.
            body: JSON-serializable request body.
            response_type: Model with a ``from_dict`` classmethod.

        Returns:
            The decoded response.

        Raises:
            TransportError: On connection, TLS or timeout failure.
            BankIDError: If the service responded with an error.
            UnknownError: If an error response body cannot be decoded.
            ProtocolError: If a success body does not match the model.
        """
        content = json.dumps(body).encode("utf-8")
        self._request_count += 1
        logger.debug(f"POST {path}, body={len(content)} bytes")

        try:
            response = await self.transport.post(
                path, content=content, headers={"Content-Type": CONTENT_TYPE}
            )
        except httpx.TransportError as e:
            raise TransportError(
                f"Request to {path} failed: {type(e).__name__}",
                url=str(e.request.url) if _has_request(e) else path,
                cause=str(e) or None,
            ) from e

        logger.debug(
            f"Response: HTTP {response.status_code}, body={len(response.content)} bytes"
        )

        if response.status_code >= 300:
            raise self._remote_error(path, response)

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("response body is not a JSON object")
        except ValueError as e:
            raise ProtocolError(
                f"Unexpected response from {path}: {e}",
                {"status_code": response.status_code},
            ) from e

        # Some service revisions report errors with a 2xx status
        if isinstance(data.get("errorCode"), str):
            raise self._remote_error(path, response)

        try:
            return response_type.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(
                f"Unexpected response from {path}: {e}",
                {"status_code": response.status_code},
            ) from e

    def _remote_error(self, path: str, response: httpx.Response) -> BankIDError:
        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict) or not isinstance(data.get("errorCode"), str):
            logger.warning(
                f"Undecodable error response from {path}: HTTP {response.status_code}"
            )
            return UnknownError(
                classify(ErrorCode.UNKNOWN_ERROR_CODE.value),
                http_status=response.status_code,
                remote_details=response.text[:200] or None,
            )

        error = classify(data["errorCode"])
        details = data.get("details")
        logger.warning(
            f"BankID error from {path}: {data['errorCode']} "
            f"(HTTP {response.status_code})"
        )
        return BankIDError(
            error,
            http_status=response.status_code,
            remote_details=details if isinstance(details, str) else None,
        )

    async def aclose(self) -> None:
        """Close the underlying transport."""
        await self.transport.aclose()


def _has_request(error: httpx.TransportError) -> bool:
    try:
        error.request
    except RuntimeError:
        return False
    return True
