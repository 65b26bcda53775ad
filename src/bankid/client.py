"""BankID relying-party client.

This module ties certificate loading, transport construction, request
validation and the exchanger together behind one async client.
"""

import logging
from typing import Optional

import httpx

from .certs import load_certificate
from .config import ClientConfig
from .constants import PATH_CANCEL, PATH_COLLECT, POLL_INTERVAL_SECONDS
from .exceptions import RequiredInputMissingError
from .http_client import BankIDHTTPClient
from .models import (
    AuthRequest,
    CancelRequest,
    CancelResponse,
    CollectRequest,
    OrderHandle,
    OrderRequest,
    OrderStatus,
    PhoneAuthRequest,
    PhoneSignRequest,
    SignRequest,
)
from .poller import OrderPoller
from .qr import QRCodeGenerator
from .transport import build_transport
from .validation import normalize_request

logger = logging.getLogger(__name__)


class BankIDClient:
    """Async client for the BankID relying-party API.

    The client is safe to share between tasks issuing independent orders;
    its transport is created once and never modified.

    Attributes:
        config: Client configuration.

    Example:
        >>> config = ClientConfig.for_test(
        ...     CertificateBundle.from_paths("rp.p12", TEST_PASSPHRASE)
        ... )
        >>> async with BankIDClient(config) as client:
        ...     handle = await client.auth(AuthRequest(end_user_ip="192.0.2.1"))
        ...     async for status in client.poll(handle.order_ref):
        ...         print(status.hint_code)
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration.
            transport: Pre-built transport. When None, the certificate in
                ``config`` is loaded and a mutual TLS transport is built.

        Raises:
            ConfigurationError: If the configuration is invalid.
            CertificateError: If the certificate cannot be loaded.
        """
        config.validate(require_certificate=transport is None)
        self.config = config
        if transport is None:
            loaded = load_certificate(config.certificate, config.url)
            transport = build_transport(loaded, config.url, config.timeout)
        self._http = BankIDHTTPClient(transport)
        logger.debug(f"BankID client created for {config.url}")

    @property
    def request_count(self) -> int:
        return self._http.request_count

    # =========================================================================
    # Orders
    # =========================================================================

    async def start(self, request: OrderRequest) -> OrderHandle:
        """Validate and send any order-starting request.

        Args:
            request: Auth, sign, phone auth or phone sign request.

        Returns:
            Handle of the new order.

        Raises:
            RequiredInputMissingError: If a mandatory field is empty.
            InputInvalidError: If the request fails validation.
            TransportError: On network failure.
            BankIDError: If the service rejects the order.
        """
        normalized = normalize_request(request)
        handle = await self._http.request(
            normalized.path, normalized.to_dict(), OrderHandle
        )
        logger.info(f"Started {type(request).__name__} order {handle.order_ref}")
        return handle

    async def auth(self, request: AuthRequest) -> OrderHandle:
        """Start an authentication order."""
        return await self.start(request)

    async def sign(self, request: SignRequest) -> OrderHandle:
        """Start a signing order."""
        return await self.start(request)

    async def phone_auth(self, request: PhoneAuthRequest) -> OrderHandle:
        """Start an authentication order over the phone."""
        return await self.start(request)

    async def phone_sign(self, request: PhoneSignRequest) -> OrderHandle:
        """Start a signing order over the phone."""
        return await self.start(request)

    async def collect(self, order_ref: str) -> OrderStatus:
        """Fetch the current status of an order.

        Must not be called more often than every two seconds per order;
        use :meth:`poll` to follow an order to completion.
        """
        if not order_ref:
            raise RequiredInputMissingError("Order reference is required", field="order_ref")
        return await self._http.request(
            PATH_COLLECT, CollectRequest(order_ref).to_dict(), OrderStatus
        )

    async def cancel(self, order_ref: str) -> None:
        """Cancel an outstanding order."""
        if not order_ref:
            raise RequiredInputMissingError("Order reference is required", field="order_ref")
        await self._http.request(
            PATH_CANCEL, CancelRequest(order_ref).to_dict(), CancelResponse
        )
        logger.info(f"Cancelled order {order_ref}")

    def poll(self, order_ref: str, interval: float = POLL_INTERVAL_SECONDS) -> OrderPoller:
        """Create a poller following an order until it finishes."""
        return OrderPoller(self.collect, order_ref, interval=interval)

    def qr_codes(self, handle: OrderHandle) -> QRCodeGenerator:
        """Create the animated QR code generator for an order.

        Raises:
            InputInvalidError: If the handle carries no QR inputs.
        """
        return QRCodeGenerator(handle)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        """Close the transport."""
        await self._http.aclose()

    async def __aenter__(self) -> "BankIDClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
