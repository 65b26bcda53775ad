"""Animated QR code payload generation.

The QR code shown for an auth or sign order changes every second. Each
payload is derived from the order's ``qrStartToken`` and ``qrStartSecret``
and the number of whole seconds since the order was started::

    bankid.<qrStartToken>.<seconds>.<hex(HMAC-SHA256(qrStartSecret, str(seconds)))>

Rendering the payload as an image is left to the caller.
"""

import asyncio
import hashlib
import hmac
import logging
import time
from typing import AsyncIterator, Callable, Optional

from .constants import QR_PREFIX, QR_REFRESH_INTERVAL
from .exceptions import InputInvalidError
from .models import OrderHandle

logger = logging.getLogger(__name__)


def generate_qr_payload(secret: str, start_token: str, elapsed_seconds: int) -> str:
    """Build the QR payload for a given second.

    Args:
        secret: The order's qrStartSecret.
        start_token: The order's qrStartToken.
        elapsed_seconds: Whole seconds since the order was started.

    Returns:
        The payload string to encode in the QR image.

    Raises:
        ValueError: If elapsed_seconds is negative.

    Example:
        >>> generate_qr_payload("secret", "token", 0)
        'bankid.token.0.…'
    """
    if elapsed_seconds < 0:
        raise ValueError("elapsed_seconds must not be negative")
    seconds = str(int(elapsed_seconds))
    digest = hmac.new(
        secret.encode("utf-8"), seconds.encode("ascii"), hashlib.sha256
    ).hexdigest()
    return f"{QR_PREFIX}.{start_token}.{seconds}.{digest}"


class QRCodeGenerator:
    """Produces the animated QR payloads for one order.

    The start time is taken when the generator is created, so it should be
    created right after the order has been started.

    Attributes:
        handle: The order handle carrying the QR inputs.

    Example:
        >>> qr = QRCodeGenerator(handle)
        >>> async for payload in qr.stream():
        ...     render(payload)
    """

    def __init__(
        self,
        handle: OrderHandle,
        clock: Callable[[], float] = time.monotonic,
        interval: float = QR_REFRESH_INTERVAL,
    ) -> None:
        """Initialize the generator.

        Args:
            handle: Handle returned by an auth or sign call.
            clock: Monotonic clock in seconds.
            interval: Seconds between payloads yielded by stream().

        Raises:
            InputInvalidError: If the handle has no QR token or secret.
        """
        if not handle.supports_qr:
            raise InputInvalidError(
                "Order handle has no QR start token and secret",
                field="qr_start_token",
            )
        self.handle = handle
        self._clock = clock
        self._interval = interval
        self._started_at = clock()
        self._closed = False

    def elapsed(self) -> int:
        """Whole seconds since the generator was created."""
        return max(0, int(self._clock() - self._started_at))

    def current(self) -> str:
        """Payload for the current second."""
        return generate_qr_payload(
            self.handle.qr_start_secret, self.handle.qr_start_token, self.elapsed()
        )

    def close(self) -> None:
        """Stop any running stream() after its current wait."""
        self._closed = True

    async def stream(self, limit: Optional[int] = None) -> AsyncIterator[str]:
        """Yield a fresh payload once per interval until closed.

        Args:
            limit: Stop after this many payloads. None means unlimited.
        """
        count = 0
        while not self._closed:
            yield self.current()
            count += 1
            if limit is not None and count >= limit:
                break
            await asyncio.sleep(self._interval)
        logger.debug(f"QR stream for {self.handle.order_ref} ended after {count} codes")
