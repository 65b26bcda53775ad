"""Order status polling.

Collects the status of one order at a fixed interval until it reaches a
terminal state. The service requires collect to be called every two
seconds; faster polling is not allowed.

States:
    pending -> pending | complete | failed
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from .constants import POLL_INTERVAL_SECONDS
from .models import OrderStatus

logger = logging.getLogger(__name__)

CollectFunc = Callable[[str], Awaitable[OrderStatus]]


class OrderPoller:
    """Async iterator over the states of one order.

    Each state returned by collect is yielded. A terminal state is yielded
    once and ends the iteration. A collect failure is raised to the
    consumer and ends the iteration; it is not retried.

    :meth:`cancel` ends the iteration without yielding anything further,
    including aborting a collect call that is in flight.

    Attributes:
        order_ref: The order being polled.
        interval: Seconds between the end of one collect and the next.

    Example:
        >>> poller = OrderPoller(client.collect, handle.order_ref)
        >>> async for status in poller:
        ...     print(status.status, status.hint_code)
    """

    def __init__(
        self,
        collect: CollectFunc,
        order_ref: str,
        interval: float = POLL_INTERVAL_SECONDS,
    ):
        if not order_ref:
            raise ValueError("order_ref cannot be empty")
        if interval < 0:
            raise ValueError("interval must not be negative")

        self.order_ref = order_ref
        self.interval = interval
        self._collect = collect
        self._cancel_event = asyncio.Event()
        self._poll_count = 0
        self._last_status: Optional[OrderStatus] = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def poll_count(self) -> int:
        """Number of collect calls started."""
        return self._poll_count

    @property
    def last_status(self) -> Optional[OrderStatus]:
        return self._last_status

    def cancel(self) -> None:
        """Stop polling.

        Safe to call from any task on the same event loop, any number of
        times.
        """
        if not self._cancel_event.is_set():
            logger.debug(f"Polling of {self.order_ref} cancelled")
        self._cancel_event.set()

    def __aiter__(self) -> AsyncIterator[OrderStatus]:
        return self._poll()

    async def _collect_once(self) -> Optional[OrderStatus]:
        """Run one collect, racing it against cancellation.

        Returns:
            The status, or None if cancelled first.
        """
        collect_task = asyncio.ensure_future(self._collect(self.order_ref))
        cancel_task = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait(
                {collect_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not collect_task.done():
                collect_task.cancel()
                await asyncio.gather(collect_task, return_exceptions=True)

        if collect_task.cancelled() or self.cancelled:
            return None
        return collect_task.result()

    async def _wait_interval(self) -> None:
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass

    async def _poll(self) -> AsyncIterator[OrderStatus]:
        while not self.cancelled:
            self._poll_count += 1
            status = await self._collect_once()
            if status is None:
                break

            self._last_status = status
            logger.debug(
                f"Order {self.order_ref}: {status.status.value} "
                f"(hint={status.hint_code})"
            )
            yield status

            if status.is_terminal:
                logger.info(f"Order {self.order_ref} finished: {status.status.value}")
                return

            await self._wait_interval()
