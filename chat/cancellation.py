"""Cooperative cancellation shared by the suspension points of one query"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from .errors import CancellationFault

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation handle for a single query.

    ``guard`` wraps each suspension point; once ``cancel`` is called any
    guarded await resolves promptly with ``CancellationFault``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.debug("Cancellation requested")
        self._event.set()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first

        Raises:
            CancellationFault: If the token is or becomes cancelled
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise CancellationFault("Generation stopped")

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Let the inner await unwind before the caller cleans up after it
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise CancellationFault("Generation stopped")
