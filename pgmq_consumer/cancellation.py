"""
Cooperative cancellation for a batch of in-flight work.

An AbortController owns one AbortSignal and, optionally, a deadline timer
that aborts the signal when it fires. The signal is handed to handlers and
driver calls; they decide when to check it.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from typing import TypeVar

from pgmq_consumer.errors import AbortError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbortSignal:
    """
    Read side of a cancellation token.

    Once aborted it stays aborted.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def aborted(self) -> bool:
        """Whether the signal has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Why the signal fired, if it has."""
        return self._reason

    async def wait(self) -> None:
        """Suspend until the signal fires."""
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        """Raise AbortError if the signal has fired."""
        if self.aborted:
            raise AbortError(self._reason or "The operation was aborted")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Run an awaitable, abandoning it if the signal fires first.

        Args:
            awaitable: The work to run.

        Returns:
            The awaitable's result.

        Raises:
            AbortError: If the signal fired before the work completed.
        """
        if self.aborted:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_aborted()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if not work.done():
            work.cancel()
            try:
                await work
            except asyncio.CancelledError:
                pass
            raise AbortError(self._reason or "The operation was aborted")

        return work.result()

    def _fire(self, reason: str) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()


class AbortController:
    """
    Write side of a cancellation token, with an optional deadline.
    """

    def __init__(self):
        self.signal = AbortSignal()
        self._deadline: asyncio.TimerHandle | None = None

    def abort(self, reason: str = "The operation was aborted") -> None:
        """Fire the signal. Repeated calls are ignored."""
        self.signal._fire(reason)

    def abort_after(self, seconds: float) -> None:
        """
        Schedule the signal to fire after a delay.

        Replaces any deadline scheduled earlier.

        Args:
            seconds: Delay before aborting.
        """
        self.cancel_deadline()
        loop = asyncio.get_running_loop()
        self._deadline = loop.call_later(
            seconds,
            self.abort,
            f"Deadline of {seconds}s exceeded",
        )
        logger.debug("Deadline scheduled", extra={"seconds": seconds})

    def cancel_deadline(self) -> None:
        """Cancel the pending deadline, if any. The signal state is unchanged."""
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
