"""Run-wide cancellation context shared by every tunnel worker."""

import asyncio
import signal
from collections.abc import Iterable
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class RunContext:
    """Single cancellation signal for one supervision run.

    Cancelling is one-way: once set, every waiter is released and
    ``cancelled`` stays true for the rest of the run.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether shutdown has been requested"""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Request shutdown. Only the first reason is kept."""
        if self._event.is_set():
            return
        self._reason = reason
        logger.info("Shutdown requested", reason=reason)
        self._event.set()

    async def wait(self) -> None:
        """Block until the context is cancelled"""
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds unless cancelled first.

        Returns:
            True if the context was cancelled during the sleep
        """
        if delay <= 0:
            # Still yield so a tight restart loop cannot starve the loop
            await asyncio.sleep(0)
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    def install_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS,
    ) -> None:
        """Cancel this context when the process receives a shutdown signal"""
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.add_signal_handler(sig, self.cancel, sig.name)

    def remove_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS,
    ) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.remove_signal_handler(sig)


async def wait_first(
    ctx: RunContext, awaitable: "asyncio.Future[Any]"
) -> bool:
    """Wait until ``awaitable`` finishes or ``ctx`` is cancelled.

    The pending waiter on the context is always cleaned up; ``awaitable``
    itself is left to the caller.

    Returns:
        True if the context was cancelled first
    """
    stopped = asyncio.ensure_future(ctx.wait())
    try:
        await asyncio.wait({awaitable, stopped}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not stopped.done():
            stopped.cancel()
            try:
                await stopped
            except asyncio.CancelledError:
                pass
    return not awaitable.done()
