"""Cancel-and-reschedule debouncing on the running event loop."""
import asyncio
from typing import Awaitable, Callable, Optional

from vaultorg.infrastructure.logger import get_logger


class Debouncer:
    """Coalesces bursts of triggers into one delayed call.

    Each trigger() cancels any pending call and schedules a new one
    ``delay`` seconds later. The callback is a coroutine function.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]):
        """Initialize debouncer.

        Args:
            delay: Quiet period in seconds
            callback: Coroutine function to run once things settle
        """
        self.delay = delay
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self.logger = get_logger()

    @property
    def pending(self) -> bool:
        """True if a call is scheduled and has not started yet."""
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        """Schedule the callback, replacing any pending schedule.

        Must be called with an event loop running.
        """
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run_later())

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        try:
            await self._callback()
        except Exception as e:
            self.logger.exception("Debounced call failed", e)

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run a pending call now instead of waiting for the delay."""
        if not self.pending:
            return
        self.cancel()
        await self._callback()
