"""
Cancellable clock for harness loops.

Every wait in the harness (settle delays, cycle intervals, rollout polls)
goes through a Ticker so that an external stop request wakes the run
promptly instead of waiting out a fixed sleep.
"""

import asyncio
import time

from fleet_harness.logging import get_logger

logger = get_logger(__name__)


class Ticker:
    """
    Monotonic clock with cancellable sleeps.

    Cancellation is sticky: once cancelled, every later sleep returns
    immediately with False.
    """

    def __init__(self) -> None:
        self._cancel_event = asyncio.Event()
        self._cancel_reason: str | None = None

    def now(self) -> float:
        """Current monotonic time in seconds."""
        return time.monotonic()

    @property
    def cancelled(self) -> bool:
        """Check if a stop was requested."""
        return self._cancel_event.is_set()

    @property
    def cancel_reason(self) -> str | None:
        return self._cancel_reason

    def cancel(self, reason: str = "stop requested") -> None:
        """Request every loop using this ticker to stop."""
        if self._cancel_event.is_set():
            return
        self._cancel_reason = reason
        self._cancel_event.set()
        logger.warning("Cancellation requested: %s", reason)

    async def wait_cancelled(self) -> None:
        """Block until cancellation is requested."""
        await self._cancel_event.wait()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`.

        Returns:
            True if the full interval elapsed, False if cancelled.
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except TimeoutError:
            return True
        return False
