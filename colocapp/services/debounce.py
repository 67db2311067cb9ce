"""Cancellable debounce timer on the asyncio loop."""

import asyncio
from typing import Awaitable, Callable, Optional

from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class CancellableTimer:
    """Run a coroutine after a quiet period; rescheduling restarts the period.

    Rapid calls to ``schedule`` coalesce into a single run of the last callback.
    """

    def __init__(self, delay_seconds: float, name: str = "debounce"):
        self.delay_seconds = delay_seconds
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, callback: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """(Re)start the timer; ``callback`` runs once the delay elapses undisturbed."""
        if self.pending:
            self._task.cancel()
            logger.debug("Debounce timer reset", timer=self.name)
        self._task = asyncio.create_task(self._run_after_delay(callback))
        return self._task

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None

    async def _run_after_delay(self, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Nothing awaits this task, so failures would otherwise be lost
            logger.error("Debounced callback failed", timer=self.name, error=str(e), exc_info=True)
