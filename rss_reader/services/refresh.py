"""Debounced whole-library refresh.

A burst of refresh requests collapses into one refresh cycle: every request
sets a single pending flag and restarts a short timer, and only the timer
firing runs the cycle. In-flight cycles are never cancelled; requests that
arrive while one runs schedule exactly one more.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from rss_reader.log_system.unified_logger import UnifiedLogger


class RefreshDebouncer:
    """Coalesces refresh requests into single executions of action."""

    def __init__(self, action: Callable[[], Awaitable[Any]], delay: float = 0.5):
        self._action = action
        self.delay = delay
        self._pending = False
        self._timer: Optional[asyncio.Task] = None
        self._cycle: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.cycles_run = 0
        self.last_result: Any = None

    @property
    def pending(self) -> bool:
        return self._pending

    def request(self) -> None:
        """Ask for a refresh; must be called from within the event loop."""
        self._pending = True
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_fire())

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.delay)
        if not self._pending:
            return
        self._pending = False
        self._cycle = asyncio.get_running_loop().create_task(self._run_cycle())

    async def _run_cycle(self) -> None:
        logger = UnifiedLogger.get_logger(__name__)

        async with self._lock:
            self.cycles_run += 1
            logger.info(f"Running debounced refresh cycle #{self.cycles_run}")
            try:
                self.last_result = await self._action()
            except Exception:
                # Nobody awaits this task; the failure is only reported here
                logger.exception("Debounced refresh cycle failed")
                self.last_result = None

    async def request_and_wait(self) -> Any:
        """Ask for a refresh and wait for the cycle that serves it.

        Concurrent callers share one cycle and get the same result.

        Returns:
            Return value of the action, or None if the cycle failed
        """
        self.request()
        await self.wait_idle()
        return self.last_result

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no cycle is running."""
        while True:
            tasks = [t for t in (self._timer, self._cycle) if t is not None and not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Drop any pending request and wait for a running cycle to finish."""
        self._pending = False
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        await self.wait_idle()
