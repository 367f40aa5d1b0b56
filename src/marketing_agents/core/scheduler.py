"""Fixed-interval ticker owned by the orchestrator."""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

MAX_LOGGED_ERROR_CHARS = 500


class PollScheduler:
    """Runs ``callback`` every ``interval`` seconds in a background task.

    Cycles never overlap: the next sleep starts after the previous callback
    returns. Errors raised by a cycle are logged and the loop carries on.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "poll",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"{self.name}-scheduler")

    async def stop(self) -> None:
        """Cancel the ticker and wait for it to finish. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            try:
                await self.callback()
            except Exception as e:
                # Only the message: full reprs of upstream errors can carry request details
                logger.error(f"[{self.name}] Error: {str(e)[:MAX_LOGGED_ERROR_CHARS]}")
            self.cycles += 1
