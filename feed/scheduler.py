"""
Fixed-interval task runner on the asyncio event loop.
"""
import asyncio
from typing import Any, Callable, Optional
import logging

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Call a function every `interval` seconds until stopped.

    The callback runs on the event loop and must not block; anything slow
    should hand itself off (e.g. with asyncio.create_task). Exceptions are
    logged and the schedule keeps going.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Any],
                 run_immediately: bool = True):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.name = name
        self.interval = interval
        self.callback = callback
        self.run_immediately = run_immediately
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.is_running:
            logger.warning(f"Task {self.name} already running")
            return

        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug(f"Started task {self.name} (every {self.interval}s)")

    def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        self._task = None
        logger.debug(f"Stopped task {self.name}")

    def _fire(self) -> None:
        self.ticks += 1
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Task {self.name} tick failed: {e}")

    async def _run(self) -> None:
        if self.run_immediately:
            self._fire()

        while True:
            await asyncio.sleep(self.interval)
            self._fire()
