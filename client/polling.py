"""
client/polling.py
Background poll loop shared by the porter and notification pollers.
"""

import abc
import asyncio
import inspect
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


async def invoke_callback(callback: Optional[Callable], *args) -> None:
    """Run a sync or async callback. Its errors are logged, never raised."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Poller callback {getattr(callback, '__name__', callback)} failed")


class PeriodicPoller(abc.ABC):
    """Calls poll_once() every `interval` seconds until stopped."""

    def __init__(self, interval: float):
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @abc.abstractmethod
    async def poll_once(self) -> bool:
        """One fetch-and-update cycle. Returns False if the fetch failed."""

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                # A malformed response costs one cycle, never the loop
                logger.exception(f"{type(self).__name__} poll failed")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Cancel the loop; no request is issued after this returns."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
