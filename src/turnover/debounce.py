"""Cancelable delayed tasks for coalescing bursts of triggers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Union

logger = logging.getLogger(__name__)

Callback = Callable[[], Union[Awaitable[None], None]]


class Debouncer:
    """Run ``callback`` once, ``delay`` seconds after the last ``trigger()``.

    Each trigger cancels the pending run and schedules a new one, so only the
    most recent request in a burst executes. Requires a running event loop.
    """

    def __init__(self, delay: float, callback: Callback, name: str = "debounced") -> None:
        self.delay = delay
        self.name = name
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending run (if any) to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            # Superseded by a newer trigger; wait for that one instead.
            if self._task is not None and self._task is not task:
                await self.wait()

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Debounced callback %s failed", self.name)
