"""
Detached background work (stale refreshes, image persistence).

Callers never await these; failures are logged and reported to listeners.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

logger = logging.getLogger(__name__)

ErrorListener = Callable[[str, BaseException], None]


class BackgroundTasks:
    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[ErrorListener] = []

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._listeners.append(listener)

    def spawn(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        name = task.get_name()
        logger.error(f"Background task {name} failed: {error}", exc_info=error)
        for listener in self._listeners:
            try:
                listener(name, error)
            except Exception as e:
                logger.error(f"Background error listener failed: {e}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every pending task, including ones spawned while waiting"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
