"""Background task tracking for fire-and-forget work.

Remote writes, webhook calls and dispatch loops run off the interactive path.
Tasks are kept referenced until they finish so the event loop never drops
them, and ``drain()`` lets shutdown (and tests) wait for everything in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Set of running asyncio tasks with logged failures."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Schedule a coroutine on the running loop and track it."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait until every tracked task (including ones spawned meanwhile) finishes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
