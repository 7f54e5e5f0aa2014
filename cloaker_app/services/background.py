"""
Fire-and-forget side effects.

Status propagation and analytics publishing must not hold up a redirect,
but their failures still have to show up somewhere. submit() schedules
the coroutine on the running loop, keeps a reference until it finishes
and logs whatever it raised.
"""

import asyncio
import logging
from functools import partial
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundRunner:

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, coro: Awaitable, label: str) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop, dropped background task %s", label)
            return None

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(partial(self._finished, label))
        return task

    def _finished(self, label: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("Background task %s cancelled", label)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", label, exc, exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every submitted task, including ones submitted meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
