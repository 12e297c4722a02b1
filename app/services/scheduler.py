"""
Delayed task scheduling.

The callback dispatcher schedules its retries through a Scheduler so that
tests can substitute a controllable implementation.
"""
import asyncio
from typing import Awaitable, Callable, Protocol

import structlog

from app.sentry_config import capture_exception

logger = structlog.get_logger()

Task = Callable[[], Awaitable[None]]


class Scheduler(Protocol):
    def schedule(self, delay: float, task: Task) -> None:
        """Run `task` after `delay` seconds without blocking the caller."""
        ...


class AsyncioScheduler:
    """Scheduler backed by asyncio tasks on the running loop."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, delay: float, task: Task) -> None:
        handle = asyncio.create_task(self._run_later(delay, task))
        self._tasks.add(handle)
        handle.add_done_callback(self._tasks.discard)

    async def _run_later(self, delay: float, task: Task) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await task()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("scheduled_task_failed", error=str(e), exc_info=True)
            capture_exception(e)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel outstanding tasks. Pending retries are not persisted."""
        for handle in list(self._tasks):
            handle.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
