"""
Timer/task scheduling for the capture state machine.

Every timed step of the wizard goes through a `Scheduler` so the state machine
can cancel everything it started on teardown, and tests can swap in a
scheduler whose sleeps complete immediately.
"""

import asyncio
import logging
from typing import Awaitable, Set


logger = logging.getLogger(__name__)


class StageScope:
    """
    Cancellation scope for one stage of the wizard.

    Tasks spawned through the scope are cancelled when the scope exits,
    whether the stage finished normally or was itself cancelled.
    """

    def __init__(self, scheduler: "Scheduler"):
        self._scheduler = scheduler
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable) -> asyncio.Task:
        task = self._scheduler.spawn(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def sleep(self, seconds: float) -> None:
        await self._scheduler.sleep(seconds)

    async def __aenter__(self) -> "StageScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class Scheduler:
    """asyncio-backed scheduler. Tracks spawned tasks so they can all be cancelled."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def stage(self) -> StageScope:
        return StageScope(self)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scheduled task failed: {exc}", exc_info=exc)
