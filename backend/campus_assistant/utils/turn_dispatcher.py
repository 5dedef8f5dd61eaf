import asyncio
import logging
from collections.abc import Awaitable


class TurnDispatcher:
    """Spawns one task per inbound message and keeps it referenced until done"""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._tasks: set[asyncio.Task[object]] = set()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Awaitable[object], *, name: str | None = None) -> asyncio.Task[object]:
        async def _run() -> object:
            return await coro

        task: asyncio.Task[object] = asyncio.create_task(_run(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "Background turn failed: %s",
                task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight turns; cancel whatever is left after ``timeout``"""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=timeout)
        for task in not_done:
            _ = task.cancel()
        if not_done:
            _ = await asyncio.gather(*not_done, return_exceptions=True)
            self._logger.warning("Cancelled %s unfinished turn(s) at shutdown", len(not_done))
