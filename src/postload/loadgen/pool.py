from __future__ import annotations

import asyncio
from typing import Awaitable


class WorkerPool:
    """At most ``size`` work items in flight at once.

    The submitter reserves a slot before spawning an item, which is where it
    feels backpressure; the slot is returned when the item finishes. An item
    that raises is remembered and its exception is re-raised from ``join``.
    """

    def __init__(self, size: int) -> None:
        if size < 1:
            msg = f"concurrency must be at least 1, got {size}"
            raise ValueError(msg)
        self.size = size
        self._slots = asyncio.Semaphore(size)
        self._tasks: set[asyncio.Task[None]] = set()
        self._errors: list[BaseException] = []

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def reserve(self, timeout: float | None = None) -> bool:
        if timeout is None:
            await self._slots.acquire()
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def spawn(self, work: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(self._run(work))
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    async def join(self, timeout: float | None = None) -> int:
        """Wait for in-flight items; return how many were abandoned.

        Items still running when ``timeout`` expires are cancelled. The first
        exception raised by any item, including ones that finished before
        ``join`` was called, is re-raised once nothing is left to wait for.
        """
        abandoned = 0
        if self._tasks:
            _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
            for task in still_running:
                task.cancel()
            abandoned = len(still_running)
        if self._errors:
            raise self._errors[0]
        return abandoned

    def _finished(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._errors.append(exc)

    async def _run(self, work: Awaitable[None]) -> None:
        try:
            await work
        finally:
            self._slots.release()
