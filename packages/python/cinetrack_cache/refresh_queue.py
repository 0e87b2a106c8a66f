from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from .lease import RefreshLease

log = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


class RefreshQueue:
    """
    Submit-and-forget background work with at most one job in flight per key.

    Jobs run as asyncio tasks on the caller's loop; the submitter never awaits
    them. Job exceptions are logged; only callers that ``run`` and await a job
    see them. An optional lease extends the per-key de-duplication to other
    processes.
    """

    def __init__(self, lease: RefreshLease | None = None):
        self.lease = lease
        self._tasks: dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def submit(self, key: str, factory: JobFactory) -> bool:
        """Schedule ``factory()`` under ``key``; returns False if one is already running."""
        if self.in_flight(key):
            log.debug("[refresh] %s already in flight", key)
            return False
        task = asyncio.create_task(self._run(key, factory), name=f"refresh:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return True

    async def run(self, key: str, factory: JobFactory) -> Any:
        """Join the in-flight job for ``key`` or start one, and return its result.

        Returns None when another process holds the lease for ``key``.
        """
        self.submit(key, factory)
        return await asyncio.shield(self._tasks[key])

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if not task.cancelled():
            task.exception()  # already logged by _run

    async def _run(self, key: str, factory: JobFactory) -> Any:
        if self.lease is not None and not await self.lease.acquire(key):
            log.info("[refresh] %s is being refreshed by another worker", key)
            return None
        try:
            return await factory()
        except Exception:
            log.exception("[refresh] background job %s failed", key)
            raise
        finally:
            if self.lease is not None:
                await self.lease.release(key)

    async def wait(self, key: str) -> None:
        """Block until the in-flight job for ``key`` (if any) settles, failed or not."""
        task = self._tasks.get(key)
        if task is not None:
            await asyncio.wait({task})

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def __len__(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())
