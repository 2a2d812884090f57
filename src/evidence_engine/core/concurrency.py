"""Concurrency control utilities for async operations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


@dataclass
class ConcurrencyLimiter:
    """Semaphore-backed limit on concurrently running tasks."""

    max_concurrent: int
    _semaphore: asyncio.Semaphore = field(init=False)
    _running: int = field(default=0)

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._running += 1

    def release(self) -> None:
        self._semaphore.release()
        self._running -= 1

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    @property
    def running(self) -> int:
        """Get number of running tasks."""
        return self._running


class TaskPool:
    """Task pool for managing concurrent async tasks."""

    def __init__(self, max_concurrent: int = 4):
        """Initialize task pool.

        Args:
            max_concurrent: Maximum concurrent tasks.
        """
        self._limiter = ConcurrencyLimiter(max_concurrent)
        self._tasks: set[asyncio.Task] = set()

    def submit(self, coro: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> asyncio.Task:
        """Schedule ``coro(*args, **kwargs)`` once a slot is free.

        Returns:
            Task object.
        """

        async def _wrapped() -> Any:
            async with self._limiter:
                return await coro(*args, **kwargs)

        task = asyncio.create_task(_wrapped())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def map(
        self,
        coro: Callable[..., Awaitable[Any]],
        items: list[Any],
        return_exceptions: bool = False,
    ) -> list[Any]:
        """Run ``coro(item)`` for every item and return results in item order.

        Args:
            coro: Coroutine function taking one item.
            items: Work items.
            return_exceptions: Whether to return exceptions instead of raising.
        """

        tasks = [self.submit(coro, item) for item in items]
        return await asyncio.gather(*tasks, return_exceptions=return_exceptions)

    async def wait_all(self) -> None:
        """Wait for all tasks to complete."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    @property
    def active_count(self) -> int:
        """Get number of active tasks."""
        return len([t for t in self._tasks if not t.done()])
