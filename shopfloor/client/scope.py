"""Cancellation of fetches tied to the lifetime of a view"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ViewScope:
    """
    Owns the tasks started on behalf of one view.

    Closing the scope cancels whatever is still in flight, and a result that
    arrives after close is dropped instead of being applied to stale state.

    Usage:
        async with ViewScope() as scope:
            await scope.run(api.chat_history(partner_id), store.ingest_many)
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def is_active(self) -> bool:
        return not self._closed

    def spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        if self._closed:
            coro.close()
            raise RuntimeError("ViewScope is closed")
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(
        self,
        coro: Coroutine[Any, Any, T],
        apply: Callable[[T], Awaitable[Any] | Any] | None = None,
    ) -> T | None:
        """
        Await coro inside the scope and hand its result to apply.

        Returns None without calling apply when the scope was closed while
        waiting.
        """
        task = self.spawn(coro)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._closed:
                return None
            raise
        if self._closed:
            logger.debug("Discarding result that arrived after its view closed")
            return None
        if apply is not None:
            applied = apply(result)
            if asyncio.iscoroutine(applied):
                await applied
        return result

    async def close(self) -> None:
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def __aenter__(self) -> "ViewScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
