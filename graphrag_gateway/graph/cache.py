"""TTL cache for loaded graphs with single-flight population."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from cachetools import TTLCache

from graphrag_gateway.graph.models import Graph

logger = logging.getLogger(__name__)


def _retrieve_exception(task: asyncio.Task) -> None:
    # a load nobody is waiting for any more must not report an unretrieved error
    if not task.cancelled():
        task.exception()


class GraphCache:
    """Caches Graph snapshots by id.

    Concurrent misses for the same key share one in-flight load; the loader
    runs once and every waiter gets its result (or its exception). The load
    runs as a task owned by the cache, so a cancelled waiter only stops
    waiting and never cancels the load for the others.
    """

    def __init__(self, maxsize: int = 128, ttl: float = 300.0) -> None:
        self._entries: TTLCache[str, Graph] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._inflight: dict[str, asyncio.Task[Graph]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, key: str) -> Graph | None:
        return self._entries.get(key)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Graph]]) -> Graph:
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, loader))
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: Callable[[], Awaitable[Graph]]) -> Graph:
        try:
            graph = await loader()
        finally:
            self._inflight.pop(key, None)
        self._entries[key] = graph
        logger.debug("Cached graph %s", key)
        return graph

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
