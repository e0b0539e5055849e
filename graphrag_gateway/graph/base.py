"""GraphStore interface."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from graphrag_gateway.graph.models import Graph, GraphNode
from graphrag_gateway.graph.search import iter_bfs, rank_entities


@runtime_checkable
class GraphStore(Protocol):
    """Read access to knowledge graphs (in-memory, JSON files, ...).

    ``get`` raises GraphNotFoundError for unknown ids. ``traverse`` raises it
    before yielding the first node.
    """

    async def get(self, graph_id: str) -> Graph: ...

    async def list_graphs(self) -> list[Graph]: ...

    async def search_entities(
        self, graph_id: str, query: str, limit: int = 10
    ) -> list[GraphNode]: ...

    def traverse(
        self,
        graph_id: str,
        start_query: str,
        max_depth: int,
        max_nodes: int | None = None,
    ) -> AsyncIterator[GraphNode]: ...


class SnapshotStoreMixin:
    """Search and traversal for stores that resolve a whole Graph snapshot.

    Subclasses provide ``get``; ``traverse_max_nodes`` caps traversal output.
    """

    traverse_max_nodes: int = 50

    async def get(self, graph_id: str) -> Graph:
        raise NotImplementedError

    async def search_entities(
        self, graph_id: str, query: str, limit: int = 10
    ) -> list[GraphNode]:
        graph = await self.get(graph_id)
        return rank_entities(graph, query, limit)

    async def traverse(
        self,
        graph_id: str,
        start_query: str,
        max_depth: int,
        max_nodes: int | None = None,
    ) -> AsyncIterator[GraphNode]:
        graph = await self.get(graph_id)
        ceiling = self.traverse_max_nodes
        if max_nodes is not None:
            ceiling = min(max_nodes, ceiling)
        for node in iter_bfs(graph, start_query, max_depth, ceiling):
            yield node
            # let other tasks run between items of a long traversal
            await asyncio.sleep(0)
