"""In-memory GraphStore."""

from __future__ import annotations

import asyncio
import logging

from graphrag_gateway.errors import GraphNotFoundError
from graphrag_gateway.graph.base import SnapshotStoreMixin
from graphrag_gateway.graph.models import Graph, GraphEdge, GraphNode

logger = logging.getLogger(__name__)


class InMemoryGraphStore(SnapshotStoreMixin):
    """Dict of graph snapshots keyed by id.

    Writers build a new snapshot and swap it in, so concurrent readers see
    either the old graph or the new one.
    """

    def __init__(self, graphs: list[Graph] | None = None, traverse_max_nodes: int = 50) -> None:
        self._graphs: dict[str, Graph] = {g.id: g for g in graphs or []}
        self._write_lock = asyncio.Lock()
        self.traverse_max_nodes = traverse_max_nodes

    async def get(self, graph_id: str) -> Graph:
        try:
            return self._graphs[graph_id]
        except KeyError:
            raise GraphNotFoundError(graph_id) from None

    async def list_graphs(self) -> list[Graph]:
        return list(self._graphs.values())

    def put(self, graph: Graph) -> None:
        self._graphs[graph.id] = graph
        logger.debug("Stored graph %s (%d nodes, %d edges)", graph.id, len(graph.nodes), len(graph.edges))

    async def add_nodes(self, graph_id: str, nodes: list[GraphNode]) -> Graph:
        async with self._write_lock:
            graph = (await self.get(graph_id)).with_nodes(nodes)
            self._graphs[graph_id] = graph
            return graph

    async def add_edges(self, graph_id: str, edges: list[GraphEdge]) -> Graph:
        async with self._write_lock:
            graph = (await self.get(graph_id)).with_edges(edges)
            self._graphs[graph_id] = graph
            return graph

    def delete(self, graph_id: str) -> None:
        if self._graphs.pop(graph_id, None) is None:
            raise GraphNotFoundError(graph_id)
