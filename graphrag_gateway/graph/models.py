"""Graph data model: nodes, edges, derived statistics."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from graphrag_gateway.wire import WireModel, utc_now


class NodeType(str, Enum):
    """Entity categories a graph node can carry."""

    person = "person"
    organization = "organization"
    concept = "concept"
    document = "document"


class GraphNode(WireModel):
    """A node in the knowledge graph.

    ``connections`` is derived from the edge set; use ``build_graph`` to get
    a node whose count is consistent with its graph.
    """

    id: str = Field(min_length=1)
    label: str
    type: NodeType
    connections: int = Field(default=0, ge=0)
    frequency: int = Field(default=0, ge=0)


class GraphEdge(WireModel):
    """A directed, weighted edge between two nodes of the same graph."""

    id: str = Field(min_length=1)
    source: str
    target: str
    label: str
    type: str = "relationship"
    weight: float = Field(default=1.0, gt=0.0, le=1.0)


class GraphStats(WireModel):
    total_nodes: int = 0
    total_edges: int = 0
    node_types: dict[str, int] = Field(default_factory=dict)
    edge_types: dict[str, int] = Field(default_factory=dict)
    density: float = 0.0
    connectivity: float = 0.0


class Graph(WireModel):
    """An immutable graph snapshot. Mutations produce a new snapshot."""

    id: str = Field(min_length=1)
    name: str = ""
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    stats: GraphStats = Field(default_factory=GraphStats)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def node(self, node_id: str) -> GraphNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def with_nodes(self, nodes: list[GraphNode]) -> Graph:
        """Return a new snapshot with ``nodes`` appended."""
        from graphrag_gateway.graph.builder import build_graph

        return build_graph(
            self.id,
            [*self.nodes, *nodes],
            self.edges,
            name=self.name,
            created_at=self.created_at,
        )

    def with_edges(self, edges: list[GraphEdge]) -> Graph:
        """Return a new snapshot with ``edges`` appended."""
        from graphrag_gateway.graph.builder import build_graph

        return build_graph(
            self.id,
            self.nodes,
            [*self.edges, *edges],
            name=self.name,
            created_at=self.created_at,
        )
