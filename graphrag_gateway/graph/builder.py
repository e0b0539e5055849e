"""Graph construction: validation, derived connection counts, statistics."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from graphrag_gateway.errors import InvalidGraphError
from graphrag_gateway.graph.models import Graph, GraphEdge, GraphNode, GraphStats
from graphrag_gateway.wire import utc_now


def compute_stats(nodes: list[GraphNode], edges: list[GraphEdge]) -> GraphStats:
    """density = E/N, connectivity = E/(N*(N-1)); zero when undefined."""
    n, e = len(nodes), len(edges)
    return GraphStats(
        total_nodes=n,
        total_edges=e,
        node_types=dict(Counter(node.type.value for node in nodes)),
        edge_types=dict(Counter(edge.type for edge in edges)),
        density=e / n if n else 0.0,
        connectivity=e / (n * (n - 1)) if n > 1 else 0.0,
    )


def build_graph(
    graph_id: str,
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    name: str = "",
    created_at: datetime | None = None,
) -> Graph:
    """Validate nodes/edges and return a Graph with consistent derived fields.

    Raises InvalidGraphError on duplicate node or edge ids and on edges whose
    endpoints are not nodes of this graph. Every node's ``connections`` is
    recomputed from ``edges``; incoming values are ignored.
    """
    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            raise InvalidGraphError(f"Duplicate node id {node.id!r} in graph {graph_id!r}")
        node_ids.add(node.id)

    degree: Counter[str] = Counter()
    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            raise InvalidGraphError(f"Duplicate edge id {edge.id!r} in graph {graph_id!r}")
        edge_ids.add(edge.id)
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_ids:
                raise InvalidGraphError(
                    f"Edge {edge.id!r} references unknown node {endpoint!r} in graph {graph_id!r}"
                )
        degree[edge.source] += 1
        if edge.target != edge.source:
            degree[edge.target] += 1

    counted = [
        node if node.connections == degree[node.id]
        else node.model_copy(update={"connections": degree[node.id]})
        for node in nodes
    ]
    now = utc_now()
    return Graph(
        id=graph_id,
        name=name or graph_id,
        nodes=counted,
        edges=list(edges),
        stats=compute_stats(counted, list(edges)),
        created_at=created_at or now,
        updated_at=now,
    )


def graph_from_dict(data: dict[str, Any], graph_id: str | None = None) -> Graph:
    """Build a Graph from a JSON document.

    Accepts edges keyed either by ``label`` or by ``relationship`` and weights
    nested under ``properties``; missing edge ids are generated as ``edge_<n>``.
    """
    gid = graph_id or data.get("id")
    if not gid:
        raise InvalidGraphError("Graph document has no id")
    try:
        nodes = [GraphNode.model_validate(raw) for raw in data.get("nodes", [])]
        edges: list[GraphEdge] = []
        for i, raw in enumerate(data.get("edges", [])):
            raw = dict(raw)
            raw.setdefault("id", f"edge_{i}")
            if "label" not in raw and "relationship" in raw:
                raw["label"] = raw["relationship"]
            raw.setdefault("type", raw.get("label", "relationship"))
            props = raw.pop("properties", None) or {}
            if "weight" not in raw and "weight" in props:
                raw["weight"] = props["weight"]
            raw.pop("relationship", None)
            edges.append(GraphEdge.model_validate(raw))
    except ValidationError as e:
        raise InvalidGraphError(f"Invalid graph document {gid!r}: {e}") from e
    return build_graph(gid, nodes, edges, name=data.get("name", ""))
