"""Bundled demo graph: researchers, institutions and AI in healthcare."""

from __future__ import annotations

from graphrag_gateway.graph.builder import graph_from_dict
from graphrag_gateway.graph.models import Graph

SAMPLE_GRAPH_ID = "graph_1755797167093"

_NODES = [
    ("node_0", "Emily Rodriguez", "person", 4),
    ("node_1", "Google Health", "organization", 4),
    ("node_2", "Stanford Medical Center", "organization", 4),
    ("node_3", "Johnson", "concept", 4),
    ("node_4", "Chen", "concept", 3),
    ("node_5", "The", "concept", 3),
    ("node_6", "Artificial Intelligence", "concept", 2),
    ("node_7", "Comprehensive Overview", "concept", 2),
    ("node_8", "Sarah Johnson", "person", 2),
    ("node_9", "Stanford Medical", "organization", 2),
    ("node_10", "Michael Chen", "person", 2),
    ("node_11", "Microsoft Research", "organization", 2),
    ("node_12", "National Institutes", "organization", 2),
    ("node_13", "American Medical Association", "organization", 2),
]

_EDGES = [
    ("edge_0", "node_0", "node_2", "works_at", "employment", 1.0),
    ("edge_1", "node_8", "node_2", "researcher", "role", 1.0),
    ("edge_2", "node_10", "node_11", "works_at", "employment", 1.0),
    ("edge_3", "node_6", "node_2", "applied_in", "application", 0.9),
    ("edge_4", "node_6", "node_1", "used_by", "technology", 0.8),
]


def sample_graph() -> Graph:
    """Return a fresh copy of the demo graph."""
    return graph_from_dict(
        {
            "id": SAMPLE_GRAPH_ID,
            "name": "AI in Healthcare Research",
            "nodes": [
                {"id": i, "label": label, "type": kind, "frequency": freq}
                for i, label, kind, freq in _NODES
            ],
            "edges": [
                {"id": i, "source": s, "target": t, "label": label, "type": kind, "weight": w}
                for i, s, t, label, kind, w in _EDGES
            ],
        }
    )
