"""Knowledge graph model, stores and search."""

from graphrag_gateway.graph.base import GraphStore
from graphrag_gateway.graph.builder import build_graph, compute_stats, graph_from_dict
from graphrag_gateway.graph.cache import GraphCache
from graphrag_gateway.graph.json_store import JsonFileGraphStore
from graphrag_gateway.graph.memory import InMemoryGraphStore
from graphrag_gateway.graph.models import Graph, GraphEdge, GraphNode, GraphStats, NodeType
from graphrag_gateway.graph.sample import SAMPLE_GRAPH_ID, sample_graph

__all__ = [
    "SAMPLE_GRAPH_ID",
    "Graph",
    "GraphCache",
    "GraphEdge",
    "GraphNode",
    "GraphStats",
    "GraphStore",
    "InMemoryGraphStore",
    "JsonFileGraphStore",
    "NodeType",
    "build_graph",
    "compute_stats",
    "graph_from_dict",
    "sample_graph",
]
