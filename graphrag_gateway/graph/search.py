"""Entity search and breadth-first traversal over a graph snapshot.

Both functions are pure over a ``Graph``; stores delegate to them after
resolving the snapshot.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from graphrag_gateway.graph.models import Graph, GraphNode

# Match tiers, best first.
_EXACT, _PREFIX, _LABEL, _TYPE = 0, 1, 2, 3


def _match_tier(node: GraphNode, needle: str) -> int | None:
    label = node.label.lower()
    if label == needle:
        return _EXACT
    if label.startswith(needle):
        return _PREFIX
    if needle in label:
        return _LABEL
    if needle in node.type.value:
        return _TYPE
    return None


def rank_entities(graph: Graph, query: str, limit: int | None = None) -> list[GraphNode]:
    """Case-insensitive substring search over node labels and types.

    Ordering: match tier, then descending frequency, then insertion order.
    An empty query returns nodes in insertion order.
    """
    needle = query.strip().lower()
    if not needle:
        hits = list(graph.nodes)
    else:
        scored: list[tuple[int, int, int, GraphNode]] = []
        for index, node in enumerate(graph.nodes):
            tier = _match_tier(node, needle)
            if tier is not None:
                scored.append((tier, -node.frequency, index, node))
        scored.sort(key=lambda t: t[:3])
        hits = [t[3] for t in scored]
    if limit is not None:
        hits = hits[: max(limit, 0)]
    return hits


def _adjacency(graph: Graph) -> dict[str, list[str]]:
    """Undirected neighbour lists in edge insertion order."""
    adj: dict[str, list[str]] = {n.id: [] for n in graph.nodes}
    for edge in graph.edges:
        adj[edge.source].append(edge.target)
        if edge.target != edge.source:
            adj[edge.target].append(edge.source)
    return adj


def iter_bfs(
    graph: Graph,
    start_query: str,
    max_depth: int,
    max_nodes: int,
) -> Iterator[GraphNode]:
    """Yield nodes breadth-first from the nodes matching ``start_query``.

    Seeds are at depth 0 in search-rank order; expansion stops after
    ``max_depth`` hops or once ``max_nodes`` nodes have been yielded. Each
    node is yielded at most once.
    """
    if max_nodes <= 0:
        return
    by_id = {n.id: n for n in graph.nodes}
    adj = _adjacency(graph)

    seen: set[str] = set()
    frontier: deque[tuple[str, int]] = deque()
    for seed in rank_entities(graph, start_query):
        if seed.id not in seen:
            seen.add(seed.id)
            frontier.append((seed.id, 0))

    emitted = 0
    while frontier:
        node_id, depth = frontier.popleft()
        yield by_id[node_id]
        emitted += 1
        if emitted >= max_nodes:
            return
        if depth >= max_depth:
            continue
        for neighbour in adj[node_id]:
            if neighbour not in seen:
                seen.add(neighbour)
                frontier.append((neighbour, depth + 1))
