"""Tests for graph models, building, search and traversal."""

import pytest

from graphrag_gateway.errors import GraphNotFoundError, InvalidGraphError
from graphrag_gateway.graph import (
    SAMPLE_GRAPH_ID,
    GraphEdge,
    GraphNode,
    GraphStore,
    InMemoryGraphStore,
    NodeType,
    build_graph,
    graph_from_dict,
    sample_graph,
)
from graphrag_gateway.graph.search import iter_bfs, rank_entities


def _degrees(graph):
    counts = {n.id: 0 for n in graph.nodes}
    for e in graph.edges:
        counts[e.source] += 1
        if e.target != e.source:
            counts[e.target] += 1
    return counts


def _assert_connections_consistent(graph):
    degrees = _degrees(graph)
    for node in graph.nodes:
        assert node.connections == degrees[node.id], node.id


# ---------------------------------------------------------------------------
# build_graph
# ---------------------------------------------------------------------------


class TestBuildGraph:
    def test_connections_recomputed_from_edges(self):
        nodes = [
            GraphNode(id="a", label="A", type="person", connections=99),
            GraphNode(id="b", label="B", type="person"),
        ]
        graph = build_graph("g", nodes, [GraphEdge(id="e", source="a", target="b", label="knows")])
        assert [n.connections for n in graph.nodes] == [1, 1]

    def test_self_loop_counts_once(self):
        graph = build_graph(
            "g",
            [GraphNode(id="a", label="A", type="concept")],
            [GraphEdge(id="e", source="a", target="a", label="self")],
        )
        assert graph.nodes[0].connections == 1

    def test_duplicate_node_id_rejected(self):
        nodes = [GraphNode(id="a", label="A", type="person")] * 2
        with pytest.raises(InvalidGraphError, match="Duplicate node id 'a'"):
            build_graph("g", nodes, [])

    def test_duplicate_edge_id_rejected(self):
        nodes = [GraphNode(id="a", label="A", type="person"), GraphNode(id="b", label="B", type="person")]
        edge = GraphEdge(id="e", source="a", target="b", label="x")
        with pytest.raises(InvalidGraphError, match="Duplicate edge id"):
            build_graph("g", nodes, [edge, edge])

    def test_dangling_edge_rejected(self):
        nodes = [GraphNode(id="a", label="A", type="person")]
        with pytest.raises(InvalidGraphError, match="unknown node 'zzz'"):
            build_graph("g", nodes, [GraphEdge(id="e", source="a", target="zzz", label="x")])

    def test_stats(self, g1):
        stats = g1.stats
        assert stats.total_nodes == 2
        assert stats.total_edges == 1
        assert stats.node_types == {"organization": 1, "concept": 1}
        assert stats.edge_types == {"relationship": 1}
        assert stats.density == pytest.approx(0.5)
        assert stats.connectivity == pytest.approx(0.5)

    def test_empty_graph_ratios_are_zero(self):
        stats = build_graph("empty", [], []).stats
        assert stats.density == 0.0
        assert stats.connectivity == 0.0

    def test_name_defaults_to_id(self):
        assert build_graph("g", [], []).name == "g"

    def test_edge_weight_must_be_positive(self):
        with pytest.raises(ValueError):
            GraphEdge(id="e", source="a", target="b", label="x", weight=0)

    def test_wire_format_is_camel_case(self, g1):
        wire = g1.to_wire()
        assert "createdAt" in wire
        assert wire["stats"]["totalNodes"] == 2
        assert wire["nodes"][0]["type"] == "organization"


class TestGraphFromDict:
    def test_accepts_relationship_and_properties(self):
        graph = graph_from_dict(
            {
                "id": "doc",
                "name": "Doc graph",
                "nodes": [
                    {"id": "a", "label": "A", "type": "person", "frequency": 3},
                    {"id": "b", "label": "B", "type": "organization"},
                ],
                "edges": [{"source": "a", "target": "b", "relationship": "works_at", "properties": {"weight": 0.4}}],
            }
        )
        edge = graph.edges[0]
        assert edge.id == "edge_0"
        assert edge.label == "works_at"
        assert edge.weight == pytest.approx(0.4)
        assert graph.name == "Doc graph"

    def test_missing_id(self):
        with pytest.raises(InvalidGraphError, match="no id"):
            graph_from_dict({"nodes": []})

    def test_invalid_node_type(self):
        with pytest.raises(InvalidGraphError, match="Invalid graph document"):
            graph_from_dict({"id": "x", "nodes": [{"id": "a", "label": "A", "type": "planet"}]})


class TestSampleGraph:
    def test_shape(self):
        graph = sample_graph()
        assert graph.id == SAMPLE_GRAPH_ID
        assert graph.stats.total_nodes == 14
        assert graph.stats.total_edges == 5
        _assert_connections_consistent(graph)

    def test_stanford_is_the_hub(self):
        graph = sample_graph()
        assert graph.node("node_2").connections == 3
        assert graph.node("node_6").type is NodeType.concept


# ---------------------------------------------------------------------------
# InMemoryGraphStore
# ---------------------------------------------------------------------------


class TestInMemoryGraphStore:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, GraphStore)

    @pytest.mark.asyncio
    async def test_get_unknown_names_id(self, store):
        with pytest.raises(GraphNotFoundError, match="nonexistent"):
            await store.get("nonexistent")

    @pytest.mark.asyncio
    async def test_list_graphs(self, store):
        ids = [g.id for g in await store.list_graphs()]
        assert ids == [SAMPLE_GRAPH_ID, "g1"]

    @pytest.mark.asyncio
    async def test_add_edges_is_copy_on_write(self, store, g1):
        before = await store.get("g1")
        after = await store.add_edges("g1", [GraphEdge(id="e1", source="n1", target="n1", label="self")])
        assert before.node("n1").connections == 1
        assert after.node("n1").connections == 2
        assert (await store.get("g1")) is after
        _assert_connections_consistent(after)

    @pytest.mark.asyncio
    async def test_add_nodes_then_edges_keeps_invariant(self, store):
        await store.add_nodes("g1", [GraphNode(id="n2", label="Radiology", type="concept")])
        graph = await store.add_edges(
            "g1", [GraphEdge(id="e1", source="n1", target="n2", label="used_in")]
        )
        assert graph.node("n2").connections == 1
        assert graph.stats.total_nodes == 3
        _assert_connections_consistent(graph)

    @pytest.mark.asyncio
    async def test_add_edges_rejects_dangling_and_keeps_old_graph(self, store):
        before = await store.get("g1")
        with pytest.raises(InvalidGraphError):
            await store.add_edges("g1", [GraphEdge(id="e1", source="n1", target="ghost", label="x")])
        assert (await store.get("g1")) is before

    @pytest.mark.asyncio
    async def test_delete(self, store):
        store.delete("g1")
        with pytest.raises(GraphNotFoundError):
            await store.get("g1")
        with pytest.raises(GraphNotFoundError):
            store.delete("g1")


# ---------------------------------------------------------------------------
# Entity search
# ---------------------------------------------------------------------------


class TestRankEntities:
    @pytest.fixture
    def graph(self):
        return build_graph(
            "s",
            [
                GraphNode(id="sub", label="Big Stanford Lab", type="organization", frequency=9),
                GraphNode(id="pre", label="Stanford Medical", type="organization", frequency=1),
                GraphNode(id="exact", label="Stanford", type="organization"),
                GraphNode(id="pre2", label="Stanford Hospital", type="organization", frequency=5),
                GraphNode(id="person", label="Ann", type="person"),
            ],
            [],
        )

    def test_tier_then_frequency_order(self, graph):
        ids = [n.id for n in rank_entities(graph, "stanford")]
        assert ids == ["exact", "pre2", "pre", "sub"]

    def test_type_only_match_ranks_last(self, graph):
        ids = [n.id for n in rank_entities(graph, "org")]
        assert ids == ["sub", "pre2", "pre", "exact"]

    def test_case_insensitive(self, graph):
        assert [n.id for n in rank_entities(graph, "ANN")] == ["person"]

    def test_empty_query_insertion_order(self, graph):
        ids = [n.id for n in rank_entities(graph, "", limit=3)]
        assert ids == ["sub", "pre", "exact"]

    @pytest.mark.asyncio
    async def test_store_search_limit(self, store):
        hits = await store.search_entities(SAMPLE_GRAPH_ID, "", 100)
        assert len(hits) == 14
        assert len(await store.search_entities(SAMPLE_GRAPH_ID, "", 4)) == 4

    @pytest.mark.asyncio
    async def test_store_search_unknown_graph(self, store):
        with pytest.raises(GraphNotFoundError):
            await store.search_entities("missing", "x")


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class TestTraversal:
    def test_bfs_order_and_depth(self, chain_graph):
        ids = [n.id for n in iter_bfs(chain_graph, "node a", max_depth=2, max_nodes=50)]
        assert ids == ["a", "b", "c"]

    def test_depth_zero_yields_seeds_only(self, chain_graph):
        ids = [n.id for n in iter_bfs(chain_graph, "node b", max_depth=0, max_nodes=50)]
        assert ids == ["b"]

    def test_undirected_expansion(self, chain_graph):
        ids = [n.id for n in iter_bfs(chain_graph, "node c", max_depth=1, max_nodes=50)]
        assert ids == ["c", "b", "d"]

    def test_node_ceiling(self, chain_graph):
        assert len(list(iter_bfs(chain_graph, "node", max_depth=5, max_nodes=2))) == 2

    def test_each_node_once(self, chain_graph):
        ids = [n.id for n in iter_bfs(chain_graph, "node", max_depth=5, max_nodes=50)]
        assert sorted(ids) == list("abcde")

    def test_no_match_yields_nothing(self, chain_graph):
        assert list(iter_bfs(chain_graph, "zebra", max_depth=3, max_nodes=50)) == []

    @pytest.mark.asyncio
    async def test_store_traverse_respects_store_ceiling(self, chain_graph):
        store = InMemoryGraphStore([chain_graph], traverse_max_nodes=3)
        nodes = [n async for n in store.traverse("chain", "node", 5, max_nodes=10)]
        assert len(nodes) == 3

    @pytest.mark.asyncio
    async def test_store_traverse_fresh_state_per_call(self, store):
        first = [n.id async for n in store.traverse("g1", "AI", 1)]
        second = [n.id async for n in store.traverse("g1", "AI", 1)]
        assert first == second == ["n1", "n0"]

    @pytest.mark.asyncio
    async def test_unknown_graph_raises_before_first_item(self, store):
        nodes = store.traverse("missing", "x", 1)
        with pytest.raises(GraphNotFoundError):
            await nodes.__anext__()
