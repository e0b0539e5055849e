"""Shared test fixtures for the GraphRAG gateway."""

import pytest
from fastapi.testclient import TestClient
from helpers import make_router

from graphrag_gateway.app import create_app
from graphrag_gateway.config.models import GatewayConfig, QuerySettings
from graphrag_gateway.graph import GraphEdge, GraphNode, InMemoryGraphStore, build_graph, sample_graph
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport.metrics import MetricsRecorder


@pytest.fixture
def g1():
    return build_graph(
        "g1",
        [
            GraphNode(id="n0", label="Stanford Medical Center", type="organization"),
            GraphNode(id="n1", label="AI", type="concept"),
        ],
        [GraphEdge(id="e0", source="n0", target="n1", label="applied_in")],
    )


@pytest.fixture
def chain_graph():
    """a - b - c - d, plus an isolated node e."""
    nodes = [GraphNode(id=i, label=f"Node {i.upper()}", type="concept") for i in "abcde"]
    edges = [
        GraphEdge(id="ab", source="a", target="b", label="next"),
        GraphEdge(id="bc", source="b", target="c", label="next"),
        GraphEdge(id="cd", source="c", target="d", label="next"),
    ]
    return build_graph("chain", nodes, edges)


@pytest.fixture
def store(g1):
    return InMemoryGraphStore([sample_graph(), g1])


@pytest.fixture
def router():
    return make_router()


@pytest.fixture
def service(store, router):
    return QueryService(store, router, QuerySettings())


@pytest.fixture
def recorder():
    return MetricsRecorder()


@pytest.fixture
def app(service, recorder):
    return create_app(GatewayConfig(), service=service, recorder=recorder)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
