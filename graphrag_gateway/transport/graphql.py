"""Strawberry GraphQL adapter mounted on the HTTP app at ``/graphql``."""

import json
import logging
from typing import Any

import strawberry
from graphql import GraphQLError
from strawberry.extensions import MaskErrors
from strawberry.fastapi import GraphQLRouter
from strawberry.scalars import JSON
from strawberry.types import Info

from graphrag_gateway.errors import GatewayError, TransportError
from graphrag_gateway.graph.models import Graph, GraphEdge, GraphNode, GraphStats
from graphrag_gateway.retrieval.context import ContextItem
from graphrag_gateway.service.models import HealthStatus, QueryResult
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport.metrics import MetricsRecorder

logger = logging.getLogger(__name__)

GRAPHQL_PATH = "/graphql"


# ----------------------------------------------------------------------
# Types
# ----------------------------------------------------------------------


@strawberry.type
class Node:
    id: str
    label: str
    type: str
    connections: int
    frequency: int

    @classmethod
    def from_model(cls, node: GraphNode) -> "Node":
        return cls(
            id=node.id,
            label=node.label,
            type=node.type.value,
            connections=node.connections,
            frequency=node.frequency,
        )


@strawberry.type
class Edge:
    id: str
    source: str
    target: str
    label: str
    type: str
    weight: float

    @classmethod
    def from_model(cls, edge: GraphEdge) -> "Edge":
        return cls(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            label=edge.label,
            type=edge.type,
            weight=edge.weight,
        )


@strawberry.type
class GraphStatistics:
    total_nodes: int
    total_edges: int
    node_types: JSON
    edge_types: JSON
    density: float
    connectivity: float

    @classmethod
    def from_model(cls, stats: GraphStats) -> "GraphStatistics":
        return cls(
            total_nodes=stats.total_nodes,
            total_edges=stats.total_edges,
            node_types=dict(stats.node_types),
            edge_types=dict(stats.edge_types),
            density=stats.density,
            connectivity=stats.connectivity,
        )


@strawberry.type
class KnowledgeGraph:
    id: str
    name: str
    nodes: list[Node]
    edges: list[Edge]
    stats: GraphStatistics
    created_at: str
    updated_at: str

    @classmethod
    def from_model(cls, graph: Graph) -> "KnowledgeGraph":
        return cls(
            id=graph.id,
            name=graph.name,
            nodes=[Node.from_model(n) for n in graph.nodes],
            edges=[Edge.from_model(e) for e in graph.edges],
            stats=GraphStatistics.from_model(graph.stats),
            created_at=graph.created_at.isoformat(),
            updated_at=graph.updated_at.isoformat(),
        )


@strawberry.type
class ContextEntry:
    type: str
    description: str
    relevance_score: float
    entity_id: str | None

    @classmethod
    def from_model(cls, item: ContextItem) -> "ContextEntry":
        return cls(
            type=item.type,
            description=item.description,
            relevance_score=item.relevance_score,
            entity_id=item.entity_id,
        )


@strawberry.type
class Performance:
    processing_time_ms: float
    context_retrieval_time_ms: float
    generation_time_ms: float
    baseline_generation_time_ms: float | None
    total_nodes_accessed: int
    total_edges_traversed: int


@strawberry.type
class Tokens:
    input: int
    output: int
    total: int


@strawberry.type
class Baseline:
    response_text: str
    generation_time_ms: float
    error: str | None


@strawberry.type
class GraphRAGResult:
    query_id: str
    query: str
    graph_id: str
    model: str
    response_text: str
    context: list[ContextEntry]
    performance: Performance
    tokens: Tokens | None
    baseline: Baseline | None
    truncated: bool
    timestamp: str

    @classmethod
    def from_model(cls, result: QueryResult) -> "GraphRAGResult":
        p = result.performance
        return cls(
            query_id=result.query_id,
            query=result.query,
            graph_id=result.graph_id,
            model=result.model,
            response_text=result.response_text,
            context=[ContextEntry.from_model(c) for c in result.context],
            performance=Performance(
                processing_time_ms=p.processing_time_ms,
                context_retrieval_time_ms=p.context_retrieval_time_ms,
                generation_time_ms=p.generation_time_ms,
                baseline_generation_time_ms=p.baseline_generation_time_ms,
                total_nodes_accessed=p.total_nodes_accessed,
                total_edges_traversed=p.total_edges_traversed,
            ),
            tokens=(
                Tokens(input=result.tokens.input, output=result.tokens.output, total=result.tokens.total)
                if result.tokens
                else None
            ),
            baseline=(
                Baseline(
                    response_text=result.baseline.response_text,
                    generation_time_ms=result.baseline.generation_time_ms,
                    error=result.baseline.error,
                )
                if result.baseline
                else None
            ),
            truncated=result.truncated,
            timestamp=result.timestamp.isoformat(),
        )


@strawberry.type
class Health:
    status: str
    version: str
    uptime_seconds: float
    services: JSON
    backends: JSON
    timestamp: str

    @classmethod
    def from_model(cls, health: HealthStatus) -> "Health":
        return cls(
            status=health.status,
            version=health.version,
            uptime_seconds=health.uptime_seconds,
            services=dict(health.services),
            backends=dict(health.backends),
            timestamp=health.timestamp.isoformat(),
        )


@strawberry.input
class GraphRAGQueryInput:
    query: str
    graph_id: str
    model: str | None = None
    compare_baseline: bool | None = None


# ----------------------------------------------------------------------
# Resolvers
# ----------------------------------------------------------------------


def _service(info: Info) -> QueryService:
    return info.context["service"]


@strawberry.type
class Query:
    @strawberry.field(name="graphRAGQuery")
    async def graph_rag_query(self, info: Info, input: GraphRAGQueryInput) -> GraphRAGResult:
        result = await _service(info).answer(
            input.query,
            input.graph_id,
            input.model,
            compare_baseline=input.compare_baseline,
        )
        return GraphRAGResult.from_model(result)

    @strawberry.field
    async def graph(self, info: Info, id: str) -> KnowledgeGraph | None:
        return KnowledgeGraph.from_model(await _service(info).get_graph(id))

    @strawberry.field
    async def graphs(self, info: Info) -> list[KnowledgeGraph]:
        return [KnowledgeGraph.from_model(g) for g in await _service(info).list_graphs()]

    @strawberry.field
    async def search_entities(
        self, info: Info, graph_id: str, query: str = "", limit: int = 10
    ) -> list[Node]:
        nodes = await _service(info).resolve_entities(query, graph_id, limit)
        return [Node.from_model(n) for n in nodes]

    @strawberry.field
    async def traverse(
        self, info: Info, graph_id: str, query: str = "", max_depth: int | None = None
    ) -> list[Node]:
        return [Node.from_model(n) async for n in _service(info).traverse(query, graph_id, max_depth)]

    @strawberry.field
    async def context_items(
        self, info: Info, graph_id: str, query: str, max_size: int | None = None
    ) -> list[ContextEntry]:
        items = await _service(info).context_items(query, graph_id, max_size)
        return [ContextEntry.from_model(i) for i in items]

    @strawberry.field
    async def graph_statistics(self, info: Info, graph_id: str) -> GraphStatistics | None:
        graph = await _service(info).get_graph(graph_id)
        return GraphStatistics.from_model(graph.stats)

    @strawberry.field
    async def health(self, info: Info) -> Health:
        return Health.from_model(await _service(info).health(info.context.get("services")))


def _should_mask(error: GraphQLError) -> bool:
    original = error.original_error
    return original is not None and (
        isinstance(original, TransportError) or not isinstance(original, GatewayError)
    )


class GatewaySchema(strawberry.Schema):
    """Logs only unexpected resolver errors; domain errors are client-facing."""

    def process_errors(self, errors: list[GraphQLError], execution_context: Any = None) -> None:
        for error in errors:
            if _should_mask(error):
                logger.error("GraphQL resolver failed", exc_info=error.original_error)


def create_schema() -> strawberry.Schema:
    return GatewaySchema(
        query=Query,
        extensions=[lambda: MaskErrors(should_mask_error=_should_mask)],
    )


def create_graphql_router(
    service: QueryService, services: dict[str, bool] | None = None
) -> GraphQLRouter:
    """GraphQLRouter whose resolvers read the QueryService from context."""

    async def get_context() -> dict[str, Any]:
        return {"service": service, "services": services}

    return GraphQLRouter(create_schema(), context_getter=get_context)


# ----------------------------------------------------------------------
# Metrics
# ----------------------------------------------------------------------


class GraphQLMetricsMiddleware:
    """ASGI middleware recording one InvocationRecord per GraphQL HTTP request.

    Payload size is the length of the response body as sent.
    """

    def __init__(self, app: Any, recorder: MetricsRecorder, path: str = GRAPHQL_PATH) -> None:
        self.app = app
        self.recorder = recorder
        self.path = path

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http" or scope["path"].rstrip("/") != self.path or scope["method"] != "POST":
            await self.app(scope, receive, send)
            return

        invocation = self.recorder.start("GraphQL", "execute")
        body = bytearray()
        status_code = 200

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body":
                chunk = message.get("body", b"")
                invocation.add_bytes(chunk)
                body.extend(chunk)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            invocation.fail()
            raise
        finally:
            if status_code >= 400 or _has_errors(bytes(body)):
                invocation.fail()
            invocation.finish()


def _has_errors(body: bytes) -> bool:
    try:
        return bool(json.loads(body).get("errors"))
    except (ValueError, AttributeError):
        return False
