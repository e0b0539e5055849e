"""Tests for the native gRPC adapter, served in-process on an ephemeral port."""

import asyncio
from unittest.mock import MagicMock

import grpc
import pytest
from helpers import StubBackend, make_router, running_stub

from graphrag_gateway.errors import GenerationError
from graphrag_gateway.graph import SAMPLE_GRAPH_ID, GraphNode
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport import protos as pb


class TestUnaryCalls:
    @pytest.mark.asyncio
    async def test_query_graph(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            reply = await stub.QueryGraph(pb.GraphQuery(query="AI healthcare", graph_id="g1"))
        assert reply.graph_id == "g1"
        assert reply.response.startswith("Echo answer")
        assert reply.context[0].entity_id == "n1"
        assert reply.performance.total_nodes_accessed == 2

        [record] = recorder.records("gRPC")
        assert record.operation == "query"
        assert record.payload_size_bytes == reply.ByteSize() + 5

    @pytest.mark.asyncio
    async def test_model_is_passed_through(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            reply = await stub.QueryGraph(pb.GraphQuery(query="AI", graph_id="g1", model="echo-9"))
        assert reply.model == "echo-9"

    @pytest.mark.asyncio
    async def test_unknown_graph_is_not_found(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            with pytest.raises(grpc.aio.AioRpcError) as exc_info:
                await stub.QueryGraph(pb.GraphQuery(query="AI", graph_id="nope"))
        assert exc_info.value.code() == grpc.StatusCode.NOT_FOUND
        assert exc_info.value.details() == "Graph 'nope' not found"
        assert recorder.records("gRPC")[0].status == "error"

    @pytest.mark.asyncio
    async def test_generation_failure_is_unavailable(self, store, recorder):
        service = QueryService(store, make_router(echo=StubBackend(error=GenerationError("stub", "down"))))
        async with running_stub(service, recorder) as stub:
            with pytest.raises(grpc.aio.AioRpcError) as exc_info:
                await stub.QueryGraph(pb.GraphQuery(query="AI", graph_id="g1"))
        assert exc_info.value.code() == grpc.StatusCode.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_internal(self, store, recorder):
        service = QueryService(store, make_router(echo=StubBackend(error=KeyError("secret"))))
        async with running_stub(service, recorder) as stub:
            with pytest.raises(grpc.aio.AioRpcError) as exc_info:
                await stub.QueryGraph(pb.GraphQuery(query="AI", graph_id="g1"))
        assert exc_info.value.code() == grpc.StatusCode.INTERNAL
        assert exc_info.value.details() == "Internal server error"

    @pytest.mark.asyncio
    async def test_resolve_entities(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            reply = await stub.ResolveEntities(
                pb.EntityQuery(entity_name="stanford", graph_id=SAMPLE_GRAPH_ID, max_results=1)
            )
        assert [m.entity_name for m in reply.matches] == ["Stanford Medical Center"]
        assert reply.graph_id == SAMPLE_GRAPH_ID

    @pytest.mark.asyncio
    async def test_health(self, service, recorder):
        async with running_stub(service, recorder, {"grpc": True}) as stub:
            reply = await stub.HealthCheck(pb.HealthCheckRequest())
        assert reply.status == "healthy"
        assert dict(reply.services) == {"graphrag": "SERVING", "graph_store": "SERVING", "grpc": "SERVING"}


class TestStreamingCalls:
    @pytest.mark.asyncio
    async def test_traverse(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            call = stub.TraverseGraph(
                pb.GraphQuery(query="Emily Rodriguez", graph_id=SAMPLE_GRAPH_ID, max_depth=1)
            )
            nodes = [node.id async for node in call]
        assert nodes == ["node_0", "node_2"]
        assert recorder.records("gRPC")[0].operation == "traverse"

    @pytest.mark.asyncio
    async def test_traverse_unknown_graph(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            with pytest.raises(grpc.aio.AioRpcError) as exc_info:
                async for _ in stub.TraverseGraph(pb.GraphQuery(query="x", graph_id="nope")):
                    pass
        assert exc_info.value.code() == grpc.StatusCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_context_stream(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            chunks = [
                c async for c in stub.GetContextStream(
                    pb.ContextRequest(query="AI healthcare", graph_id="g1", max_context_size=1)
                )
            ]
        assert chunks[0].entity_id == "n1"
        assert chunks[0].relevance_score == 1.0
        assert chunks[1].entity_type == "relationship"
        assert chunks[1].description == "Stanford Medical Center → AI (applied_in)"

    @pytest.mark.asyncio
    async def test_context_stream_requires_query(self, service, recorder):
        async with running_stub(service, recorder) as stub:
            with pytest.raises(grpc.aio.AioRpcError) as exc_info:
                async for _ in stub.GetContextStream(pb.ContextRequest(graph_id="g1")):
                    pass
        assert exc_info.value.code() == grpc.StatusCode.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_cancelled_traverse_stops_the_stream(self, recorder):
        closed = asyncio.Event()

        async def slow_traverse(query, graph_id, max_depth=None):
            try:
                yield GraphNode(id="a", label="Alpha", type="concept")
                await asyncio.sleep(30)
                yield GraphNode(id="b", label="Beta", type="concept")
            finally:
                closed.set()

        service = MagicMock()
        service.traverse = slow_traverse
        async with running_stub(service, recorder) as stub:
            call = stub.TraverseGraph(pb.GraphQuery(query="alpha", graph_id="g1"))
            first = await call.read()
            call.cancel()
            await asyncio.wait_for(closed.wait(), 2)

        assert first.id == "a"
        assert call.cancelled()
        [record] = recorder.records("gRPC")
        assert record.operation == "traverse"
        assert record.status == "error"
