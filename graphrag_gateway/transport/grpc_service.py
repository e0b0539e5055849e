"""gRPC adapter: GraphRAGService on a grpc.aio server, plus a matching client stub."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

import grpc

from graphrag_gateway.errors import GatewayError, TransportError
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport import protos as pb
from graphrag_gateway.transport.codec import (
    context_to_proto,
    entities_to_proto,
    grpc_status_for,
    health_to_proto,
    node_to_proto,
    result_to_proto,
)
from graphrag_gateway.transport.metrics import Invocation, MetricsRecorder

logger = logging.getLogger(__name__)

# gRPC length-prefixed message header: compressed flag + 4-byte length
_MESSAGE_HEADER_BYTES = 5


def _account(invocation: Invocation, message) -> None:
    invocation.add_size(message.ByteSize() + _MESSAGE_HEADER_BYTES)


class GraphRAGServicer:
    """Implements every GraphRAGService rpc over a QueryService.

    Proto3 scalars cannot be absent, so zero values for ``max_depth``,
    ``max_context_size`` and ``max_results`` mean "use the default".
    """

    def __init__(
        self,
        service: QueryService,
        recorder: MetricsRecorder,
        services: dict[str, bool] | None = None,
    ) -> None:
        self.service = service
        self.recorder = recorder
        self.services = services

    async def _abort(self, context: grpc.aio.ServicerContext, operation: str, exc: Exception) -> None:
        if isinstance(exc, TransportError) or not isinstance(exc, GatewayError):
            logger.exception("gRPC %s failed", operation)
            details = "Internal server error"
        else:
            details = str(exc)
        await context.abort(grpc_status_for(exc), details)

    async def QueryGraph(self, request, context: grpc.aio.ServicerContext):
        with self.recorder.track("gRPC", "query") as invocation:
            try:
                result = await self.service.answer(
                    request.query,
                    request.graph_id,
                    request.model or None,
                    compare_baseline=True if request.compare_baseline else None,
                )
                reply = result_to_proto(result)
            except Exception as e:
                await self._abort(context, "QueryGraph", e)
            _account(invocation, reply)
            return reply

    async def TraverseGraph(self, request, context: grpc.aio.ServicerContext) -> AsyncIterator:
        with self.recorder.track("gRPC", "traverse") as invocation:
            try:
                nodes = self.service.traverse(
                    request.query, request.graph_id, request.max_depth or None
                )
                async with aclosing(nodes):
                    async for node in nodes:
                        if context.cancelled():
                            logger.info("TraverseGraph cancelled by client")
                            return
                        message = node_to_proto(node)
                        _account(invocation, message)
                        yield message
            except Exception as e:
                await self._abort(context, "TraverseGraph", e)

    async def GetContextStream(self, request, context: grpc.aio.ServicerContext) -> AsyncIterator:
        with self.recorder.track("gRPC", "context") as invocation:
            try:
                items = await self.service.context_items(
                    request.query, request.graph_id, request.max_context_size or None
                )
            except Exception as e:
                await self._abort(context, "GetContextStream", e)
            for item in items:
                if context.cancelled():
                    logger.info("GetContextStream cancelled by client")
                    return
                message = context_to_proto(item)
                _account(invocation, message)
                yield message

    async def ResolveEntities(self, request, context: grpc.aio.ServicerContext):
        with self.recorder.track("gRPC", "resolve_entities") as invocation:
            start = time.perf_counter()
            try:
                matches = await self.service.resolve_entities(
                    request.entity_name, request.graph_id, request.max_results or 10
                )
            except Exception as e:
                await self._abort(context, "ResolveEntities", e)
            reply = entities_to_proto(matches, request.graph_id, (time.perf_counter() - start) * 1000)
            _account(invocation, reply)
            return reply

    async def HealthCheck(self, request, context: grpc.aio.ServicerContext):
        with self.recorder.track("gRPC", "health") as invocation:
            try:
                reply = health_to_proto(await self.service.health(self.services))
            except Exception as e:
                await self._abort(context, "HealthCheck", e)
            _account(invocation, reply)
            return reply


def create_generic_handler(servicer: GraphRAGServicer) -> grpc.GenericRpcHandler:
    handlers = {}
    for rpc, (request_type, response_type, streaming) in pb.METHODS.items():
        request_cls = pb.MESSAGE_CLASSES[request_type]
        response_cls = pb.MESSAGE_CLASSES[response_type]
        factory = grpc.unary_stream_rpc_method_handler if streaming else grpc.unary_unary_rpc_method_handler
        handlers[rpc] = factory(
            getattr(servicer, rpc),
            request_deserializer=request_cls.FromString,
            response_serializer=response_cls.SerializeToString,
        )
    return grpc.method_handlers_generic_handler(pb.SERVICE_NAME, handlers)


def create_grpc_server(servicer: GraphRAGServicer, address: str) -> tuple[grpc.aio.Server, int]:
    """Build (not start) a grpc.aio server; returns the server and its bound port."""
    server = grpc.aio.server()
    server.add_generic_rpc_handlers((create_generic_handler(servicer),))
    port = server.add_insecure_port(address)
    return server, port


class GraphRAGStub:
    """Client stub for GraphRAGService on a grpc.aio channel."""

    def __init__(self, channel: grpc.aio.Channel) -> None:
        for rpc, (request_type, response_type, streaming) in pb.METHODS.items():
            request_cls = pb.MESSAGE_CLASSES[request_type]
            response_cls = pb.MESSAGE_CLASSES[response_type]
            factory = channel.unary_stream if streaming else channel.unary_unary
            setattr(
                self,
                rpc,
                factory(
                    pb.method_path(rpc),
                    request_serializer=request_cls.SerializeToString,
                    response_deserializer=response_cls.FromString,
                ),
            )
