"""gRPC-Web adapter: GraphRAGService over HTTP/1.1 with in-body trailers.

Requests and replies use ``application/grpc-web+proto`` framing: each message
is a length-prefixed data frame and the call ends with one trailer frame that
carries ``grpc-status`` and ``grpc-message``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

import grpc
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from google.protobuf.message import DecodeError

from graphrag_gateway.errors import GatewayError, InvalidRequestError, TransportError
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport import protos as pb
from graphrag_gateway.transport.codec import (
    DATA_FLAG,
    context_to_proto,
    decode_frames,
    encode_frame,
    encode_trailer,
    entities_to_proto,
    grpc_status_for,
    health_to_proto,
    node_to_proto,
    result_to_proto,
)
from graphrag_gateway.transport.metrics import Invocation, MetricsRecorder

logger = logging.getLogger(__name__)

GRPC_WEB_CONTENT_TYPE = "application/grpc-web+proto"

_OPERATIONS = {
    "QueryGraph": "query",
    "TraverseGraph": "traverse",
    "GetContextStream": "context",
    "ResolveEntities": "resolve_entities",
    "HealthCheck": "health",
}


def decode_request(method: str, body: bytes):
    """Parse the single request message of a gRPC-Web call."""
    request_cls = pb.MESSAGE_CLASSES[pb.METHODS[method][0]]
    try:
        frames = decode_frames(body)
    except TransportError as e:
        raise InvalidRequestError(f"Malformed gRPC-Web request: {e}") from e
    data = [payload for flag, payload in frames if flag == DATA_FLAG]
    if len(data) > 1:
        raise InvalidRequestError(f"{method} expects one request message, got {len(data)}")
    try:
        return request_cls.FromString(data[0] if data else b"")
    except DecodeError as e:
        raise InvalidRequestError(f"Cannot decode {request_cls.__name__}: {e}") from e


def _status_detail(method: str, exc: Exception) -> tuple[grpc.StatusCode, str]:
    if isinstance(exc, TransportError) or not isinstance(exc, GatewayError):
        logger.exception("gRPC-Web %s failed", method)
        return grpc.StatusCode.INTERNAL, "Internal server error"
    return grpc_status_for(exc), str(exc)


def create_grpc_web_routes(
    service: QueryService,
    recorder: MetricsRecorder,
    services: dict[str, bool] | None = None,
) -> APIRouter:
    router = APIRouter(tags=["gRPC-Web"])

    async def dispatch(method: str, request) -> AsyncIterator:
        if method == "QueryGraph":
            result = await service.answer(
                request.query,
                request.graph_id,
                request.model or None,
                compare_baseline=True if request.compare_baseline else None,
            )
            yield result_to_proto(result)
        elif method == "TraverseGraph":
            async for node in service.traverse(request.query, request.graph_id, request.max_depth or None):
                yield node_to_proto(node)
        elif method == "GetContextStream":
            items = await service.context_items(
                request.query, request.graph_id, request.max_context_size or None
            )
            for item in items:
                yield context_to_proto(item)
        elif method == "ResolveEntities":
            start = time.perf_counter()
            matches = await service.resolve_entities(
                request.entity_name, request.graph_id, request.max_results or 10
            )
            yield entities_to_proto(matches, request.graph_id, (time.perf_counter() - start) * 1000)
        elif method == "HealthCheck":
            yield health_to_proto(await service.health(services))

    async def frames(
        method: str,
        body: bytes,
        invocation: Invocation,
        http_request: Request,
    ) -> AsyncIterator[bytes]:
        status, detail = grpc.StatusCode.OK, ""
        try:
            try:
                messages = dispatch(method, decode_request(method, body))
                async with aclosing(messages):
                    async for message in messages:
                        if await http_request.is_disconnected():
                            logger.info("gRPC-Web %s client disconnected", method)
                            invocation.fail()
                            return
                        frame = encode_frame(message.SerializeToString())
                        invocation.add_bytes(frame)
                        yield frame
            except Exception as e:
                status, detail = _status_detail(method, e)
                invocation.fail()
            trailer = encode_trailer(status, detail)
            invocation.add_bytes(trailer)
            yield trailer
        finally:
            invocation.finish()

    @router.post(f"/{pb.SERVICE_NAME}/{{method}}")
    async def grpc_web_call(method: str, request: Request) -> StreamingResponse:
        if method not in pb.METHODS:
            trailer = encode_trailer(grpc.StatusCode.UNIMPLEMENTED, f"Unknown method {method}")
            return StreamingResponse(iter([trailer]), media_type=GRPC_WEB_CONTENT_TYPE)
        invocation = recorder.start("gRPC-Web", _OPERATIONS[method])
        body = await request.body()
        return StreamingResponse(
            frames(method, body, invocation, request),
            media_type=GRPC_WEB_CONTENT_TYPE,
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return router
