"""Protobuf conversion, gRPC status mapping and gRPC-Web framing."""

from __future__ import annotations

import struct
from urllib.parse import quote, unquote

import grpc

from graphrag_gateway.errors import (
    GenerationError,
    InvalidGraphError,
    InvalidRequestError,
    NotFoundError,
    TransportError,
)
from graphrag_gateway.graph.models import GraphNode
from graphrag_gateway.retrieval.context import ContextItem
from graphrag_gateway.service.models import HealthStatus, QueryResult
from graphrag_gateway.transport import protos as pb

# ----------------------------------------------------------------------
# Domain -> protobuf
# ----------------------------------------------------------------------


def node_to_proto(node: GraphNode):
    return pb.GraphNode(
        id=node.id,
        label=node.label,
        type=node.type.value,
        connections=node.connections,
        frequency=node.frequency,
    )


def context_to_proto(item: ContextItem):
    return pb.ContextChunk(
        entity_id=item.entity_id or "",
        description=item.description,
        relevance_score=item.relevance_score,
        entity_type=item.type,
    )


def result_to_proto(result: QueryResult):
    perf = result.performance
    msg = pb.GraphRAGResponse(
        query_id=result.query_id,
        query=result.query,
        graph_id=result.graph_id,
        model=result.model,
        response=result.response_text,
        context=[context_to_proto(c) for c in result.context],
        performance=pb.PerformanceMetrics(
            processing_time_ms=perf.processing_time_ms,
            context_retrieval_time_ms=perf.context_retrieval_time_ms,
            generation_time_ms=perf.generation_time_ms,
            baseline_generation_time_ms=perf.baseline_generation_time_ms or 0.0,
            total_nodes_accessed=perf.total_nodes_accessed,
            total_edges_traversed=perf.total_edges_traversed,
        ),
        timestamp=result.timestamp.isoformat(),
        truncated=result.truncated,
    )
    if result.tokens is not None:
        msg.tokens.CopyFrom(
            pb.TokenUsage(input=result.tokens.input, output=result.tokens.output, total=result.tokens.total)
        )
    if result.baseline is not None:
        msg.baseline.CopyFrom(
            pb.BaselineAnswer(
                response_text=result.baseline.response_text,
                generation_time_ms=result.baseline.generation_time_ms,
                error=result.baseline.error or "",
            )
        )
    return msg


def entities_to_proto(nodes: list[GraphNode], graph_id: str, search_time_ms: float):
    return pb.EntityResolution(
        matches=[
            pb.EntityMatch(
                entity_id=n.id,
                entity_name=n.label,
                entity_type=n.type.value,
                connections=n.connections,
                frequency=n.frequency,
                rank=rank,
            )
            for rank, n in enumerate(nodes, start=1)
        ],
        total_found=len(nodes),
        search_time_ms=search_time_ms,
        graph_id=graph_id,
    )


def health_to_proto(health: HealthStatus):
    return pb.HealthCheckResponse(
        status=health.status,
        version=health.version,
        timestamp=health.timestamp.isoformat(),
        services=dict(health.services),
        uptime_seconds=health.uptime_seconds,
        backends=dict(health.backends),
    )


# ----------------------------------------------------------------------
# Error mapping
# ----------------------------------------------------------------------


def grpc_status_for(exc: BaseException) -> grpc.StatusCode:
    if isinstance(exc, NotFoundError):
        return grpc.StatusCode.NOT_FOUND
    if isinstance(exc, (InvalidRequestError, InvalidGraphError)):
        return grpc.StatusCode.INVALID_ARGUMENT
    if isinstance(exc, GenerationError):
        return grpc.StatusCode.UNAVAILABLE
    return grpc.StatusCode.INTERNAL


def http_status_for(exc: BaseException) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (InvalidRequestError, InvalidGraphError)):
        return 400
    if isinstance(exc, GenerationError):
        return 502
    return 500


# ----------------------------------------------------------------------
# gRPC-Web framing
# ----------------------------------------------------------------------

DATA_FLAG = 0x00
TRAILER_FLAG = 0x80
_HEADER = struct.Struct(">BI")


def encode_frame(payload: bytes, flag: int = DATA_FLAG) -> bytes:
    """One length-prefixed gRPC-Web frame: flag byte, 4-byte length, payload."""
    return _HEADER.pack(flag, len(payload)) + payload


def encode_trailer(status: grpc.StatusCode, message: str = "") -> bytes:
    code = status.value[0]
    lines = [f"grpc-status: {code}"]
    if message:
        lines.append(f"grpc-message: {quote(message, safe=' ')}")
    return encode_frame(("\r\n".join(lines) + "\r\n").encode("ascii"), TRAILER_FLAG)


def decode_frames(body: bytes) -> list[tuple[int, bytes]]:
    """Split a gRPC-Web body into ``(flag, payload)`` frames.

    Raises TransportError on a truncated frame.
    """
    frames: list[tuple[int, bytes]] = []
    offset = 0
    while offset < len(body):
        if len(body) - offset < _HEADER.size:
            raise TransportError("gRPC-Web", f"truncated frame header at byte {offset}")
        flag, length = _HEADER.unpack_from(body, offset)
        offset += _HEADER.size
        if len(body) - offset < length:
            raise TransportError("gRPC-Web", f"frame at byte {offset} declares {length} bytes")
        frames.append((flag, body[offset : offset + length]))
        offset += length
    return frames


def parse_trailer(payload: bytes) -> dict[str, str]:
    trailers: dict[str, str] = {}
    for line in payload.decode("ascii").split("\r\n"):
        if ":" in line:
            key, value = line.split(":", 1)
            trailers[key.strip().lower()] = unquote(value.strip())
    return trailers
