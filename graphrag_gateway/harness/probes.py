"""Client-side probes that send one GraphRAG query through a single protocol.

Each probe reports the size of the reply bytes it received for the query,
framing included, and the answer text. Any protocol-level error reply raises
ProbeError.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import grpc
import httpx
import websockets

from graphrag_gateway.config.models import HarnessSettings
from graphrag_gateway.errors import ProbeError
from graphrag_gateway.harness.models import ProbeOutcome
from graphrag_gateway.transport import protos as pb
from graphrag_gateway.transport.codec import DATA_FLAG, TRAILER_FLAG, decode_frames, encode_frame, parse_trailer
from graphrag_gateway.transport.grpc_service import GraphRAGStub
from graphrag_gateway.transport.grpc_web import GRPC_WEB_CONTENT_TYPE
from graphrag_gateway.transport.sse import parse_sse

logger = logging.getLogger(__name__)

GRAPHQL_QUERY = """
query GraphRAG($input: GraphRAGQueryInput!) {
  graphRAGQuery(input: $input) {
    queryId
    query
    graphId
    model
    responseText
    truncated
    context { type description relevanceScore entityId }
    performance { processingTimeMs generationTimeMs }
  }
}
"""


@runtime_checkable
class ProtocolProbe(Protocol):
    protocol: str

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome: ...


def _query_body(query: str, graph_id: str, model: str | None) -> dict[str, Any]:
    body: dict[str, Any] = {"query": query, "graphId": graph_id}
    if model:
        body["model"] = model
    return body


class _HttpProbe:
    """Shared httpx plumbing; ``transport`` lets tests target an ASGI app."""

    protocol = ""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)


class RestProbe(_HttpProbe):
    protocol = "REST"

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome:
        async with self._client() as client:
            resp = await client.post("/api/graphrag/query", json=_query_body(query, graph_id, model))
        payload = resp.json()
        if resp.status_code != 200:
            raise ProbeError(self.protocol, f"HTTP {resp.status_code}: {payload.get('error')}")
        return ProbeOutcome(payload_size_bytes=len(resp.content), response_text=payload["responseText"])


class GraphQLProbe(_HttpProbe):
    protocol = "GraphQL"

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome:
        variables = {"input": _query_body(query, graph_id, model)}
        async with self._client() as client:
            resp = await client.post("/graphql", json={"query": GRAPHQL_QUERY, "variables": variables})
        payload = resp.json()
        if payload.get("errors"):
            raise ProbeError(self.protocol, payload["errors"][0]["message"])
        if resp.status_code != 200:
            raise ProbeError(self.protocol, f"HTTP {resp.status_code}")
        result = payload["data"]["graphRAGQuery"]
        return ProbeOutcome(payload_size_bytes=len(resp.content), response_text=result["responseText"])


class GrpcWebProbe(_HttpProbe):
    protocol = "gRPC-Web"

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome:
        request = pb.GraphQuery(query=query, graph_id=graph_id, model=model or "")
        async with self._client() as client:
            resp = await client.post(
                pb.method_path("QueryGraph"),
                content=encode_frame(request.SerializeToString()),
                headers={"Content-Type": GRPC_WEB_CONTENT_TYPE, "X-Grpc-Web": "1"},
            )
        if resp.status_code != 200:
            raise ProbeError(self.protocol, f"HTTP {resp.status_code}")

        reply = None
        trailers: dict[str, str] = {}
        for flag, payload in decode_frames(resp.content):
            if flag == DATA_FLAG:
                reply = pb.GraphRAGResponse.FromString(payload)
            elif flag == TRAILER_FLAG:
                trailers = parse_trailer(payload)
        if trailers.get("grpc-status", "0") != "0":
            raise ProbeError(
                self.protocol,
                f"grpc-status {trailers['grpc-status']}: {trailers.get('grpc-message', '')}",
            )
        if reply is None:
            raise ProbeError(self.protocol, "no response message before the trailer")
        return ProbeOutcome(payload_size_bytes=len(resp.content), response_text=reply.response)


class SSEProbe(_HttpProbe):
    protocol = "SSE"

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome:
        params = _query_body(query, graph_id, model)
        async with self._client() as client:
            resp = await client.get("/api/sse/graphrag/query", params=params)
        if resp.status_code != 200:
            raise ProbeError(self.protocol, f"HTTP {resp.status_code}")
        for event, data in parse_sse(resp.text):
            if event == "error":
                raise ProbeError(self.protocol, data.get("error", "stream error"))
            if event == "complete":
                return ProbeOutcome(
                    payload_size_bytes=len(resp.content),
                    response_text=data["result"]["responseText"],
                )
        raise ProbeError(self.protocol, "stream ended without a complete event")


class GrpcProbe:
    protocol = "gRPC"

    # compressed flag + 4-byte length prefix per message
    _FRAME_OVERHEAD = 5

    def __init__(self, target: str, timeout: float = 30.0) -> None:
        self.target = target
        self.timeout = timeout

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome:
        request = pb.GraphQuery(query=query, graph_id=graph_id, model=model or "")
        async with grpc.aio.insecure_channel(self.target) as channel:
            stub = GraphRAGStub(channel)
            try:
                reply = await stub.QueryGraph(request, timeout=self.timeout)
            except grpc.aio.AioRpcError as e:
                raise ProbeError(self.protocol, f"{e.code().name}: {e.details()}") from e
        return ProbeOutcome(
            payload_size_bytes=reply.ByteSize() + self._FRAME_OVERHEAD,
            response_text=reply.response,
        )


class WebSocketProbe:
    protocol = "WebSocket"

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._connect = connect

    async def run(self, query: str, graph_id: str, model: str | None = None) -> ProbeOutcome:
        request_id = uuid.uuid4().hex
        request = {"type": "query", "id": request_id, **_query_body(query, graph_id, model)}
        size = 0
        async with self._connect(self.url, open_timeout=self.timeout) as ws:
            await ws.send(json.dumps(request))
            async for raw in ws:
                message = json.loads(raw)
                if message.get("requestId") != request_id:
                    continue
                size += len(raw.encode("utf-8") if isinstance(raw, str) else raw)
                if message["type"] == "error":
                    raise ProbeError(self.protocol, message.get("error", "request failed"))
                if message["type"] == "query_result":
                    return ProbeOutcome(
                        payload_size_bytes=size,
                        response_text=message["result"]["responseText"],
                    )
        raise ProbeError(self.protocol, "connection closed before query_result")


def probes_from_settings(settings: HarnessSettings) -> list[ProtocolProbe]:
    """Probes for ``settings.protocols``, in the configured order."""
    timeout = settings.adapter_timeout
    factories: dict[str, Callable[[], ProtocolProbe]] = {
        "REST": lambda: RestProbe(settings.http_url, timeout),
        "GraphQL": lambda: GraphQLProbe(settings.http_url, timeout),
        "gRPC": lambda: GrpcProbe(settings.grpc_target, timeout),
        "gRPC-Web": lambda: GrpcWebProbe(settings.http_url, timeout),
        "WebSocket": lambda: WebSocketProbe(settings.ws_url, timeout),
        "SSE": lambda: SSEProbe(settings.http_url, timeout),
    }
    probes = [factories[name]() for name in settings.protocols]
    logger.debug("Comparison probes: %s", ", ".join(p.protocol for p in probes))
    return probes
