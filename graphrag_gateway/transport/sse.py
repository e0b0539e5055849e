"""Server-Sent Events adapter: one-way push of traversal, context and query results."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from graphrag_gateway.errors import GatewayError, TransportError
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport.metrics import Invocation, MetricsRecorder

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass
class SSEMessage:
    """Server-Sent Event message."""

    event: str
    data: dict[str, Any]
    id: str | None = None
    retry: int | None = None

    def serialize(self) -> str:
        lines = []
        if self.id:
            lines.append(f"id: {self.id}")
        if self.event:
            lines.append(f"event: {self.event}")
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        try:
            data_str = json.dumps(self.data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise TransportError("SSE", f"cannot serialize {self.event} event: {e}") from e
        for line in data_str.split("\n"):
            lines.append(f"data: {line}")
        lines.append("")
        return "\n".join(lines) + "\n"


def parse_sse(text: str) -> list[tuple[str, dict[str, Any]]]:
    """Split an event-stream body into ``(event, data)`` pairs."""
    events: list[tuple[str, dict[str, Any]]] = []
    for block in text.split("\n\n"):
        event, data_lines = "message", []
        for line in block.splitlines():
            if line.startswith("event:"):
                event = line[len("event:"):].strip()
            elif line.startswith("data:"):
                data_lines.append(line[len("data:"):].strip())
        if data_lines:
            events.append((event, json.loads("\n".join(data_lines))))
    return events


class _EventStream:
    """Numbers events and accounts their bytes against one invocation."""

    def __init__(self, invocation: Invocation) -> None:
        self.invocation = invocation
        self._seq = 0

    def emit(self, event: str, data: dict[str, Any]) -> str:
        self._seq += 1
        chunk = SSEMessage(event=event, data=data, id=str(self._seq)).serialize()
        self.invocation.add_bytes(chunk)
        return chunk


def create_sse_routes(service: QueryService, recorder: MetricsRecorder) -> APIRouter:
    router = APIRouter(prefix="/api/sse/graphrag", tags=["SSE"])

    async def run(
        operation: str,
        request: Request,
        invocation: Invocation,
        produce: AsyncIterator[tuple[str, dict[str, Any]]],
    ) -> AsyncIterator[str]:
        stream = _EventStream(invocation)
        try:
            yield stream.emit("connected", {"type": "connected", "operation": operation})
            try:
                async with aclosing(produce):
                    async for event, data in produce:
                        if await request.is_disconnected():
                            logger.info("SSE %s client disconnected", operation)
                            invocation.fail()
                            return
                        yield stream.emit(event, data)
            except Exception as e:
                invocation.fail()
                if isinstance(e, TransportError) or not isinstance(e, GatewayError):
                    logger.exception("SSE %s failed", operation)
                    payload = {"type": "error", "error": "Internal server error"}
                else:
                    payload = {"type": "error", "error": str(e), "details": type(e).__name__}
                yield stream.emit("error", payload)
        finally:
            invocation.finish()

    def respond(operation: str, request: Request, produce: AsyncIterator) -> StreamingResponse:
        invocation = recorder.start("SSE", operation)
        return StreamingResponse(
            run(operation, request, invocation, produce),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @router.get("/traverse")
    async def stream_traverse(
        request: Request,
        graph_id: str = Query(..., alias="graphId"),
        query: str = Query(""),
        max_depth: int | None = Query(None, alias="maxDepth"),
    ) -> StreamingResponse:
        async def produce():
            count = 0
            async for node in service.traverse(query, graph_id, max_depth):
                count += 1
                yield "graph_node", {"type": "graph_node", "index": count - 1, "node": node.to_wire()}
            yield "complete", {"type": "complete", "graphId": graph_id, "totalNodes": count}

        return respond("traverse", request, produce())

    @router.get("/context")
    async def stream_context(
        request: Request,
        graph_id: str = Query(..., alias="graphId"),
        query: str = Query(""),
        max_size: int | None = Query(None, alias="maxSize"),
    ) -> StreamingResponse:
        async def produce():
            items = await service.context_items(query, graph_id, max_size)
            for index, item in enumerate(items):
                yield "context_chunk", {"type": "context_chunk", "index": index, "chunk": item.to_wire()}
            yield "complete", {"type": "complete", "graphId": graph_id, "totalChunks": len(items)}

        return respond("context", request, produce())

    @router.get("/query")
    async def stream_query(
        request: Request,
        graph_id: str = Query(..., alias="graphId"),
        query: str = Query(""),
        model: str | None = Query(None),
    ) -> StreamingResponse:
        async def produce():
            yield "processing", {"type": "processing", "query": query, "graphId": graph_id}
            result = await service.answer(query, graph_id, model)
            yield "complete", {"type": "complete", "result": result.to_wire()}

        return respond("query", request, produce())

    return router
