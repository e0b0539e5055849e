"""WebSocket adapter: typed JSON messages multiplexed on one connection.

Every request may carry an ``id``; all replies to it echo that value as
``requestId`` so clients can correlate concurrent requests.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from graphrag_gateway.errors import GatewayError, InvalidRequestError, TransportError
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport.metrics import Invocation, MetricsRecorder
from graphrag_gateway.wire import utc_now

logger = logging.getLogger(__name__)

WS_PATH = "/ws"


def _field(data: dict[str, Any], name: str, required: bool = True) -> Any:
    value = data.get(name)
    if required and (value is None or value == ""):
        raise InvalidRequestError(f"'{name}' is required")
    return value


def _optional_int(data: dict[str, Any], name: str) -> int | None:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError(f"'{name}' must be an integer")
    return value


class WebSocketSession:
    """One client connection.

    Each request runs as its own task; sends are serialized by a lock so the
    frames of one stream stay in order. Closing the socket cancels every
    outstanding request task.
    """

    def __init__(
        self,
        websocket: WebSocket,
        service: QueryService,
        recorder: MetricsRecorder,
        services: dict[str, bool] | None = None,
    ) -> None:
        self.websocket = websocket
        self.service = service
        self.recorder = recorder
        self.services = services
        self.session_id = f"ws_{uuid.uuid4().hex[:12]}"
        self._send_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._handlers: dict[str, tuple[str, Callable[..., Awaitable[None]]]] = {
            "query": ("query", self._query),
            "stream_query": ("traverse", self._stream_query),
            "context_stream": ("context", self._context_stream),
            "health": ("health", self._health),
            "ping": ("ping", self._ping),
        }

    async def send(self, message: dict[str, Any], invocation: Invocation | None = None) -> None:
        try:
            text = json.dumps(message, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise TransportError("WebSocket", f"cannot serialize {message.get('type')} message: {e}") from e
        async with self._send_lock:
            await self.websocket.send_text(text)
        if invocation is not None:
            invocation.add_bytes(text)

    async def run(self) -> None:
        await self.websocket.accept()
        await self.send(
            {
                "type": "connection",
                "sessionId": self.session_id,
                "message": "Connected to GraphRAG WebSocket",
                "timestamp": utc_now().isoformat(),
            }
        )
        try:
            while True:
                try:
                    data = await self.websocket.receive_json()
                except (json.JSONDecodeError, UnicodeDecodeError):
                    await self.send({"type": "error", "error": "Invalid JSON message", "details": "InvalidRequestError"})
                    continue
                except KeyError:
                    # binary frame: receive_json only reads text frames
                    await self.send({"type": "error", "error": "Binary frames are not supported", "details": "InvalidRequestError"})
                    continue
                if not isinstance(data, dict):
                    await self.send({"type": "error", "error": "Message must be a JSON object", "details": "InvalidRequestError"})
                    continue
                self._spawn(data)
        except WebSocketDisconnect:
            logger.info("WebSocket session %s disconnected", self.session_id)
        finally:
            await self._cancel_all()

    def _spawn(self, data: dict[str, Any]) -> None:
        task = asyncio.create_task(self._dispatch(data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _cancel_all(self) -> None:
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug("Cancelled %d in-flight requests for %s", len(pending), self.session_id)

    async def _dispatch(self, data: dict[str, Any]) -> None:
        request_id = data.get("id")
        msg_type = data.get("type")
        if not isinstance(msg_type, str):
            await self._send_error(request_id, InvalidRequestError("'type' must be a string"), None)
            return
        operation, handler = self._handlers.get(msg_type, (None, None))
        if handler is None:
            await self._send_error(
                request_id, InvalidRequestError(f"Unknown message type: {msg_type!r}"), None
            )
            return

        invocation = self.recorder.start("WebSocket", operation)
        try:
            await handler(data, request_id, invocation)
        except asyncio.CancelledError:
            invocation.fail()
            raise
        except WebSocketDisconnect:
            invocation.fail()
        except Exception as e:
            invocation.fail()
            await self._send_error(request_id, e, invocation)
        finally:
            invocation.finish()

    async def _send_error(
        self, request_id: Any, exc: Exception, invocation: Invocation | None
    ) -> None:
        if isinstance(exc, TransportError) or not isinstance(exc, GatewayError):
            logger.exception("WebSocket request %s failed", request_id)
            message = {"type": "error", "error": "Internal server error", "details": "InternalError"}
        else:
            message = {"type": "error", "error": str(exc), "details": type(exc).__name__}
        message["requestId"] = request_id
        try:
            await self.send(message, invocation)
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("Could not deliver error for request %s, socket closed", request_id)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _query(self, data: dict[str, Any], request_id: Any, invocation: Invocation) -> None:
        query = _field(data, "query")
        graph_id = _field(data, "graphId")
        await self.send({"type": "processing", "requestId": request_id, "query": query}, invocation)
        result = await self.service.answer(
            query,
            graph_id,
            data.get("model"),
            compare_baseline=data.get("compareBaseline"),
        )
        await self.send({"type": "query_result", "requestId": request_id, "result": result.to_wire()}, invocation)

    async def _stream_query(self, data: dict[str, Any], request_id: Any, invocation: Invocation) -> None:
        query = _field(data, "query", required=False) or ""
        graph_id = _field(data, "graphId")
        max_depth = _optional_int(data, "maxDepth")
        count = 0
        async for node in self.service.traverse(query, graph_id, max_depth):
            if count == 0:
                await self.send(
                    {"type": "stream_start", "requestId": request_id, "query": query, "graphId": graph_id},
                    invocation,
                )
            await self.send(
                {"type": "stream_node", "requestId": request_id, "index": count, "node": node.to_wire()},
                invocation,
            )
            count += 1
        if count == 0:
            await self.send(
                {"type": "stream_start", "requestId": request_id, "query": query, "graphId": graph_id},
                invocation,
            )
        await self.send(
            {"type": "stream_complete", "requestId": request_id, "summary": {"totalNodes": count}},
            invocation,
        )

    async def _context_stream(self, data: dict[str, Any], request_id: Any, invocation: Invocation) -> None:
        query = _field(data, "query")
        graph_id = _field(data, "graphId")
        items = await self.service.context_items(query, graph_id, _optional_int(data, "maxSize"))
        await self.send(
            {"type": "context_stream_start", "requestId": request_id, "total": len(items)}, invocation
        )
        for index, item in enumerate(items):
            await self.send(
                {"type": "context_chunk", "requestId": request_id, "index": index, "chunk": item.to_wire()},
                invocation,
            )
        await self.send(
            {"type": "context_stream_complete", "requestId": request_id, "totalChunks": len(items)},
            invocation,
        )

    async def _health(self, data: dict[str, Any], request_id: Any, invocation: Invocation) -> None:
        status = await self.service.health(self.services)
        await self.send({"type": "health", "requestId": request_id, "health": status.to_wire()}, invocation)

    async def _ping(self, data: dict[str, Any], request_id: Any, invocation: Invocation) -> None:
        await self.send(
            {"type": "pong", "requestId": request_id, "timestamp": utc_now().isoformat()}, invocation
        )


def create_websocket_routes(
    service: QueryService,
    recorder: MetricsRecorder,
    services: dict[str, bool] | None = None,
) -> APIRouter:
    router = APIRouter(tags=["WebSocket"])

    @router.websocket(WS_PATH)
    async def graphrag_socket(websocket: WebSocket) -> None:
        await WebSocketSession(websocket, service, recorder, services).run()

    return router
