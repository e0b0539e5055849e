"""REST adapter: JSON request/response endpoints on a FastAPI router."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Body, Query
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from graphrag_gateway.errors import GatewayError, InvalidRequestError, TransportError
from graphrag_gateway.graph.models import Graph
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport.codec import http_status_for
from graphrag_gateway.transport.metrics import Invocation, MetricsRecorder

logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    """Body of ``POST /api/graphrag/query``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str = Field(min_length=1)
    graph_id: str = Field(min_length=1)
    model: str | None = None
    compare_baseline: bool | None = None


def graph_summary(graph: Graph) -> dict[str, Any]:
    return {
        "id": graph.id,
        "name": graph.name,
        "stats": graph.stats.to_wire(),
        "createdAt": graph.created_at.isoformat(),
        "updatedAt": graph.updated_at.isoformat(),
    }


def _json_response(invocation: Invocation, payload: Any, status_code: int = 200) -> Response:
    try:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise TransportError("REST", f"cannot serialize response: {e}") from e
    invocation.add_bytes(body)
    return Response(content=body, status_code=status_code, media_type="application/json")


def _error_response(invocation: Invocation, exc: Exception) -> Response:
    invocation.fail()
    if isinstance(exc, TransportError) or not isinstance(exc, GatewayError):
        logger.exception("REST %s failed", invocation.operation)
        return _json_response(invocation, {"error": "Internal server error"}, 500)
    return _json_response(
        invocation, {"error": str(exc), "type": type(exc).__name__}, http_status_for(exc)
    )


def create_rest_routes(
    service: QueryService,
    recorder: MetricsRecorder,
    services: dict[str, bool] | None = None,
) -> APIRouter:
    """Build the REST router over ``service``.

    ``services`` is the per-service state reported by ``/health``.
    """
    router = APIRouter(tags=["REST"])

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    @router.post("/api/graphrag/query")
    async def query_graph(body: dict[str, Any] = Body(...)) -> Response:
        invocation = recorder.start("REST", "query")
        try:
            try:
                request = QueryRequest.model_validate(body)
            except ValidationError as e:
                raise InvalidRequestError(f"Invalid query request: {e.errors()[0]['msg']}") from e
            result = await service.answer(
                request.query,
                request.graph_id,
                request.model,
                compare_baseline=request.compare_baseline,
            )
            return _json_response(invocation, result.to_wire())
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    # ------------------------------------------------------------------
    # Graphs
    # ------------------------------------------------------------------

    @router.get("/api/graphs")
    async def list_graphs() -> Response:
        invocation = recorder.start("REST", "list_graphs")
        try:
            graphs = await service.list_graphs()
            return _json_response(invocation, {"graphs": [graph_summary(g) for g in graphs]})
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    @router.get("/api/graphs/{graph_id}")
    async def get_graph(graph_id: str) -> Response:
        invocation = recorder.start("REST", "get_graph")
        try:
            graph = await service.get_graph(graph_id)
            return _json_response(invocation, graph.to_wire())
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    @router.get("/api/graphs/{graph_id}/entities")
    async def search_entities(
        graph_id: str,
        q: str = Query("", description="Entity name or type to search for"),
        limit: int = Query(10),
    ) -> Response:
        invocation = recorder.start("REST", "resolve_entities")
        try:
            start = time.perf_counter()
            matches = await service.resolve_entities(q, graph_id, limit)
            return _json_response(
                invocation,
                {
                    "graphId": graph_id,
                    "matches": [n.to_wire() for n in matches],
                    "totalFound": len(matches),
                    "searchTimeMs": (time.perf_counter() - start) * 1000,
                },
            )
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    @router.get("/api/graphs/{graph_id}/traverse")
    async def traverse(
        graph_id: str,
        q: str = Query(""),
        max_depth: int | None = Query(None, alias="maxDepth"),
    ) -> Response:
        invocation = recorder.start("REST", "traverse")
        try:
            nodes = [n.to_wire() async for n in service.traverse(q, graph_id, max_depth)]
            return _json_response(
                invocation,
                {"graphId": graph_id, "query": q, "nodes": nodes, "count": len(nodes)},
            )
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    @router.get("/api/graphs/{graph_id}/context")
    async def context(
        graph_id: str,
        q: str = Query(""),
        max_size: int | None = Query(None, alias="maxSize"),
    ) -> Response:
        invocation = recorder.start("REST", "context")
        try:
            items = await service.context_items(q, graph_id, max_size)
            return _json_response(
                invocation,
                {"graphId": graph_id, "query": q, "context": [i.to_wire() for i in items]},
            )
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    # ------------------------------------------------------------------
    # Ops
    # ------------------------------------------------------------------

    @router.get("/health")
    async def health() -> Response:
        invocation = recorder.start("REST", "health")
        try:
            status = await service.health(services)
            return _json_response(invocation, status.to_wire())
        except Exception as e:
            return _error_response(invocation, e)
        finally:
            invocation.finish()

    @router.get("/metrics")
    async def metrics(protocol: str | None = Query(None)) -> dict[str, Any]:
        return {
            "summary": recorder.summary(),
            "records": [r.to_wire() for r in recorder.records(protocol)],
        }

    return router
