"""Process wiring: the HTTP app (REST, GraphQL, gRPC-Web, WebSocket, SSE) and the gRPC server."""

from __future__ import annotations

import asyncio
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from graphrag_gateway import __version__
from graphrag_gateway.config.models import GatewayConfig, GraphSettings
from graphrag_gateway.graph.base import GraphStore
from graphrag_gateway.graph.cache import GraphCache
from graphrag_gateway.graph.json_store import JsonFileGraphStore
from graphrag_gateway.graph.memory import InMemoryGraphStore
from graphrag_gateway.graph.sample import sample_graph
from graphrag_gateway.llm.router import BackendRouter
from graphrag_gateway.service.query import QueryService
from graphrag_gateway.transport.graphql import GRAPHQL_PATH, GraphQLMetricsMiddleware, create_graphql_router
from graphrag_gateway.transport.grpc_service import GraphRAGServicer, create_grpc_server
from graphrag_gateway.transport.grpc_web import create_grpc_web_routes
from graphrag_gateway.transport.metrics import MetricsRecorder
from graphrag_gateway.transport.rest import create_rest_routes
from graphrag_gateway.transport.sse import create_sse_routes
from graphrag_gateway.transport.websocket import create_websocket_routes

logger = logging.getLogger(__name__)

# Adapters served by each process, reported under /health "services"
HTTP_SERVICES = {"rest": True, "graphql": True, "grpc_web": True, "websocket": True, "sse": True}
GRPC_SERVICES = {"grpc": True}


def build_store(settings: GraphSettings) -> GraphStore:
    if settings.backend == "json":
        cache = GraphCache(maxsize=settings.cache_maxsize, ttl=settings.cache_ttl)
        logger.info("Serving graphs from %s", settings.data_dir)
        return JsonFileGraphStore(settings.data_dir, cache, settings.traverse_max_nodes)
    graphs = [sample_graph()] if settings.load_sample else []
    return InMemoryGraphStore(graphs, traverse_max_nodes=settings.traverse_max_nodes)


def build_service(config: GatewayConfig) -> QueryService:
    return QueryService(build_store(config.graph), BackendRouter(config.llm), config.query)


def create_app(
    config: GatewayConfig | None = None,
    service: QueryService | None = None,
    recorder: MetricsRecorder | None = None,
) -> FastAPI:
    """The HTTP process: every adapter except native gRPC on one FastAPI app."""
    config = config or GatewayConfig()
    service = service or build_service(config)
    recorder = recorder or MetricsRecorder()

    app = FastAPI(title="GraphRAG Gateway", version=__version__)
    app.state.service = service
    app.state.recorder = recorder

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials="*" not in config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GraphQLMetricsMiddleware, recorder=recorder, path=GRAPHQL_PATH)

    app.include_router(create_rest_routes(service, recorder, HTTP_SERVICES))
    app.include_router(create_sse_routes(service, recorder))
    app.include_router(create_grpc_web_routes(service, recorder, HTTP_SERVICES))
    app.include_router(create_websocket_routes(service, recorder, HTTP_SERVICES))
    app.include_router(create_graphql_router(service, HTTP_SERVICES), prefix=GRAPHQL_PATH)
    return app


def create_grpc_health_app(service: QueryService) -> FastAPI:
    """Plain HTTP health endpoint exposed next to the gRPC server."""
    app = FastAPI(title="GraphRAG Gateway gRPC health", version=__version__)

    @app.get("/health")
    async def health() -> JSONResponse:
        status = await service.health(GRPC_SERVICES)
        return JSONResponse(status.to_wire())

    return app


async def serve_http(config: GatewayConfig) -> None:
    app = create_app(config)
    server = uvicorn.Server(
        uvicorn.Config(app, host=config.server.host, port=config.server.http_port, log_config=None)
    )
    logger.info("HTTP gateway listening on %s:%d", config.server.host, config.server.http_port)
    await server.serve()


async def serve_grpc(config: GatewayConfig) -> None:
    """Run the grpc.aio server and its HTTP health endpoint until either stops."""
    service = build_service(config)
    servicer = GraphRAGServicer(service, MetricsRecorder(), GRPC_SERVICES)
    server, port = create_grpc_server(servicer, f"{config.server.host}:{config.server.grpc_port}")
    health_server = uvicorn.Server(
        uvicorn.Config(
            create_grpc_health_app(service),
            host=config.server.host,
            port=config.server.grpc_health_port,
            log_config=None,
        )
    )

    await server.start()
    logger.info("gRPC gateway listening on %s:%d", config.server.host, port)
    try:
        await asyncio.gather(server.wait_for_termination(), health_server.serve())
    finally:
        health_server.should_exit = True
        await server.stop(grace=5)
