"""Tests for process wiring and logging setup."""

import json
import logging
import sys

import pytest
from fastapi.testclient import TestClient
from rich.logging import RichHandler

from graphrag_gateway.app import GRPC_SERVICES, build_service, build_store, create_app, create_grpc_health_app
from graphrag_gateway.config.models import GatewayConfig, GraphSettings
from graphrag_gateway.graph import SAMPLE_GRAPH_ID, InMemoryGraphStore, JsonFileGraphStore
from graphrag_gateway.logging_setup import JsonFormatter, configure_logging


class TestBuildStore:
    @pytest.mark.asyncio
    async def test_memory_store_with_sample(self):
        store = build_store(GraphSettings())
        assert isinstance(store, InMemoryGraphStore)
        assert [g.id for g in await store.list_graphs()] == [SAMPLE_GRAPH_ID]

    @pytest.mark.asyncio
    async def test_memory_store_without_sample(self):
        store = build_store(GraphSettings(load_sample=False))
        assert await store.list_graphs() == []

    def test_json_store(self, tmp_path):
        store = build_store(GraphSettings(backend="json", data_dir=str(tmp_path), traverse_max_nodes=7))
        assert isinstance(store, JsonFileGraphStore)
        assert store.traverse_max_nodes == 7

    def test_service_uses_query_settings(self):
        config = GatewayConfig.model_validate({"query": {"max_context_items": 5}})
        assert build_service(config).settings.max_context_items == 5


class TestCreateApp:
    def test_builds_its_own_service(self):
        with TestClient(create_app(GatewayConfig())) as client:
            graphs = client.get("/api/graphs").json()["graphs"]
        assert [g["id"] for g in graphs] == [SAMPLE_GRAPH_ID]

    def test_state_exposes_service_and_recorder(self, app, service, recorder):
        assert app.state.service is service
        assert app.state.recorder is recorder

    def test_cors_origins_from_config(self, service):
        config = GatewayConfig.model_validate({"server": {"cors_origins": ["http://allowed.test"]}})
        with TestClient(create_app(config, service=service)) as client:
            allowed = client.get("/api/graphs", headers={"Origin": "http://allowed.test"})
            denied = client.get("/api/graphs", headers={"Origin": "http://other.test"})
        assert allowed.headers["access-control-allow-origin"] == "http://allowed.test"
        assert allowed.headers["access-control-allow-credentials"] == "true"
        assert "access-control-allow-origin" not in denied.headers


class TestGrpcHealthApp:
    def test_reports_grpc_service(self, service):
        with TestClient(create_grpc_health_app(service)) as client:
            body = client.get("/health").json()
        assert body["services"] == {"graphrag": "SERVING", "graph_store": "SERVING", "grpc": "SERVING"}
        assert GRPC_SERVICES == {"grpc": True}


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    root.handlers = saved_handlers
    root.setLevel(saved_level)


class TestConfigureLogging:
    def test_text_uses_rich(self, root_logger):
        configure_logging("warning", "text")
        assert root_logger.level == logging.WARNING
        [handler] = root_logger.handlers
        assert isinstance(handler, RichHandler)

    def test_json_formatter(self, root_logger):
        configure_logging("debug", "json")
        [handler] = root_logger.handlers
        assert isinstance(handler.formatter, JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_line(self):
        record = logging.LogRecord("graphrag_gateway.app", logging.INFO, __file__, 1, "served %d", (3,), None)
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "graphrag_gateway.app"
        assert entry["message"] == "served 3"
        assert "exc_info" not in entry

    def test_json_line_with_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in entry["exc_info"]
