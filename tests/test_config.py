"""Tests for graphrag_gateway.config: models and YAML loader."""

import os
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from graphrag_gateway.config.loader import DEFAULT_CONFIG_TEMPLATE, _expand_env_vars, load_config
from graphrag_gateway.config.models import (
    GatewayConfig,
    GraphSettings,
    HarnessSettings,
    LLMSettings,
    QuerySettings,
    ServerSettings,
)


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """No project-local or user-global config and no port overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "fakehome")
    for name in ("HTTP_PORT", "GRPC_PORT", "GRPC_HEALTH_PORT"):
        monkeypatch.delenv(name, raising=False)


# ── GatewayConfig defaults ─────────────────────────────────────────


class TestGatewayConfigDefaults:
    def test_default_ports(self):
        cfg = GatewayConfig()
        assert cfg.server.http_port == 3000
        assert cfg.server.grpc_port == 50051
        assert cfg.server.grpc_health_port == 50052

    def test_default_logging(self):
        cfg = GatewayConfig()
        assert cfg.log_level == "info"
        assert cfg.log_format == "text"

    def test_default_backend(self):
        cfg = GatewayConfig()
        assert cfg.llm.default_backend == "openai"
        assert cfg.llm.default_model == "gpt-5-mini"

    def test_default_graph_store(self):
        cfg = GatewayConfig()
        assert cfg.graph.backend == "memory"
        assert cfg.graph.load_sample is True

    def test_harness_covers_every_protocol(self):
        assert HarnessSettings().protocols == ["REST", "GraphQL", "gRPC", "gRPC-Web", "WebSocket", "SSE"]


# ── Individual model validations ────────────────────────────────────


class TestModelValidation:
    def test_port_range(self):
        with pytest.raises(ValidationError):
            ServerSettings(http_port=70000)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            LLMSettings(default_backend="bard")

    def test_context_items_must_be_positive(self):
        with pytest.raises(ValidationError):
            QuerySettings(max_context_items=0)

    def test_unknown_store_rejected(self):
        with pytest.raises(ValidationError):
            GraphSettings(backend="neo4j")

    def test_unknown_protocol_rejected(self):
        with pytest.raises(ValidationError):
            HarnessSettings(protocols=["REST", "SOAP"])

    def test_backend_key_envs(self):
        cfg = LLMSettings()
        assert cfg.openai.api_key_env == "OPENAI_API_KEY"
        assert cfg.anthropic.api_key_env == "ANTHROPIC_API_KEY"
        assert cfg.ollama.api_key_env is None


# ── _expand_env_vars ────────────────────────────────────────────────


class TestExpandEnvVars:
    @patch.dict(os.environ, {"MY_KEY": "secret123"})
    def test_expands_string_variable(self):
        assert _expand_env_vars("${MY_KEY}") == "secret123"

    def test_missing_var_becomes_empty(self):
        os.environ.pop("GRAPHRAG_UNSET_VAR", None)
        assert _expand_env_vars("x${GRAPHRAG_UNSET_VAR}y") == "xy"

    @patch.dict(os.environ, {"A": "alpha", "B": "beta"})
    def test_expands_nested_structures(self):
        result = _expand_env_vars({"outer": {"inner": "${A}"}, "list": ["${B}", "literal"]})
        assert result == {"outer": {"inner": "alpha"}, "list": ["beta", "literal"]}

    def test_non_string_passthrough(self):
        assert _expand_env_vars(42) == 42
        assert _expand_env_vars(True) is True
        assert _expand_env_vars(None) is None

    @patch.dict(os.environ, {"HOST": "localhost"})
    def test_mixed_text_and_var(self):
        assert _expand_env_vars("http://${HOST}:11434") == "http://localhost:11434"


# ── load_config ─────────────────────────────────────────────────────


class TestLoadConfig:
    def test_returns_defaults_when_no_file_exists(self):
        config = load_config()
        assert config == GatewayConfig()

    def test_loads_project_local_yaml(self, tmp_path):
        (tmp_path / "graphrag-gateway.yaml").write_text(
            "llm:\n  default_backend: ollama\n  default_model: llama3\nlog_level: debug\n"
        )
        config = load_config()
        assert config.llm.default_backend == "ollama"
        assert config.llm.default_model == "llama3"
        assert config.log_level == "debug"

    def test_cli_path_takes_priority(self, tmp_path):
        (tmp_path / "graphrag-gateway.yaml").write_text("log_level: debug\n")
        cli_file = tmp_path / "custom.yaml"
        cli_file.write_text("log_level: error\n")
        assert load_config(cli_path=str(cli_file)).log_level == "error"

    def test_user_global_config_used_as_fallback(self, tmp_path):
        user_dir = tmp_path / "fakehome" / ".graphrag-gateway"
        user_dir.mkdir(parents=True)
        (user_dir / "config.yaml").write_text("log_format: json\n")
        assert load_config().log_format == "json"

    def test_empty_yaml_file_returns_defaults(self, tmp_path):
        (tmp_path / "graphrag-gateway.yaml").write_text("")
        assert load_config() == GatewayConfig()

    def test_raises_on_invalid_yaml(self, tmp_path):
        (tmp_path / "graphrag-gateway.yaml").write_text("  bad:\nyaml: [unterminated")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config()

    def test_raises_on_non_mapping(self, tmp_path):
        (tmp_path / "graphrag-gateway.yaml").write_text("- one\n- two\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config()

    def test_raises_on_invalid_config_values(self, tmp_path):
        (tmp_path / "graphrag-gateway.yaml").write_text("llm:\n  default_backend: bard\n")
        with pytest.raises(ValueError, match="Invalid config"):
            load_config()

    def test_env_vars_expanded_in_loaded_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_MODEL", "claude-haiku-4-5")
        (tmp_path / "graphrag-gateway.yaml").write_text("llm:\n  default_model: ${MY_MODEL}\n")
        assert load_config().llm.default_model == "claude-haiku-4-5"


class TestPortOverrides:
    def test_env_ports_override_defaults(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "8080")
        monkeypatch.setenv("GRPC_PORT", "9090")
        config = load_config()
        assert config.server.http_port == 8080
        assert config.server.grpc_port == 9090
        assert config.server.grpc_health_port == 50052

    def test_env_ports_override_file(self, tmp_path, monkeypatch):
        (tmp_path / "graphrag-gateway.yaml").write_text("server:\n  http_port: 4000\n  host: 127.0.0.1\n")
        monkeypatch.setenv("HTTP_PORT", "5000")
        config = load_config()
        assert config.server.http_port == 5000
        assert config.server.host == "127.0.0.1"

    def test_invalid_port_value(self, monkeypatch):
        monkeypatch.setenv("GRPC_PORT", "not-a-port")
        with pytest.raises(ValueError, match="Invalid config"):
            load_config()


class TestDefaultTemplate:
    def test_template_is_valid_config(self):
        config = GatewayConfig(**yaml.safe_load(DEFAULT_CONFIG_TEMPLATE))
        assert config.server.http_port == 3000
        assert config.graph.traverse_max_nodes == 50
