"""YAML config loading with env var expansion and port overrides."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import GatewayConfig

# env var -> server field
_PORT_OVERRIDES = {
    "HTTP_PORT": "http_port",
    "GRPC_PORT": "grpc_port",
    "GRPC_HEALTH_PORT": "grpc_health_port",
}


def load_config(cli_path: str | None = None) -> GatewayConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults.

    Port environment variables are applied on top of whichever source won.
    """
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./graphrag-gateway.yaml"),
        Path.home() / ".graphrag-gateway" / "config.yaml",
    ]

    raw: dict = {}
    source = "defaults"
    for path in config_paths:
        if path and path.exists():
            try:
                with open(path) as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            if loaded is None:
                continue
            if not isinstance(loaded, dict):
                raise ValueError(f"Invalid config in {path}: top level must be a mapping")
            raw = _expand_env_vars(loaded)
            source = str(path)
            break

    _apply_port_overrides(raw)
    try:
        return GatewayConfig(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid config in {source}: {e}") from e


def _apply_port_overrides(raw: dict) -> None:
    server = raw.get("server")
    if not isinstance(server, dict):
        server = raw["server"] = {}
    for env_name, field in _PORT_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            server[field] = value


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `graphrag-gateway config init`
DEFAULT_CONFIG_TEMPLATE = """\
# graphrag-gateway.yaml

# Listening ports (HTTP_PORT / GRPC_PORT / GRPC_HEALTH_PORT override these)
server:
  host: "0.0.0.0"
  http_port: 3000              # REST, GraphQL, gRPC-Web, WebSocket, SSE
  grpc_port: 50051
  grpc_health_port: 50052

# Generation backends
llm:
  default_backend: "openai"    # openai | anthropic | ollama | echo
  default_model: "gpt-5-mini"
  max_tokens: 1024
  temperature: 0.3
  openai:
    api_key_env: "OPENAI_API_KEY"
  anthropic:
    api_key_env: "ANTHROPIC_API_KEY"
  ollama:
    base_url: "http://localhost:11434"

# Query pipeline
query:
  max_context_items: 3
  max_prompt_chars: 4000
  generation_timeout: 60
  min_response_chars: 50
  compare_baseline: false      # also generate an ungrounded answer for A/B comparison
  default_max_depth: 2

# Graph storage
graph:
  backend: "memory"            # memory | json
  data_dir: "./graphs"
  load_sample: true
  cache_ttl: 300
  traverse_max_nodes: 50

# Protocol comparison harness
harness:
  http_url: "http://localhost:3000"
  ws_url: "ws://localhost:3000/ws"
  grpc_target: "localhost:50051"
  adapter_timeout: 30
  budget: 60

# Logging
log_level: "info"              # debug | info | warning | error
log_format: "text"             # text | json
"""
