from typing import Literal

from pydantic import BaseModel, Field


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    http_port: int = Field(default=3000, gt=0, lt=65536)
    grpc_port: int = Field(default=50051, gt=0, lt=65536)
    grpc_health_port: int = Field(default=50052, gt=0, lt=65536)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class BackendSettings(BaseModel):
    api_key_env: str | None = None
    base_url: str | None = None
    timeout: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=2, ge=0)


class LLMSettings(BaseModel):
    default_backend: Literal["openai", "anthropic", "ollama", "echo"] = "openai"
    default_model: str = "gpt-5-mini"
    max_tokens: int = Field(default=1024, gt=0)
    temperature: float = Field(default=0.3, ge=0)
    openai: BackendSettings = Field(
        default_factory=lambda: BackendSettings(api_key_env="OPENAI_API_KEY")
    )
    anthropic: BackendSettings = Field(
        default_factory=lambda: BackendSettings(api_key_env="ANTHROPIC_API_KEY")
    )
    ollama: BackendSettings = Field(
        default_factory=lambda: BackendSettings(base_url="http://localhost:11434", timeout=120.0)
    )


class QuerySettings(BaseModel):
    max_context_items: int = Field(default=3, ge=1)
    max_prompt_chars: int = Field(default=4000, gt=0)
    generation_timeout: float = Field(default=60.0, gt=0)
    min_response_chars: int = Field(default=50, ge=0)
    compare_baseline: bool = False
    default_max_depth: int = Field(default=2, ge=0)


class GraphSettings(BaseModel):
    backend: Literal["memory", "json"] = "memory"
    data_dir: str = "./graphs"
    load_sample: bool = True
    cache_ttl: float = Field(default=300.0, gt=0)
    cache_maxsize: int = Field(default=128, gt=0)
    traverse_max_nodes: int = Field(default=50, gt=0)


class HarnessSettings(BaseModel):
    http_url: str = "http://localhost:3000"
    ws_url: str = "ws://localhost:3000/ws"
    grpc_target: str = "localhost:50051"
    adapter_timeout: float = Field(default=30.0, gt=0)
    budget: float = Field(default=60.0, gt=0)
    protocols: list[Literal["REST", "GraphQL", "gRPC", "gRPC-Web", "WebSocket", "SSE"]] = Field(
        default_factory=lambda: ["REST", "GraphQL", "gRPC", "gRPC-Web", "WebSocket", "SSE"]
    )


class GatewayConfig(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    harness: HarnessSettings = Field(default_factory=HarnessSettings)
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
