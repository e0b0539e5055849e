"""GraphRAG gateway: one knowledge-graph query engine served over six protocols."""

__version__ = "0.1.0"

from graphrag_gateway.config import GatewayConfig, load_config  # noqa: E402
from graphrag_gateway.graph import GraphStore, InMemoryGraphStore, JsonFileGraphStore  # noqa: E402
from graphrag_gateway.llm import BackendRouter, GenerationBackend  # noqa: E402
from graphrag_gateway.service import QueryResult, QueryService  # noqa: E402

__all__ = [
    "BackendRouter",
    "GatewayConfig",
    "GenerationBackend",
    "GraphStore",
    "InMemoryGraphStore",
    "JsonFileGraphStore",
    "QueryResult",
    "QueryService",
    "__version__",
    "load_config",
]
