"""Generation backend abstraction layer."""

from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.claude import ClaudeBackend
from graphrag_gateway.llm.echo import EchoBackend
from graphrag_gateway.llm.models import Generation, TokenUsage
from graphrag_gateway.llm.ollama import OllamaBackend
from graphrag_gateway.llm.openai_adapter import OpenAIBackend
from graphrag_gateway.llm.router import BACKEND_NAMES, BackendRouter, create_backend

__all__ = [
    "BACKEND_NAMES",
    "BackendRouter",
    "ClaudeBackend",
    "EchoBackend",
    "Generation",
    "GenerationBackend",
    "OllamaBackend",
    "OpenAIBackend",
    "TokenUsage",
    "create_backend",
]
