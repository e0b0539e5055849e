"""Test doubles shared across test modules."""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import grpc

from graphrag_gateway.config.models import BackendSettings, LLMSettings
from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.echo import EchoBackend
from graphrag_gateway.llm.models import Generation, TokenUsage
from graphrag_gateway.llm.router import BackendRouter
from graphrag_gateway.transport.grpc_service import GraphRAGServicer, GraphRAGStub, create_grpc_server

LONG_ANSWER = (
    "Stanford Medical Center applies artificial intelligence in clinical research, "
    "and Emily Rodriguez works there."
)


class StubBackend(GenerationBackend):
    """Scripted backend: fixed text, optional failure or delay; records prompts."""

    name = "stub"

    def __init__(self, text: str = LONG_ANSWER, error: Exception | None = None, delay: float = 0.0):
        super().__init__(BackendSettings())
        self.text = text
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    async def generate(self, prompt: str, model: str) -> Generation:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return Generation(
            text=self.text,
            latency_ms=1.0,
            tokens=TokenUsage.of(10, 20),
            model=model,
            backend=self.name,
        )


def offline_backend() -> MagicMock:
    backend = MagicMock(spec=GenerationBackend)
    backend.probe = AsyncMock(return_value=False)
    return backend


def make_router(**backends: GenerationBackend) -> BackendRouter:
    """Router defaulting to the echo backend, with Ollama reported offline."""
    settings = LLMSettings(default_backend="echo", default_model="echo-1")
    wired = {"echo": EchoBackend(BackendSettings()), "ollama": offline_backend()}
    wired.update(backends)
    return BackendRouter(settings, wired)


@asynccontextmanager
async def running_stub(service, recorder, services=None):
    """Serve ``service`` over grpc.aio on an ephemeral local port and yield a client stub."""
    server, port = create_grpc_server(GraphRAGServicer(service, recorder, services), "127.0.0.1:0")
    await server.start()
    try:
        async with grpc.aio.insecure_channel(f"127.0.0.1:{port}") as channel:
            yield GraphRAGStub(channel)
    finally:
        await server.stop(grace=None)
