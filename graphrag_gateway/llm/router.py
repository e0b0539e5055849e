"""Model-string routing to generation backends."""

from __future__ import annotations

import asyncio
import logging
import os

from graphrag_gateway.config.models import LLMSettings
from graphrag_gateway.errors import GenerationError
from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.claude import ClaudeBackend
from graphrag_gateway.llm.echo import EchoBackend
from graphrag_gateway.llm.models import Generation
from graphrag_gateway.llm.ollama import OllamaBackend
from graphrag_gateway.llm.openai_adapter import OpenAIBackend

logger = logging.getLogger(__name__)

BACKEND_NAMES = ("openai", "anthropic", "ollama", "echo")

# (prefix, backend, strip prefix from the model name)
_PREFIX_RULES: list[tuple[str, str, bool]] = [
    ("anthropic:", "anthropic", True),
    ("claude", "anthropic", False),
    ("ollama:", "ollama", True),
    ("echo", "echo", False),
    ("openai:", "openai", True),
    ("gpt", "openai", False),
    ("o1", "openai", False),
    ("o3", "openai", False),
    ("o4", "openai", False),
]


def create_backend(name: str, config: LLMSettings) -> GenerationBackend:
    """Create a backend from app-level config.

    Resolves the API key from the env var named in the backend's
    ``api_key_env``. Ollama and echo need no key.
    """
    if name == "echo":
        return EchoBackend(config.openai, config.max_tokens, config.temperature)
    if name == "ollama":
        return OllamaBackend(config.ollama, config.max_tokens, config.temperature)

    backend_cls: type[OpenAIBackend] | type[ClaudeBackend]
    if name == "openai":
        settings, backend_cls = config.openai, OpenAIBackend
    elif name == "anthropic":
        settings, backend_cls = config.anthropic, ClaudeBackend
    else:
        raise ValueError(
            f"Unsupported generation backend: {name!r}. Supported: {', '.join(BACKEND_NAMES)}"
        )

    api_key = os.environ.get(settings.api_key_env or "")
    if not api_key:
        raise GenerationError(
            name, f"Missing API key: set environment variable {settings.api_key_env!r}"
        )
    return backend_cls(settings, api_key, config.max_tokens, config.temperature)


class BackendRouter:
    """Selects a backend by model prefix and creates backends on first use."""

    def __init__(
        self,
        config: LLMSettings,
        backends: dict[str, GenerationBackend] | None = None,
    ) -> None:
        self.config = config
        self._backends: dict[str, GenerationBackend] = dict(backends or {})

    def resolve(self, model: str | None) -> tuple[str, str]:
        """Return ``(backend_name, model_name)`` for a model string."""
        model = (model or self.config.default_model).strip()
        lowered = model.lower()
        for prefix, backend, strip in _PREFIX_RULES:
            if lowered.startswith(prefix):
                return backend, model[len(prefix):] if strip else model
        return self.config.default_backend, model

    def backend(self, name: str) -> GenerationBackend:
        if name not in self._backends:
            self._backends[name] = create_backend(name, self.config)
            logger.debug("Created %s generation backend", name)
        return self._backends[name]

    async def generate(self, prompt: str, model: str | None = None) -> Generation:
        name, model_name = self.resolve(model)
        return await self.backend(name).generate(prompt, model_name)

    async def probe(self) -> dict[str, bool]:
        """Reachability per backend: configured key present, or server answering."""
        results: dict[str, bool] = {}
        checks: dict[str, asyncio.Task[bool]] = {}
        for name in BACKEND_NAMES:
            if name in self._backends:
                checks[name] = asyncio.ensure_future(self._backends[name].probe())
            elif name == "ollama":
                checks[name] = asyncio.ensure_future(self.backend(name).probe())
            elif name == "echo":
                results[name] = True
            else:
                key_env = getattr(self.config, name).api_key_env
                results[name] = bool(key_env and os.environ.get(key_env))
        for name, task in checks.items():
            results[name] = await task
        return {name: results[name] for name in BACKEND_NAMES}
