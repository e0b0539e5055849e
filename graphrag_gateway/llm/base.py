"""Abstract generation interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from graphrag_gateway.config.models import BackendSettings
from graphrag_gateway.llm.models import Generation


class GenerationBackend(ABC):
    """Backend-agnostic text generation.

    Implementations raise GenerationError for every failure, with
    ``retryable`` set for rate limits and timeouts. They never retry on
    their own beyond what the vendor SDK does.
    """

    name: str = ""

    def __init__(
        self,
        settings: BackendSettings,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> None:
        self.settings = settings
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def generate(self, prompt: str, model: str) -> Generation:
        """Generate a complete response for a single user prompt."""
        ...

    async def probe(self) -> bool:
        """Whether the backend looks reachable. Must not raise."""
        return True
