"""OpenAI backend."""

from __future__ import annotations

import time

from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from graphrag_gateway.config.models import BackendSettings
from graphrag_gateway.errors import GenerationError
from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.models import Generation, TokenUsage

# Reasoning models only accept the default temperature.
_FIXED_TEMPERATURE_PREFIXES = ("o1", "o3", "o4", "gpt-5")


class OpenAIBackend(GenerationBackend):
    """OpenAI adapter using the async SDK."""

    name = "openai"

    def __init__(
        self,
        settings: BackendSettings,
        api_key: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> None:
        super().__init__(settings, max_tokens, temperature)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )

    async def generate(self, prompt: str, model: str) -> Generation:
        kwargs: dict = {}
        if not model.startswith(_FIXED_TEMPERATURE_PREFIXES):
            kwargs["temperature"] = self.temperature
        start = time.perf_counter()
        try:
            response = await self._client.chat.completions.create(
                model=model,
                max_completion_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except APIError as e:
            raise GenerationError(
                self.name,
                str(e),
                cause=e,
                retryable=isinstance(e, (RateLimitError, APITimeoutError)),
            ) from e
        if not response.choices:
            raise GenerationError(self.name, "No choices in OpenAI response")
        usage = response.usage
        return Generation(
            text=response.choices[0].message.content or "",
            latency_ms=(time.perf_counter() - start) * 1000,
            tokens=TokenUsage.of(
                usage.prompt_tokens if usage else 0,
                usage.completion_tokens if usage else 0,
            ),
            model=response.model,
            backend=self.name,
        )
