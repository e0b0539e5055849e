"""Anthropic Claude backend."""

from __future__ import annotations

import time

from anthropic import APIError, APITimeoutError, AsyncAnthropic, RateLimitError

from graphrag_gateway.config.models import BackendSettings
from graphrag_gateway.errors import GenerationError
from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.models import Generation, TokenUsage


class ClaudeBackend(GenerationBackend):
    """Claude adapter using the Anthropic async SDK."""

    name = "anthropic"

    def __init__(
        self,
        settings: BackendSettings,
        api_key: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> None:
        super().__init__(settings, max_tokens, temperature)
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )

    async def generate(self, prompt: str, model: str) -> Generation:
        start = time.perf_counter()
        try:
            message = await self._client.messages.create(
                model=model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            raise GenerationError(
                self.name,
                str(e),
                cause=e,
                retryable=isinstance(e, (RateLimitError, APITimeoutError)),
            ) from e
        if not message.content or not hasattr(message.content[0], "text"):
            raise GenerationError(self.name, "No text content in Claude response")
        return Generation(
            text=message.content[0].text,
            latency_ms=(time.perf_counter() - start) * 1000,
            tokens=TokenUsage.of(message.usage.input_tokens, message.usage.output_tokens),
            model=message.model,
            backend=self.name,
        )
