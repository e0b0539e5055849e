"""Ollama backend over its REST API."""

from __future__ import annotations

import logging
import time
from urllib.parse import urlparse

import httpx

from graphrag_gateway.config.models import BackendSettings
from graphrag_gateway.errors import GenerationError
from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.models import Generation, TokenUsage

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434"
_PROBE_TIMEOUT = 2.0


def _validate_base_url(url: str) -> str:
    """Reject non-http(s) and CRLF-bearing URLs; warn on non-local hosts."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Ollama base_url must be http(s), got {parsed.scheme}")
    if "\r" in url or "\n" in url:
        raise ValueError("CRLF injection detected in base_url")
    if parsed.hostname not in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}:
        logger.warning("Ollama base_url %s is not localhost, ensure this is intentional", parsed.hostname)
    return url


class OllamaBackend(GenerationBackend):
    """Ollama adapter using /api/chat via httpx."""

    name = "ollama"

    def __init__(
        self,
        settings: BackendSettings,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings, max_tokens, temperature)
        self._base_url = _validate_base_url((settings.base_url or _DEFAULT_BASE_URL).rstrip("/"))
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=self._transport)

    async def generate(self, prompt: str, model: str) -> Generation:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {"num_predict": self.max_tokens, "temperature": self.temperature},
        }
        start = time.perf_counter()
        try:
            async with self._client(self.settings.timeout) as client:
                resp = await client.post("/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            raise GenerationError(self.name, f"timed out: {e}", cause=e, retryable=True) from e
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                self.name,
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                cause=e,
                retryable=e.response.status_code >= 500,
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(self.name, str(e) or type(e).__name__, cause=e, retryable=True) from e

        content = data.get("message", {}).get("content", "")
        if not content:
            raise GenerationError(self.name, "No content in Ollama response")
        return Generation(
            text=content,
            latency_ms=(time.perf_counter() - start) * 1000,
            tokens=TokenUsage.of(data.get("prompt_eval_count"), data.get("eval_count")),
            model=model,
            backend=self.name,
        )

    async def probe(self) -> bool:
        try:
            async with self._client(_PROBE_TIMEOUT) as client:
                resp = await client.get("/api/tags")
        except httpx.HTTPError:
            logger.debug("Ollama at %s is not reachable", self._base_url)
            return False
        return resp.status_code == 200
