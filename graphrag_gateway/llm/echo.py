"""Local deterministic backend for demos and tests. No network."""

from __future__ import annotations

import time

from graphrag_gateway.llm.base import GenerationBackend
from graphrag_gateway.llm.models import Generation, TokenUsage

_MAX_ECHO_CHARS = 600


class EchoBackend(GenerationBackend):
    """Answers with a summary of the prompt it was given."""

    name = "echo"

    async def generate(self, prompt: str, model: str) -> Generation:
        start = time.perf_counter()
        lines = [line.strip() for line in prompt.splitlines() if line.strip()]
        query = next((line[len("QUERY:"):].strip() for line in lines if line.startswith("QUERY:")), "")
        body = " ".join(lines)
        if len(body) > _MAX_ECHO_CHARS:
            body = body[:_MAX_ECHO_CHARS].rstrip() + "..."
        text = f"Echo answer for {query!r} from model {model}. Prompt was: {body}"
        return Generation(
            text=text,
            latency_ms=(time.perf_counter() - start) * 1000,
            tokens=TokenUsage.of(len(prompt.split()), len(text.split())),
            model=model,
            backend=self.name,
        )
