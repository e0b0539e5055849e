"""Pydantic models for the generation subsystem."""

from __future__ import annotations

from pydantic import Field

from graphrag_gateway.wire import WireModel


class TokenUsage(WireModel):
    """Token usage stats from a single generation call."""

    input: int = Field(default=0, ge=0)
    output: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)

    @classmethod
    def of(cls, input_tokens: int | None, output_tokens: int | None) -> TokenUsage:
        i, o = input_tokens or 0, output_tokens or 0
        return cls(input=i, output=o, total=i + o)


class Generation(WireModel):
    """Structured result of one backend call."""

    text: str
    latency_ms: float = Field(ge=0)
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    backend: str
