"""Comparison results: per-protocol outcomes and the aggregated report."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from graphrag_gateway.transport.metrics import ProtocolName
from graphrag_gateway.wire import WireModel, utc_now


class ProbeOutcome(WireModel):
    """What a probe observed on the wire for one successful query."""

    payload_size_bytes: int = Field(ge=0)
    response_text: str = ""


class ProtocolTestResult(WireModel):
    protocol: ProtocolName
    latency_ms: int = Field(ge=0)
    payload_size_bytes: int = Field(default=0, ge=0)
    status: Literal["success", "error"]
    response: str = ""
    error: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class ComparisonReport(WireModel):
    query: str
    graph_id: str
    model: str | None = None
    status: Literal["success", "partial", "error"]
    results: list[ProtocolTestResult]
    fastest: ProtocolName | None = None
    most_efficient: ProtocolName | None = None
    total_time_ms: float = Field(ge=0)
    recommendations: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

    def successes(self) -> list[ProtocolTestResult]:
        return [r for r in self.results if r.status == "success"]
