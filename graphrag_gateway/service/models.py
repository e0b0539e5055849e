"""Result models returned by QueryService and shared by every adapter."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import Field

from graphrag_gateway.llm.models import TokenUsage
from graphrag_gateway.retrieval.context import ContextItem
from graphrag_gateway.wire import WireModel, utc_now


class PerformanceMetrics(WireModel):
    processing_time_ms: float = Field(ge=0)
    context_retrieval_time_ms: float = Field(ge=0)
    generation_time_ms: float = Field(ge=0)
    baseline_generation_time_ms: float | None = None
    total_nodes_accessed: int = Field(default=0, ge=0)
    total_edges_traversed: int = Field(default=0, ge=0)


class BaselineAnswer(WireModel):
    """The ungrounded answer of an A/B pair. ``error`` is set when it failed."""

    response_text: str = ""
    generation_time_ms: float = Field(default=0.0, ge=0)
    error: str | None = None


class QueryResult(WireModel):
    query_id: str = Field(default_factory=lambda: f"query_{uuid.uuid4().hex[:12]}")
    query: str
    graph_id: str
    model: str
    response_text: str
    context: list[ContextItem] = Field(default_factory=list)
    performance: PerformanceMetrics
    tokens: TokenUsage | None = None
    baseline: BaselineAnswer | None = None
    truncated: bool = False
    timestamp: datetime = Field(default_factory=utc_now)


class HealthStatus(WireModel):
    status: Literal["healthy", "degraded"]
    version: str
    uptime_seconds: float = Field(ge=0)
    services: dict[str, Literal["SERVING", "NOT_SERVING"]] = Field(default_factory=dict)
    backends: dict[str, bool] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
