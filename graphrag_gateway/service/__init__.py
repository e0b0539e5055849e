"""Protocol-agnostic query pipeline."""

from graphrag_gateway.service.models import (
    BaselineAnswer,
    HealthStatus,
    PerformanceMetrics,
    QueryResult,
)
from graphrag_gateway.service.query import (
    TRUNCATED_RESPONSE_MESSAGE,
    QueryService,
    looks_truncated,
)

__all__ = [
    "TRUNCATED_RESPONSE_MESSAGE",
    "BaselineAnswer",
    "HealthStatus",
    "PerformanceMetrics",
    "QueryResult",
    "QueryService",
    "looks_truncated",
]
