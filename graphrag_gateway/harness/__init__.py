from .compare import ComparisonHarness
from .models import ComparisonReport, ProbeOutcome, ProtocolTestResult
from .probes import (
    GraphQLProbe,
    GrpcProbe,
    GrpcWebProbe,
    ProtocolProbe,
    RestProbe,
    SSEProbe,
    WebSocketProbe,
    probes_from_settings,
)

__all__ = [
    "ComparisonHarness",
    "ComparisonReport",
    "GraphQLProbe",
    "GrpcProbe",
    "GrpcWebProbe",
    "ProbeOutcome",
    "ProtocolProbe",
    "ProtocolTestResult",
    "RestProbe",
    "SSEProbe",
    "WebSocketProbe",
    "probes_from_settings",
]
