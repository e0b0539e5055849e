"""Error taxonomy shared by the query core and every transport adapter."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all gateway errors."""


class NotFoundError(GatewayError):
    """A graph or entity does not exist. Recoverable by the client, never retried."""


class GraphNotFoundError(NotFoundError):
    """Raised when a graph id cannot be resolved by the GraphStore."""

    def __init__(self, graph_id: str) -> None:
        self.graph_id = graph_id
        super().__init__(f"Graph {graph_id!r} not found")


class InvalidGraphError(GatewayError):
    """A graph violates its structural invariants (duplicate ids, dangling edges)."""


class InvalidRequestError(GatewayError):
    """A request is missing required fields or carries out-of-range values."""


class GenerationError(GatewayError):
    """Wraps generation backend failures and timeouts with context."""

    def __init__(
        self,
        backend: str,
        message: str,
        cause: Exception | None = None,
        retryable: bool = False,
    ) -> None:
        self.backend = backend
        self.message = message
        self.retryable = retryable
        super().__init__(f"{backend} generation failed: {message}")
        if cause is not None:
            self.__cause__ = cause


class TransportError(GatewayError):
    """Serialization or framing failure inside an adapter. Always an adapter bug."""

    def __init__(self, protocol: str, message: str) -> None:
        self.protocol = protocol
        super().__init__(f"{protocol} transport error: {message}")


class ProbeError(GatewayError):
    """A comparison probe got an error reply from the adapter it exercised."""

    def __init__(self, protocol: str, message: str) -> None:
        self.protocol = protocol
        super().__init__(f"{protocol}: {message}")
