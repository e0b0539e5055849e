"""Per-invocation latency and payload accounting for transport adapters."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Literal

from pydantic import Field

from graphrag_gateway.wire import WireModel, utc_now

logger = logging.getLogger(__name__)

ProtocolName = Literal["REST", "GraphQL", "gRPC", "gRPC-Web", "WebSocket", "SSE"]


class InvocationRecord(WireModel):
    protocol: ProtocolName
    operation: str
    latency_ms: int = Field(ge=0)
    payload_size_bytes: int = Field(ge=0)
    status: Literal["success", "error"]
    timestamp: datetime = Field(default_factory=utc_now)


class Invocation:
    """Open measurement for one adapter call.

    The clock starts on creation (adapter entry) and stops in ``finish``,
    after the adapter has produced its last framed byte.
    """

    def __init__(self, recorder: MetricsRecorder, protocol: ProtocolName, operation: str) -> None:
        self._recorder = recorder
        self.protocol = protocol
        self.operation = operation
        self.payload_size_bytes = 0
        self.status: Literal["success", "error"] = "success"
        self._start = time.perf_counter()
        self._finished = False

    def add_bytes(self, data: bytes | str) -> None:
        self.payload_size_bytes += len(data.encode("utf-8") if isinstance(data, str) else data)

    def add_size(self, size: int) -> None:
        self.payload_size_bytes += size

    def fail(self) -> None:
        self.status = "error"

    def finish(self) -> InvocationRecord | None:
        if self._finished:
            return None
        self._finished = True
        record = InvocationRecord(
            protocol=self.protocol,
            operation=self.operation,
            latency_ms=round((time.perf_counter() - self._start) * 1000),
            payload_size_bytes=self.payload_size_bytes,
            status=self.status,
        )
        self._recorder.add(record)
        return record


class MetricsRecorder:
    """Bounded in-memory log of InvocationRecords."""

    def __init__(self, maxlen: int = 1000) -> None:
        self._records: deque[InvocationRecord] = deque(maxlen=maxlen)

    def start(self, protocol: ProtocolName, operation: str) -> Invocation:
        return Invocation(self, protocol, operation)

    @contextmanager
    def track(self, protocol: ProtocolName, operation: str) -> Iterator[Invocation]:
        invocation = self.start(protocol, operation)
        try:
            yield invocation
        except BaseException:
            invocation.fail()
            raise
        finally:
            invocation.finish()

    def add(self, record: InvocationRecord) -> None:
        self._records.append(record)
        logger.debug(
            "%s %s %s in %dms (%d bytes)",
            record.protocol,
            record.operation,
            record.status,
            record.latency_ms,
            record.payload_size_bytes,
        )

    def records(self, protocol: str | None = None) -> list[InvocationRecord]:
        return [r for r in self._records if protocol is None or r.protocol == protocol]

    def summary(self) -> dict[str, dict[str, float]]:
        """Aggregate count, errors and mean latency/payload per protocol."""
        out: dict[str, dict[str, float]] = {}
        for record in self._records:
            entry = out.setdefault(
                record.protocol,
                {"count": 0, "errors": 0, "avgLatencyMs": 0.0, "avgPayloadSizeBytes": 0.0},
            )
            n = entry["count"] + 1
            entry["avgLatencyMs"] += (record.latency_ms - entry["avgLatencyMs"]) / n
            entry["avgPayloadSizeBytes"] += (record.payload_size_bytes - entry["avgPayloadSizeBytes"]) / n
            entry["count"] = n
            if record.status == "error":
                entry["errors"] += 1
        return out

    def clear(self) -> None:
        self._records.clear()
