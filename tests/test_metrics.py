"""Tests for invocation metrics and error-to-status mapping."""

import grpc
import pytest

from graphrag_gateway.errors import (
    GenerationError,
    GraphNotFoundError,
    InvalidGraphError,
    InvalidRequestError,
    TransportError,
)
from graphrag_gateway.transport.codec import grpc_status_for, http_status_for
from graphrag_gateway.transport.metrics import MetricsRecorder


class TestMetricsRecorder:
    def test_invocation_records_bytes_and_status(self):
        recorder = MetricsRecorder()
        invocation = recorder.start("REST", "query")
        invocation.add_bytes(b"abc")
        invocation.add_bytes("é")
        invocation.add_size(10)
        record = invocation.finish()

        assert record.payload_size_bytes == 15
        assert record.status == "success"
        assert isinstance(record.latency_ms, int)
        assert record.latency_ms >= 0
        assert recorder.records() == [record]

    def test_finish_is_idempotent(self):
        recorder = MetricsRecorder()
        invocation = recorder.start("SSE", "traverse")
        invocation.finish()
        assert invocation.finish() is None
        assert len(recorder.records()) == 1

    def test_track_marks_failure_and_reraises(self):
        recorder = MetricsRecorder()
        with pytest.raises(KeyError):
            with recorder.track("gRPC", "query"):
                raise KeyError("x")
        assert recorder.records("gRPC")[0].status == "error"

    def test_records_filter_by_protocol(self):
        recorder = MetricsRecorder()
        recorder.start("REST", "a").finish()
        recorder.start("GraphQL", "b").finish()
        assert [r.operation for r in recorder.records("GraphQL")] == ["b"]

    def test_summary(self):
        recorder = MetricsRecorder()
        for size, fail in [(100, False), (300, True)]:
            invocation = recorder.start("WebSocket", "query")
            invocation.add_size(size)
            if fail:
                invocation.fail()
            invocation.finish()
        summary = recorder.summary()["WebSocket"]
        assert summary["count"] == 2
        assert summary["errors"] == 1
        assert summary["avgPayloadSizeBytes"] == pytest.approx(200)

    def test_bounded(self):
        recorder = MetricsRecorder(maxlen=2)
        for op in "abc":
            recorder.start("REST", op).finish()
        assert [r.operation for r in recorder.records()] == ["b", "c"]
        recorder.clear()
        assert recorder.records() == []


class TestStatusMapping:
    @pytest.mark.parametrize(
        "exc, http, code",
        [
            (GraphNotFoundError("g"), 404, grpc.StatusCode.NOT_FOUND),
            (InvalidRequestError("bad"), 400, grpc.StatusCode.INVALID_ARGUMENT),
            (InvalidGraphError("dangling"), 400, grpc.StatusCode.INVALID_ARGUMENT),
            (GenerationError("openai", "rate limited"), 502, grpc.StatusCode.UNAVAILABLE),
            (TransportError("SSE", "cannot serialize"), 500, grpc.StatusCode.INTERNAL),
            (RuntimeError("boom"), 500, grpc.StatusCode.INTERNAL),
        ],
    )
    def test_mapping(self, exc, http, code):
        assert http_status_for(exc) == http
        assert grpc_status_for(exc) == code
