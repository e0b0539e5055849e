"""Fan one query out to every protocol and rank the results."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from graphrag_gateway.harness.models import ComparisonReport, ProtocolTestResult
from graphrag_gateway.harness.probes import ProtocolProbe

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


def _recommendations(results: list[ProtocolTestResult], fastest: str | None, most_efficient: str | None) -> list[str]:
    ok = {r.protocol: r for r in results if r.status == "success"}
    failed = [r.protocol for r in results if r.status == "error"]
    advice: list[str] = []
    if fastest == "gRPC":
        advice.append("gRPC shows the best latency; prefer it for internal service-to-service calls")
    elif fastest in ("WebSocket", "SSE"):
        advice.append(f"{fastest} answered fastest; use it to push partial results to browsers")
    if most_efficient == "gRPC":
        advice.append("gRPC is the most bandwidth-efficient thanks to Protocol Buffers")
    if "GraphQL" in ok and "REST" in ok:
        if ok["GraphQL"].latency_ms < ok["REST"].latency_ms:
            advice.append("GraphQL beat REST here and avoids over-fetching; consider it for public APIs")
        else:
            advice.append("REST is the simplest choice for public APIs")
    if failed:
        advice.append(f"Check the failing adapters: {', '.join(failed)}")
    elif ok:
        advice.append("All protocols are functional; choose based on your client requirements")
    return advice


class ComparisonHarness:
    """Runs one probe per protocol concurrently.

    Each branch has its own timeout and the whole run has a wall-clock budget;
    a failing or hung probe becomes an error result instead of blocking or
    aborting the others. Results keep the probes' declaration order.
    """

    def __init__(
        self,
        probes: Sequence[ProtocolProbe],
        adapter_timeout: float = 30.0,
        budget: float = 60.0,
    ) -> None:
        self.probes = list(probes)
        self.adapter_timeout = adapter_timeout
        self.budget = budget

    async def _run_probe(
        self, probe: ProtocolProbe, query: str, graph_id: str, model: str | None
    ) -> ProtocolTestResult:
        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(probe.run(query, graph_id, model), self.adapter_timeout)
        except TimeoutError:
            logger.warning("%s probe timed out after %gs", probe.protocol, self.adapter_timeout)
            error = f"timed out after {self.adapter_timeout:g}s"
        except Exception as e:
            logger.warning("%s probe failed: %s", probe.protocol, e)
            error = str(e) or type(e).__name__
        else:
            return ProtocolTestResult(
                protocol=probe.protocol,
                latency_ms=_elapsed_ms(start),
                payload_size_bytes=outcome.payload_size_bytes,
                status="success",
                response=outcome.response_text,
            )
        return ProtocolTestResult(
            protocol=probe.protocol,
            latency_ms=_elapsed_ms(start),
            status="error",
            error=error,
        )

    async def compare(self, query: str, graph_id: str, model: str | None = None) -> ComparisonReport:
        start = time.perf_counter()
        tasks = [
            asyncio.create_task(self._run_probe(probe, query, graph_id, model)) for probe in self.probes
        ]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.budget)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        results: list[ProtocolTestResult] = []
        for probe, task in zip(self.probes, tasks):
            if task.cancelled():
                results.append(
                    ProtocolTestResult(
                        protocol=probe.protocol,
                        latency_ms=round(self.budget * 1000),
                        status="error",
                        error=f"exceeded the comparison budget of {self.budget:g}s",
                    )
                )
            else:
                results.append(task.result())

        successes = [r for r in results if r.status == "success"]
        fastest = min(successes, key=lambda r: r.latency_ms).protocol if successes else None
        most_efficient = min(successes, key=lambda r: r.payload_size_bytes).protocol if successes else None
        if not successes:
            status = "error"
        elif len(successes) < len(results):
            status = "partial"
        else:
            status = "success"

        report = ComparisonReport(
            query=query,
            graph_id=graph_id,
            model=model,
            status=status,
            results=results,
            fastest=fastest,
            most_efficient=most_efficient,
            total_time_ms=(time.perf_counter() - start) * 1000,
            recommendations=_recommendations(results, fastest, most_efficient) if successes else [],
        )
        logger.info(
            "Compared %d protocols: %s (fastest=%s, most efficient=%s)",
            len(results), status, fastest, most_efficient,
        )
        return report
