"""QueryService: the protocol-agnostic GraphRAG pipeline behind every adapter."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

from graphrag_gateway import __version__
from graphrag_gateway.config.models import QuerySettings
from graphrag_gateway.errors import GenerationError, InvalidRequestError
from graphrag_gateway.graph.base import GraphStore
from graphrag_gateway.graph.models import Graph, GraphNode
from graphrag_gateway.llm.models import Generation
from graphrag_gateway.llm.router import BackendRouter
from graphrag_gateway.retrieval.context import ContextExtractor, ContextItem
from graphrag_gateway.service.models import (
    BaselineAnswer,
    HealthStatus,
    PerformanceMetrics,
    QueryResult,
)
from graphrag_gateway.service.prompts import build_baseline_prompt, build_graphrag_prompt

logger = logging.getLogger(__name__)

TRUNCATED_RESPONSE_MESSAGE = (
    "The response was truncated. Please narrow your query to a specific entity "
    "or relationship and try again."
)
TRUNCATION_MARKERS = (
    "[response was truncated due to token limit.]",
    "[truncated]",
)


def looks_truncated(text: str, min_chars: int) -> bool:
    stripped = text.strip()
    if len(stripped) < min_chars:
        return True
    lowered = stripped.lower()
    return any(marker in lowered for marker in TRUNCATION_MARKERS)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class QueryService:
    """Answers graph-grounded queries and exposes the read operations adapters need.

    Adapters depend only on this class; the GraphStore, context extraction and
    backend routing stay behind it.
    """

    def __init__(
        self,
        store: GraphStore,
        router: BackendRouter,
        settings: QuerySettings | None = None,
        extractor: ContextExtractor | None = None,
        version: str = __version__,
    ) -> None:
        self.store = store
        self.router = router
        self.settings = settings or QuerySettings()
        self.extractor = extractor or ContextExtractor()
        self.version = version
        self._started = time.monotonic()

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def answer(
        self,
        query: str,
        graph_id: str,
        model: str | None = None,
        *,
        compare_baseline: bool | None = None,
    ) -> QueryResult:
        """Run retrieval and generation for one query.

        Raises GraphNotFoundError for unknown graphs and GenerationError when the
        grounded generation fails or times out. A failing baseline generation is
        reported on ``result.baseline.error`` instead.
        """
        query = self._require_query(query)
        if not graph_id:
            raise InvalidRequestError("graphId is required")
        start = time.perf_counter()

        graph = await self.store.get(graph_id)
        retrieval_start = time.perf_counter()
        context = self.extractor.extract(query, graph, max_items=self.settings.max_context_items)
        retrieval_ms = _elapsed_ms(retrieval_start)

        model_name = model or self.router.config.default_model
        prompt = build_graphrag_prompt(
            query, context, self.settings.max_context_items, self.settings.max_prompt_chars
        )
        with_baseline = self.settings.compare_baseline if compare_baseline is None else compare_baseline

        baseline: BaselineAnswer | None = None
        if with_baseline:
            baseline_prompt = build_baseline_prompt(query, graph, self.settings.max_prompt_chars)
            grounded_out, baseline_out = await asyncio.gather(
                self._generate(prompt, model_name),
                self._generate(baseline_prompt, model_name),
                return_exceptions=True,
            )
            if isinstance(grounded_out, BaseException):
                raise grounded_out
            baseline = self._baseline_answer(baseline_out)
        else:
            grounded_out = await self._generate(prompt, model_name)
        generation, generation_ms = grounded_out

        text, truncated = generation.text, False
        if looks_truncated(text, self.settings.min_response_chars):
            logger.warning(
                "Response from %s looks truncated (%d chars), replacing it", model_name, len(text)
            )
            text, truncated = TRUNCATED_RESPONSE_MESSAGE, True

        return QueryResult(
            query=query,
            graph_id=graph.id,
            model=model_name,
            response_text=text,
            context=context,
            performance=PerformanceMetrics(
                processing_time_ms=_elapsed_ms(start),
                context_retrieval_time_ms=retrieval_ms,
                generation_time_ms=generation_ms,
                baseline_generation_time_ms=baseline.generation_time_ms if baseline else None,
                total_nodes_accessed=len(graph.nodes),
                total_edges_traversed=len(graph.edges),
            ),
            tokens=generation.tokens,
            baseline=baseline,
            truncated=truncated,
        )

    async def _generate(self, prompt: str, model: str) -> tuple[Generation, float]:
        backend, _ = self.router.resolve(model)
        timeout = self.settings.generation_timeout
        start = time.perf_counter()
        try:
            generation = await asyncio.wait_for(self.router.generate(prompt, model), timeout)
        except TimeoutError as e:
            raise GenerationError(backend, f"timed out after {timeout:g}s", cause=e, retryable=True) from e
        return generation, _elapsed_ms(start)

    def _baseline_answer(self, outcome: tuple[Generation, float] | BaseException) -> BaselineAnswer:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning("Baseline generation failed: %s", outcome)
            return BaselineAnswer(error=str(outcome))
        generation, elapsed = outcome
        text = generation.text
        if looks_truncated(text, self.settings.min_response_chars):
            text = TRUNCATED_RESPONSE_MESSAGE
        return BaselineAnswer(response_text=text, generation_time_ms=elapsed)

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_graph(self, graph_id: str) -> Graph:
        return await self.store.get(graph_id)

    async def list_graphs(self) -> list[Graph]:
        return await self.store.list_graphs()

    async def context_items(
        self, query: str, graph_id: str, max_size: int | None = None
    ) -> list[ContextItem]:
        query = self._require_query(query)
        size = self.settings.max_context_items if max_size is None else max_size
        if size < 1:
            raise InvalidRequestError("maxSize must be at least 1")
        graph = await self.store.get(graph_id)
        return self.extractor.extract(query, graph, max_items=size)

    async def traverse(
        self,
        query: str,
        graph_id: str,
        max_depth: int | None = None,
        max_nodes: int | None = None,
    ) -> AsyncIterator[GraphNode]:
        """BFS from the nodes matching ``query``, in store order."""
        depth = self.settings.default_max_depth if max_depth is None else max_depth
        if depth < 0:
            raise InvalidRequestError("maxDepth must not be negative")
        async with aclosing(self.store.traverse(graph_id, query, depth, max_nodes)) as nodes:
            async for node in nodes:
                yield node

    async def resolve_entities(
        self, entity_name: str, graph_id: str, max_results: int = 10
    ) -> list[GraphNode]:
        if max_results < 1:
            raise InvalidRequestError("maxResults must be at least 1")
        return await self.store.search_entities(graph_id, entity_name, max_results)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health(self, services: dict[str, bool] | None = None) -> HealthStatus:
        """Process health: uptime, per-service state and backend reachability."""
        try:
            await self.store.list_graphs()
            store_ok = True
        except Exception:
            logger.exception("Graph store health check failed")
            store_ok = False
        served = {"graphrag": True, "graph_store": store_ok, **(services or {})}
        backends = await self.router.probe()
        default_ok = backends.get(self.router.config.default_backend, False)
        return HealthStatus(
            status="healthy" if all(served.values()) and default_ok else "degraded",
            version=self.version,
            uptime_seconds=round(time.monotonic() - self._started, 3),
            services={name: "SERVING" if ok else "NOT_SERVING" for name, ok in served.items()},
            backends=backends,
        )

    @staticmethod
    def _require_query(query: str) -> str:
        query = (query or "").strip()
        if not query:
            raise InvalidRequestError("query must not be empty")
        return query
