"""Prompt construction for grounded and baseline generation."""

from __future__ import annotations

from graphrag_gateway.graph.models import Graph
from graphrag_gateway.retrieval.context import ContextItem

GRAPHRAG_TEMPLATE = """\
You are a GraphRAG assistant with access to a knowledge graph. Use the following graph context to answer the query:

GRAPH CONTEXT:
{context}

QUERY: {query}

Please provide a comprehensive answer that leverages the relationships and entities in the knowledge graph. \
Focus on connections and patterns that emerge from the graph structure."""

BASELINE_TEMPLATE = """\
You are a traditional RAG assistant. Use the following document entities to answer the query:

DOCUMENT ENTITIES: {entities}

QUERY: {query}

Please provide an answer based on the available entities from the documents."""


def _cap_lines(lines: list[str], max_items: int, budget: int) -> list[str]:
    """First ``max_items`` lines whose joined length stays within ``budget``."""
    kept: list[str] = []
    used = 0
    for line in lines[:max_items]:
        cost = len(line) + (1 if kept else 0)
        if used + cost > budget:
            break
        kept.append(line)
        used += cost
    return kept


def build_graphrag_prompt(
    query: str,
    context: list[ContextItem],
    max_items: int,
    max_chars: int,
) -> str:
    fixed = len(GRAPHRAG_TEMPLATE.format(context="", query=query))
    lines = _cap_lines([c.description for c in context], max_items, max(max_chars - fixed, 0))
    return GRAPHRAG_TEMPLATE.format(context="\n".join(lines), query=query)


def build_baseline_prompt(query: str, graph: Graph, max_chars: int) -> str:
    """Ungrounded prompt: entity labels only, no relationships or scores."""
    fixed = len(BASELINE_TEMPLATE.format(entities="", query=query))
    budget = max(max_chars - fixed, 0)
    kept: list[str] = []
    used = 0
    for node in graph.nodes:
        cost = len(node.label) + (2 if kept else 0)
        if used + cost > budget:
            break
        kept.append(node.label)
        used += cost
    return BASELINE_TEMPLATE.format(entities=", ".join(kept), query=query)
