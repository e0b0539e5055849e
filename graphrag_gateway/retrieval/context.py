"""Query-relevant context selection from a graph."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from graphrag_gateway.graph.models import Graph, GraphNode
from graphrag_gateway.wire import WireModel

LABEL_MATCH_SCORE = 10.0
TERM_MATCH_SCORE = 2.0
CONNECTION_WEIGHT = 0.5
CONNECTION_BONUS_CAP = 5.0
MIN_TERM_LENGTH = 3
MAX_RELATIONSHIP_ITEMS = 2


class ContextItem(WireModel):
    """One piece of grounding context: an entity or a relationship."""

    type: Literal["entity", "relationship"]
    description: str
    relevance_score: float = Field(ge=0.0, le=1.0)
    entity_id: str | None = None


def score_node(node: GraphNode, query_lower: str, terms: list[str]) -> float:
    label = node.label.lower()
    score = 0.0
    if query_lower and label and (label in query_lower or query_lower in label):
        score += LABEL_MATCH_SCORE
    score += TERM_MATCH_SCORE * sum(1 for term in terms if term in label)
    score += min(node.connections * CONNECTION_WEIGHT, CONNECTION_BONUS_CAP)
    return score


class ContextExtractor:
    """Scores graph nodes against a query and returns the best as context.

    Pure and deterministic: the same query and graph always give the same items.
    """

    def extract(self, query: str, graph: Graph, max_items: int = 3) -> list[ContextItem]:
        query_lower = query.strip().lower()
        terms = [t for t in query_lower.split() if len(t) >= MIN_TERM_LENGTH]

        scored = [(score_node(node, query_lower, terms), node) for node in graph.nodes]
        # sorted() is stable, so equal scores keep insertion order
        ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: -s[0])[: max(max_items, 0)]
        if not ranked:
            return []

        top = ranked[0][0]
        items = [
            ContextItem(
                type="entity",
                description=f"{node.label} ({node.type.value}, {node.connections} connections)",
                relevance_score=round(score / top, 4),
                entity_id=node.id,
            )
            for score, node in ranked
        ]

        retained = {node.id for _, node in ranked}
        labels = {node.id: node.label for node in graph.nodes}
        relationships = 0
        for edge in graph.edges:
            if relationships >= MAX_RELATIONSHIP_ITEMS:
                break
            if edge.source in retained or edge.target in retained:
                items.append(
                    ContextItem(
                        type="relationship",
                        description=f"{labels[edge.source]} → {labels[edge.target]} ({edge.label})",
                        relevance_score=edge.weight,
                    )
                )
                relationships += 1
        return items
