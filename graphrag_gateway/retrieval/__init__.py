"""Context retrieval for grounded generation."""

from graphrag_gateway.retrieval.context import ContextExtractor, ContextItem

__all__ = ["ContextExtractor", "ContextItem"]
