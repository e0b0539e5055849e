"""GraphStore backed by one JSON document per graph on disk."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path

from graphrag_gateway.errors import GraphNotFoundError, InvalidGraphError
from graphrag_gateway.graph.base import SnapshotStoreMixin
from graphrag_gateway.graph.builder import graph_from_dict
from graphrag_gateway.graph.cache import GraphCache
from graphrag_gateway.graph.models import Graph

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileGraphStore(SnapshotStoreMixin):
    """Loads ``<data_dir>/<graph_id>.json`` on demand, through a GraphCache."""

    def __init__(
        self,
        data_dir: str | Path,
        cache: GraphCache | None = None,
        traverse_max_nodes: int = 50,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.cache = cache or GraphCache()
        self.traverse_max_nodes = traverse_max_nodes

    def _path(self, graph_id: str) -> Path:
        if not _SAFE_ID.match(graph_id) or graph_id.startswith("."):
            raise GraphNotFoundError(graph_id)
        return self.data_dir / f"{graph_id}.json"

    def _read(self, graph_id: str) -> Graph:
        path = self._path(graph_id)
        if not path.is_file():
            raise GraphNotFoundError(graph_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidGraphError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise InvalidGraphError(f"Graph document {path} is not a JSON object")
        graph = graph_from_dict(data, graph_id=graph_id)
        logger.info("Loaded graph %s from %s", graph_id, path)
        return graph

    async def get(self, graph_id: str) -> Graph:
        return await self.cache.get_or_load(graph_id, lambda: asyncio.to_thread(self._read, graph_id))

    async def list_graphs(self) -> list[Graph]:
        if not self.data_dir.is_dir():
            return []
        graphs = []
        for path in sorted(self.data_dir.glob("*.json")):
            try:
                graphs.append(await self.get(path.stem))
            except InvalidGraphError:
                logger.warning("Skipping invalid graph document %s", path, exc_info=True)
        return graphs

    def invalidate(self, graph_id: str) -> None:
        self.cache.invalidate(graph_id)
