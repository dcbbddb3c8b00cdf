"""Graph-expanded retrieval.
SPDX-License-Identifier: BUSL-1.1

Seeds come from a vector search of ``max(3, limit // 2)`` units. Expansion is
breadth-first for ``hops`` rounds: from every frontier unit, follow outgoing
edges with ``weight >= edge_weight_threshold`` to units not yet visited. A unit
reached at hop h (1-based) scores ``source_score * weight / (h + 1)``; when
several frontier units reach it in the same round the best score wins. Every
unit is visited at most once, so cycles terminate.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Set

from ..embeddings import EmbeddingProvider
from ..errors import ConfigurationError
from ..filters import MetadataFilter
from ..graph import RelationshipGraph
from ..store import ChunkStore
from ..types import RetrievalResult, Unit, sort_results
from .base import BaseRetriever, Query

logger = logging.getLogger(__name__)


class GraphRetriever(BaseRetriever):
    name = "graph"

    def __init__(
        self,
        graph: RelationshipGraph,
        store: ChunkStore,
        embedder: Optional[EmbeddingProvider] = None,
        hops: int = 2,
        edge_weight_threshold: float = 0.7,
    ) -> None:
        super().__init__(embedder)
        if hops < 0:
            raise ConfigurationError(f"hops cannot be negative, got {hops}")
        if not 0.0 <= edge_weight_threshold <= 1.0:
            raise ConfigurationError(f"edge_weight_threshold must be in [0, 1], got {edge_weight_threshold}")
        self.graph = graph
        self.store = store
        self.hops = int(hops)
        self.edge_weight_threshold = float(edge_weight_threshold)

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        q = await self.query_vector(query)
        seeds = await self.store.search(q, max(3, limit // 2), filter)
        if not seeds:
            return []

        units: Dict[str, Unit] = {r.id: r.unit for r in seeds}
        scores: Dict[str, float] = {r.id: r.score for r in seeds}
        hop_of: Dict[str, int] = {r.id: 0 for r in seeds}
        visited: Set[str] = set(scores)
        frontier = [r.id for r in seeds]

        for hop in range(self.hops):
            if not frontier:
                break
            decay = 1.0 / (hop + 2)
            edge_lists = await asyncio.gather(*(self.graph.neighbors(uid) for uid in frontier))
            reached: Dict[str, float] = {}
            for uid, edges in zip(frontier, edge_lists):
                for e in edges:
                    if e.target_id in visited or e.weight < self.edge_weight_threshold:
                        continue
                    s = scores[uid] * e.weight * decay
                    if s > reached.get(e.target_id, float("-inf")):
                        reached[e.target_id] = s
            for uid, s in reached.items():
                scores[uid] = s
                hop_of[uid] = hop + 1
            visited.update(reached)
            frontier = sorted(reached)

        expanded = [uid for uid in scores if uid not in units]
        found = await asyncio.gather(*(self.graph.unit(uid) for uid in expanded))
        for uid, unit in zip(expanded, found):
            if unit is None:
                logger.debug("graph node %s vanished during expansion", uid)
                continue
            if filter is not None and not filter.matches(unit):
                continue
            units[uid] = unit

        results = [
            RetrievalResult(unit=units[uid], score=scores[uid], metadata={"retriever": self.name, "hop": hop_of[uid]})
            for uid in scores
            if uid in units
        ]
        return sort_results(results)[:limit]
