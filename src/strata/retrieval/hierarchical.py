"""Search children, return parents.
SPDX-License-Identifier: BUSL-1.1

Children are matched with ``limit * child_multiplier`` candidates restricted
to ``is_child == True`` (AND the caller's filter), grouped by ``parent_id`` and
scored per parent with the chosen aggregation:
- max: best child score
- average: mean child score
- sum: total child score (favours parents with many matching children)

The top ``limit`` parents are resolved through a ParentLookup. A parent that
cannot be found is dropped with a warning, so fewer than ``limit`` results is
possible; a failing lookup raises.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from ..embeddings import EmbeddingProvider
from ..errors import ConfigurationError
from ..filters import MetadataFilter, combine, equals
from ..store import ChunkStore
from ..types import RetrievalResult
from .base import BaseRetriever, Query
from .parents import ParentLookup

logger = logging.getLogger(__name__)

AGGREGATIONS = ("max", "average", "sum")


def aggregate(scores: List[float], method: str) -> float:
    if method == "max":
        return max(scores)
    if method == "sum":
        return sum(scores)
    return sum(scores) / len(scores)


class HierarchicalRetriever(BaseRetriever):
    name = "hierarchical"

    def __init__(
        self,
        store: ChunkStore,
        parents: ParentLookup,
        embedder: Optional[EmbeddingProvider] = None,
        child_multiplier: int = 3,
        aggregation: str = "max",
    ) -> None:
        super().__init__(embedder)
        if aggregation not in AGGREGATIONS:
            raise ConfigurationError(f"unknown aggregation {aggregation!r}; expected one of {AGGREGATIONS}")
        if child_multiplier < 1:
            raise ConfigurationError(f"child_multiplier must be >= 1, got {child_multiplier}")
        self.store = store
        self.parents = parents
        self.child_multiplier = int(child_multiplier)
        self.aggregation = aggregation

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        q = await self.query_vector(query)
        children = await self.store.search(
            q, limit * self.child_multiplier, combine(filter, equals("is_child", True))
        )
        groups: Dict[str, List[RetrievalResult]] = {}
        for r in children:
            pid = r.unit.parent_id
            if pid is None:
                continue
            groups.setdefault(pid, []).append(r)
        if not groups:
            return []

        ranked = sorted(
            ((pid, aggregate([r.score for r in rs], self.aggregation)) for pid, rs in groups.items()),
            key=lambda t: (-t[1], t[0]),
        )[:limit]
        units = await asyncio.gather(*(self.parents.parent(pid) for pid, _ in ranked))

        out: List[RetrievalResult] = []
        for (pid, score), unit in zip(ranked, units):
            if unit is None:
                logger.warning("parent %s not found; dropping from results", pid)
                continue
            matched = groups[pid]
            out.append(
                RetrievalResult(
                    unit=unit,
                    score=score,
                    metadata={
                        "retriever": self.name,
                        "matched_children": len(matched),
                        "matched_child_ids": [r.id for r in matched],
                        "best_child_score": max(r.score for r in matched),
                        "aggregation": self.aggregation,
                    },
                )
            )
        return out
