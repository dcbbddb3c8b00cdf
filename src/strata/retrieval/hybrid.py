"""Hybrid retrieval: run several strategies and fuse their rankings.
SPDX-License-Identifier: BUSL-1.1

Methods:
- weighted: min-max normalize each strategy's scores, then weighted sum
- rrf: weighted reciprocal-rank fusion, ``w / (k + rank)``

With two strategies and no explicit weights the first one gets 0.7 and the
second 0.3 (vector first, keyword second is the usual pairing); otherwise
weights default to uniform.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from ..errors import ConfigurationError
from ..filters import MetadataFilter
from ..fusion import check_weights, reciprocal_rank_fusion, weighted_fusion
from ..types import RetrievalResult, with_metadata
from .base import BaseRetriever, Query, Retriever

logger = logging.getLogger(__name__)

METHODS = ("weighted", "rrf")


def default_weights(n: int) -> List[float]:
    if n == 2:
        return [0.7, 0.3]
    return [1.0 / n] * n


def _unique_names(retrievers: Sequence[Retriever]) -> List[str]:
    names: List[str] = []
    for i, r in enumerate(retrievers):
        name = getattr(r, "name", "") or f"retriever{i}"
        if name in names:
            name = f"{name}_{i}"
        names.append(name)
    return names


class HybridRetriever(BaseRetriever):
    name = "hybrid"

    def __init__(
        self,
        retrievers: Sequence[Retriever],
        weights: Optional[Sequence[float]] = None,
        method: str = "weighted",
        fetch_multiplier: int = 2,
        rrf_k: int = 60,
    ) -> None:
        super().__init__(None)
        if len(retrievers) < 2:
            raise ConfigurationError("hybrid retrieval needs at least two retrievers")
        if method not in METHODS:
            raise ConfigurationError(f"unknown fusion method {method!r}; expected one of {METHODS}")
        if fetch_multiplier < 1:
            raise ConfigurationError(f"fetch_multiplier must be >= 1, got {fetch_multiplier}")
        if rrf_k < 1:
            raise ConfigurationError(f"rrf_k must be >= 1, got {rrf_k}")
        self.retrievers = list(retrievers)
        self.weights = check_weights(
            weights if weights is not None else default_weights(len(self.retrievers)), len(self.retrievers)
        )
        if sum(self.weights) <= 0:
            raise ConfigurationError("at least one weight must be positive")
        self.method = method
        self.fetch_multiplier = int(fetch_multiplier)
        self.rrf_k = int(rrf_k)
        self.names = _unique_names(self.retrievers)
        self.needs_text = any(getattr(r, "needs_text", False) for r in self.retrievers)

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        fetch = limit * self.fetch_multiplier
        lists = await asyncio.gather(*(r.retrieve(query, fetch, filter) for r in self.retrievers))
        logger.debug("hybrid candidates: %s", {n: len(rs) for n, rs in zip(self.names, lists)})
        if self.method == "rrf":
            fused = reciprocal_rank_fusion(lists, self.weights, k=self.rrf_k, names=self.names, limit=limit)
        else:
            fused = weighted_fusion(lists, self.weights, names=self.names, limit=limit)
        return [with_metadata(r, {"retriever": self.name}) for r in fused]
