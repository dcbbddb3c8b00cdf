"""Maximal Marginal Relevance re-ranking on top of another retriever.
SPDX-License-Identifier: BUSL-1.1
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from ..embeddings import EmbeddingProvider
from ..errors import ConfigurationError
from ..filters import MetadataFilter
from ..fusion import mmr_select
from ..store import ChunkStore
from ..types import RetrievalResult, as_array, with_metadata
from .base import BaseRetriever, Query, Retriever

logger = logging.getLogger(__name__)


class MMRRetriever(BaseRetriever):
    """Fetch ``limit * candidate_multiplier`` results from ``base``, then pick
    ``limit`` of them trading relevance against redundancy.

    ``lambda_`` = 1.0 is pure relevance, 0.0 pure diversity. Candidate vectors
    come from the unit itself, then the store, then the embedding provider;
    candidates with no vector from any source are skipped.
    """

    name = "mmr"

    def __init__(
        self,
        base: Retriever,
        store: Optional[ChunkStore] = None,
        embedder: Optional[EmbeddingProvider] = None,
        lambda_: float = 0.5,
        candidate_multiplier: int = 3,
    ) -> None:
        super().__init__(embedder)
        if not 0.0 <= lambda_ <= 1.0:
            raise ConfigurationError(f"lambda_ must be in [0, 1], got {lambda_}")
        if candidate_multiplier < 1:
            raise ConfigurationError(f"candidate_multiplier must be >= 1, got {candidate_multiplier}")
        self.base = base
        self.store = store
        self.lambda_ = float(lambda_)
        self.candidate_multiplier = int(candidate_multiplier)
        self.needs_text = bool(getattr(base, "needs_text", False))

    async def _candidate_vectors(self, pool: List[RetrievalResult]) -> Dict[str, np.ndarray]:
        vecs: Dict[str, np.ndarray] = {r.id: as_array(r.unit.vector) for r in pool if r.unit.vector is not None}
        missing = [r.id for r in pool if r.id not in vecs]
        if missing and self.store is not None:
            vecs.update(await self.store.vectors(missing))
        todo = [r for r in pool if r.id not in vecs]
        if todo and self.embedder is not None:
            embedded = await self.embedder.embed([r.unit.content for r in todo])
            vecs.update({r.id: as_array(v) for r, v in zip(todo, embedded)})
        skipped = sum(r.id not in vecs for r in pool)
        if skipped:
            logger.warning("mmr: %d candidate(s) have no vector and were skipped", skipped)
        return vecs

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        q = await self.query_vector(query)
        # text-only bases get the raw query; the rest reuse the embedded vector
        pool = await self.base.retrieve(query if self.needs_text else q, limit * self.candidate_multiplier, filter)
        if not pool:
            return []
        vecs = await self._candidate_vectors(pool)
        picked = mmr_select(q, pool, vecs, limit, self.lambda_)
        return [with_metadata(r, {"retriever": self.name}) for r in picked]
