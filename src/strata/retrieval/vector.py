"""Plain vector similarity retrieval.
SPDX-License-Identifier: BUSL-1.1
"""
from __future__ import annotations

from typing import List, Optional

from ..embeddings import EmbeddingProvider
from ..filters import MetadataFilter
from ..store import ChunkStore
from ..types import RetrievalResult, with_metadata
from .base import BaseRetriever, Query


class VectorRetriever(BaseRetriever):
    name = "vector"

    def __init__(
        self,
        store: ChunkStore,
        embedder: Optional[EmbeddingProvider] = None,
        similarity_threshold: Optional[float] = None,
    ) -> None:
        super().__init__(embedder)
        self.store = store
        self.similarity_threshold = similarity_threshold

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        q = await self.query_vector(query)
        results = await self.store.search(q, limit, filter)
        if self.similarity_threshold is not None:
            results = [r for r in results if r.score >= self.similarity_threshold]
        return [with_metadata(r, {"retriever": self.name}) for r in results]
