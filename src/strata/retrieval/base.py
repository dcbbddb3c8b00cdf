"""Retriever contract and shared query handling.
SPDX-License-Identifier: BUSL-1.1

Contract (inputs/outputs):
- retrieve(query, limit, filter=None) -> list[RetrievalResult]
- query is either text (embedded through the retriever's embedding provider)
  or a query vector
- limit <= 0 raises ConfigurationError before any work is done
- results are ordered by (-score, id); zero results is not an error

Errors from the store, graph or embedding provider propagate unchanged.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Union

import numpy as np

from ..embeddings import EmbeddingProvider
from ..errors import InputError, require_positive_limit
from ..filters import MetadataFilter
from ..types import RetrievalResult, VectorLike, as_array

Query = Union[str, VectorLike]


class Retriever(Protocol):
    name: str

    async def retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter] = None
    ) -> List[RetrievalResult]: ...


class BaseRetriever:
    """Common plumbing: limit validation and query embedding."""

    name = "base"
    # set when the retriever cannot work from a query vector alone
    needs_text = False

    def __init__(self, embedder: Optional[EmbeddingProvider] = None) -> None:
        self.embedder = embedder

    async def query_vector(self, query: Query) -> np.ndarray:
        if isinstance(query, str):
            if self.embedder is None:
                raise InputError(f"{self.name}: text query needs an embedding provider")
            return as_array(await self.embedder.embed_query(query))
        return as_array(query)

    async def retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter] = None
    ) -> List[RetrievalResult]:
        require_positive_limit(limit)
        return await self._retrieve(query, limit, filter)

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
