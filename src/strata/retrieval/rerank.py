"""Second-stage re-scoring of another retriever's candidates.
SPDX-License-Identifier: BUSL-1.1

A reranker (typically a cross-encoder behind an API) rescoring
``(query_text, candidates)`` lives outside this package; anything matching
``Reranker`` can be plugged in. Failures of the reranker surface as
RetrievalError with the original exception chained.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from ..errors import ConfigurationError, InputError, RetrievalError
from ..filters import MetadataFilter
from ..types import RetrievalResult, sort_results, with_metadata
from .base import BaseRetriever, Query, Retriever

logger = logging.getLogger(__name__)


class Reranker(Protocol):
    name: str

    async def rerank(self, query: str, results: Sequence[RetrievalResult]) -> List[RetrievalResult]: ...


class RerankerRetriever(BaseRetriever):
    """Fetch ``initial_limit`` (default ``limit * fetch_multiplier``) candidates
    from ``base``, rescore them with ``reranker`` and keep the top ``limit``."""

    needs_text = True

    def __init__(
        self,
        base: Retriever,
        reranker: Reranker,
        initial_limit: Optional[int] = None,
        fetch_multiplier: int = 3,
    ) -> None:
        super().__init__(None)
        if initial_limit is not None and initial_limit < 1:
            raise ConfigurationError(f"initial_limit must be >= 1, got {initial_limit}")
        if fetch_multiplier < 1:
            raise ConfigurationError(f"fetch_multiplier must be >= 1, got {fetch_multiplier}")
        self.base = base
        self.reranker = reranker
        self.initial_limit = initial_limit
        self.fetch_multiplier = int(fetch_multiplier)
        self.name = f"reranker_{getattr(base, 'name', 'base')}"

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        if not isinstance(query, str):
            raise InputError("reranking needs query text")
        fetch = self.initial_limit or limit * self.fetch_multiplier
        candidates = await self.base.retrieve(query, fetch, filter)
        if not candidates:
            return []
        first_stage = {r.id: r.score for r in candidates}
        try:
            rescored = await self.reranker.rerank(query, candidates)
        except Exception as exc:
            raise RetrievalError(f"reranking failed: {exc}") from exc
        # rerankers may only reorder what they were given
        known = [r for r in rescored if r.id in first_stage]
        if len(known) < len(rescored):
            logger.warning("%s: reranker returned %d unknown result(s)", self.name, len(rescored) - len(known))
        return [
            with_metadata(r, {"retriever": self.name, "base_score": first_stage[r.id]})
            for r in sort_results(known)[:limit]
        ]
