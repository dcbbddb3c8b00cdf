"""Adapter for an external lexical (keyword) scorer.
SPDX-License-Identifier: BUSL-1.1

The scorer is any async callable ``(query_text, limit, filter) ->
[(unit_id, score), ...]``; ranking algorithms such as BM25 live outside this
package. Ids the store does not know are dropped, and units are re-checked
against the filter so a scorer that ignores it cannot leak results.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from ..errors import InputError
from ..filters import MetadataFilter
from ..store import ChunkStore
from ..types import RetrievalResult, sort_results
from .base import BaseRetriever, Query

logger = logging.getLogger(__name__)

LexicalScorer = Callable[[str, int, Optional[MetadataFilter]], Awaitable[Sequence[Tuple[str, float]]]]


class LexicalRetriever(BaseRetriever):
    name = "lexical"
    needs_text = True

    def __init__(self, scorer: LexicalScorer, store: ChunkStore) -> None:
        super().__init__(None)
        self.scorer = scorer
        self.store = store

    async def _retrieve(
        self, query: Query, limit: int, filter: Optional[MetadataFilter]
    ) -> List[RetrievalResult]:
        if not isinstance(query, str):
            raise InputError("lexical retrieval needs query text")
        hits = list(await self.scorer(query, limit, filter))
        if not hits:
            return []
        best = {}
        for uid, score in hits:
            if uid not in best or score > best[uid]:
                best[uid] = float(score)
        units = await self.store.get(list(best))
        if len(units) < len(best):
            logger.debug("lexical scorer returned %d unknown id(s)", len(best) - len(units))
        results = [
            RetrievalResult(unit=u, score=best[u.id], metadata={"retriever": self.name})
            for u in units
            if filter is None or filter.matches(u)
        ]
        return sort_results(results)[:limit]
