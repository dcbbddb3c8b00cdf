"""Chunk store protocol and an in-memory numpy flat implementation.
SPDX-License-Identifier: BUSL-1.1

Contract:
- insert(units, vectors) -> None; whole batch is rejected on any bad vector
- search(query_vector, limit, filter) -> list[RetrievalResult] ordered by (-score, id)
- delete(ids) / delete_where(filter) -> number of units removed
- count(), get(ids), vectors(ids)

Other store implementations must reproduce the ordering and filter semantics
of InMemoryChunkStore.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence

import numpy as np

from .errors import DimensionMismatchError, InputError, ConfigurationError, require_positive_limit
from .filters import MetadataFilter
from .types import RetrievalResult, Unit, VectorLike, as_array
from .vectormath import SCORERS

logger = logging.getLogger(__name__)


class ChunkStore(Protocol):
    async def insert(self, units: Sequence[Unit], vectors: Sequence[VectorLike]) -> None: ...

    async def search(
        self, query_vector: VectorLike, limit: int, filter: Optional[MetadataFilter] = None
    ) -> List[RetrievalResult]: ...

    async def delete(self, ids: Sequence[str]) -> int: ...

    async def delete_where(self, filter: MetadataFilter) -> int: ...

    async def count(self) -> int: ...

    async def get(self, ids: Sequence[str]) -> List[Unit]: ...

    async def vectors(self, ids: Sequence[str]) -> Dict[str, np.ndarray]: ...


class InMemoryChunkStore:
    """Exact search over every stored unit.

    Vectors live in one dict keyed by unit id; a search stacks the rows that
    pass the filter into a matrix and scores them in one numpy call.
    """

    def __init__(self, dimensions: Optional[int] = None, similarity: str = "cosine") -> None:
        if similarity not in SCORERS:
            raise ConfigurationError(
                f"unknown similarity {similarity!r}; expected one of {sorted(SCORERS)}"
            )
        if dimensions is not None and int(dimensions) <= 0:
            raise ConfigurationError("dimensions must be positive")
        self.similarity = similarity
        self._dim: Optional[int] = int(dimensions) if dimensions is not None else None
        self._units: Dict[str, Unit] = {}
        self._vecs: Dict[str, np.ndarray] = {}
        self._lock = asyncio.Lock()

    @property
    def dimensions(self) -> Optional[int]:
        return self._dim

    async def insert(self, units: Sequence[Unit], vectors: Sequence[VectorLike]) -> None:
        if len(units) != len(vectors):
            raise InputError(f"units/vectors length mismatch: {len(units)} != {len(vectors)}")
        if not units:
            return
        rows = [as_array(v) for v in vectors]
        async with self._lock:
            dim = self._dim if self._dim is not None else rows[0].shape[0]
            if dim == 0:
                raise InputError("vectors cannot be empty")
            for r in rows:
                if r.shape[0] != dim:
                    raise DimensionMismatchError(dim, r.shape[0])
            self._dim = dim
            for u, r in zip(units, rows):
                self._units[u.id] = u
                self._vecs[u.id] = r.copy()
        logger.debug("inserted %d units (total=%d)", len(units), len(self._units))

    async def search(
        self, query_vector: VectorLike, limit: int, filter: Optional[MetadataFilter] = None
    ) -> List[RetrievalResult]:
        require_positive_limit(limit)
        q = as_array(query_vector)
        async with self._lock:
            if not self._units:
                return []
            if q.shape[0] != self._dim:
                raise DimensionMismatchError(self._dim, q.shape[0])
            ids = [uid for uid, u in self._units.items() if filter is None or filter.matches(u)]
            if not ids:
                return []
            units = [self._units[uid] for uid in ids]
            X = np.stack([self._vecs[uid] for uid in ids], axis=0)
        scores = SCORERS[self.similarity](X, q)
        order = sorted(range(len(ids)), key=lambda i: (-float(scores[i]), ids[i]))
        return [
            RetrievalResult(unit=units[i], score=float(scores[i]), metadata={"similarity": self.similarity})
            for i in order[:limit]
        ]

    async def delete(self, ids: Sequence[str]) -> int:
        removed = 0
        async with self._lock:
            for uid in ids:
                if self._units.pop(uid, None) is not None:
                    self._vecs.pop(uid, None)
                    removed += 1
        return removed

    async def delete_where(self, filter: MetadataFilter) -> int:
        async with self._lock:
            doomed = [uid for uid, u in self._units.items() if filter.matches(u)]
            for uid in doomed:
                del self._units[uid]
                del self._vecs[uid]
        if doomed:
            logger.debug("delete_where removed %d units", len(doomed))
        return len(doomed)

    async def count(self) -> int:
        async with self._lock:
            return len(self._units)

    async def get(self, ids: Sequence[str]) -> List[Unit]:
        """Units for the known ids, in the order asked; unknown ids are skipped."""
        async with self._lock:
            return [self._units[uid] for uid in ids if uid in self._units]

    async def vectors(self, ids: Sequence[str]) -> Dict[str, np.ndarray]:
        async with self._lock:
            return {uid: self._vecs[uid].copy() for uid in ids if uid in self._vecs}
