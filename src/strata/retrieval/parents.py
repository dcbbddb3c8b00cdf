"""Parent unit lookups for hierarchical retrieval.
SPDX-License-Identifier: BUSL-1.1

A lookup answers ``parent(parent_id) -> Unit | None``. None means the parent
is unknown; exceptions mean the lookup itself failed and are propagated.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Protocol

from ..cache import AsyncLRU
from ..store import ChunkStore
from ..types import Unit

logger = logging.getLogger(__name__)


class ParentLookup(Protocol):
    async def parent(self, parent_id: str) -> Optional[Unit]: ...


class MappingParentLookup:
    """Parents held in a plain dict, filled at ingest time."""

    def __init__(self, parents: Optional[Iterable[Unit]] = None) -> None:
        self._parents: Dict[str, Unit] = {}
        if parents is not None:
            self.add_parents(parents)

    def add_parents(self, parents: Iterable[Unit]) -> int:
        n = 0
        for p in parents:
            self._parents[p.id] = p
            n += 1
        return n

    def remove(self, ids: Iterable[str]) -> int:
        return sum(self._parents.pop(i, None) is not None for i in ids)

    async def parent(self, parent_id: str) -> Optional[Unit]:
        return self._parents.get(parent_id)

    def __len__(self) -> int:
        return len(self._parents)


class StoreParentLookup:
    """Resolve parents that were inserted into the chunk store next to their children."""

    def __init__(self, store: ChunkStore) -> None:
        self.store = store

    async def parent(self, parent_id: str) -> Optional[Unit]:
        found = await self.store.get([parent_id])
        return found[0] if found else None


class CachedParentLookup:
    """LRU in front of another lookup. Misses (None) are not cached."""

    def __init__(self, inner: ParentLookup, cache_size: int = 100) -> None:
        self.inner = inner
        self._cache: AsyncLRU[Unit] = AsyncLRU(max_size=cache_size)

    async def parent(self, parent_id: str) -> Optional[Unit]:
        hit = await self._cache.get(parent_id)
        if hit is not None:
            return hit
        unit = await self.inner.parent(parent_id)
        if unit is not None:
            await self._cache.set(parent_id, unit)
        return unit

    async def forget(self, ids: Iterable[str]) -> int:
        """Evict cached parents, e.g. after they were deleted or replaced."""
        n = 0
        for pid in ids:
            if await self._cache.remove(pid) is not None:
                n += 1
        return n

    async def clear(self) -> None:
        await self._cache.clear()

    @property
    def cached_count(self) -> int:
        return len(self._cache)
