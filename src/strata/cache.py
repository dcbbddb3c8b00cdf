"""Async LRU caches with optional TTL.
SPDX-License-Identifier: BUSL-1.1

``AsyncLRU`` is the shared building block (used by the cached parent lookup);
``EmbeddingCache`` specializes it for text -> vector entries and keeps hit and
miss counters. Entries live in an OrderedDict ordered least- to most-recently
used; every operation runs under one asyncio.Lock with no await inside it.
"""
from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .errors import ConfigurationError

V = TypeVar("V")


class AsyncLRU(Generic[V]):
    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ConfigurationError(f"max_size must be >= 1, got {max_size}")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.max_size = int(max_size)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: "OrderedDict[str, Tuple[V, float]]" = OrderedDict()
        self._lock = asyncio.Lock()

    def _expired(self, stamp: float, now: float) -> bool:
        return self.ttl_seconds is not None and now - stamp > self.ttl_seconds

    def _get_locked(self, key: str) -> Optional[V]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, stamp = entry
        if self._expired(stamp, self._clock()):
            del self._store[key]
            return None
        self._store.move_to_end(key)  # MRU
        return value

    def _set_locked(self, key: str, value: V) -> None:
        self._store.pop(key, None)
        while len(self._store) >= self.max_size:
            self._store.popitem(last=False)  # LRU
        self._store[key] = (value, self._clock())

    async def get(self, key: str) -> Optional[V]:
        async with self._lock:
            return self._get_locked(key)

    async def set(self, key: str, value: V) -> None:
        async with self._lock:
            self._set_locked(key, value)

    async def remove(self, key: str) -> Optional[V]:
        async with self._lock:
            entry = self._store.pop(key, None)
            return None if entry is None else entry[0]

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()

    async def prune_expired(self) -> int:
        """Drop expired entries now; returns how many were dropped."""
        if self.ttl_seconds is None:
            return 0
        async with self._lock:
            now = self._clock()
            doomed = [k for k, (_, stamp) in self._store.items() if self._expired(stamp, now)]
            for k in doomed:
                del self._store[k]
            return len(doomed)

    def __len__(self) -> int:
        return len(self._store)


class EmbeddingCache(AsyncLRU[List[float]]):
    """LRU + TTL cache of embedding vectors keyed by text."""

    def __init__(
        self,
        max_size: int = 10000,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(max_size=max_size, ttl_seconds=ttl_seconds, clock=clock)
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[List[float]]:
        async with self._lock:
            value = self._get_locked(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    async def get_many(self, keys: Sequence[str]) -> Dict[str, List[float]]:
        async with self._lock:
            out: Dict[str, List[float]] = {}
            for k in keys:
                value = self._get_locked(k)
                if value is None:
                    self.misses += 1
                else:
                    self.hits += 1
                    out[k] = value
            return out

    async def set_many(self, entries: Mapping[str, List[float]]) -> None:
        async with self._lock:
            for k, v in entries.items():
                self._set_locked(k, v)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()
            self.hits = 0
            self.misses = 0

    def reset_statistics(self) -> None:
        self.hits = 0
        self.misses = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._store),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }
