"""Embedding provider contract, a deterministic stub, and wrappers.
SPDX-License-Identifier: BUSL-1.1

Real text -> vector models live outside this package; anything matching
``EmbeddingProvider`` can be plugged in. ``HashEmbeddingProvider`` produces
deterministic SHA256-seeded unit vectors so tests and local runs need no model.
"""
from __future__ import annotations

import hashlib
import logging
from typing import List, Optional, Protocol, Sequence

import numpy as np

from .cache import EmbeddingCache
from .errors import ConfigurationError, DimensionMismatchError, InputError
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    name: str
    dimensions: int

    async def embed(self, texts: Sequence[str]) -> List[List[float]]: ...

    async def embed_query(self, text: str) -> List[float]: ...


def _det_embed(text: str, dim: int) -> np.ndarray:
    """Unit vector drawn from a generator seeded with the full SHA256 digest of ``text``."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    rng = np.random.default_rng(np.frombuffer(digest, dtype=np.uint32))
    v = rng.standard_normal(dim)
    return v / max(float(np.linalg.norm(v)), 1e-12)


class HashEmbeddingProvider:
    """Same text, same vector; different texts are near-orthogonal."""

    def __init__(self, dimensions: int = 32, query_prefix: str = "") -> None:
        if dimensions <= 0:
            raise ConfigurationError(f"dimensions must be positive, got {dimensions}")
        self.dimensions = int(dimensions)
        self.query_prefix = query_prefix
        self.name = f"hash-{self.dimensions}"
        self.calls = 0

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls += 1
        return [_det_embed(t, self.dimensions).tolist() for t in texts]

    async def embed_query(self, text: str) -> List[float]:
        self.calls += 1
        return _det_embed(self.query_prefix + text, self.dimensions).tolist()


def check_embeddings(provider: EmbeddingProvider, texts: Sequence[str], vectors: Sequence[Sequence[float]]) -> None:
    if len(vectors) != len(texts):
        raise InputError(f"{provider.name}: returned {len(vectors)} vectors for {len(texts)} texts")
    for v in vectors:
        if len(v) != provider.dimensions:
            raise DimensionMismatchError(provider.dimensions, len(v))


class CachedEmbeddingProvider:
    """Consult an EmbeddingCache before calling the wrapped provider.

    Document and query embeddings are cached under separate keys since a
    provider may embed them differently. Misses in one ``embed`` call are sent
    to the wrapped provider as a single batch.
    """

    def __init__(self, provider: EmbeddingProvider, cache: Optional[EmbeddingCache] = None) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else EmbeddingCache()
        self.name = f"cached_{provider.name}"
        self.dimensions = provider.dimensions

    def _key(self, kind: str, text: str) -> str:
        return f"{self.provider.name}\x00{kind}\x00{text}"

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        keys = [self._key("doc", t) for t in texts]
        found = await self.cache.get_many(keys)
        missing = [i for i, k in enumerate(keys) if k not in found]
        if missing:
            # de-duplicate repeated texts within the batch
            todo = list(dict.fromkeys(texts[i] for i in missing))
            fresh = await self.provider.embed(todo)
            check_embeddings(self.provider, todo, fresh)
            new = {self._key("doc", t): list(v) for t, v in zip(todo, fresh)}
            await self.cache.set_many(new)
            found.update(new)
        logger.debug("embedding cache: %d/%d hits", len(texts) - len(missing), len(texts))
        return [found[k] for k in keys]

    async def embed_query(self, text: str) -> List[float]:
        key = self._key("query", text)
        hit = await self.cache.get(key)
        if hit is not None:
            return hit
        vec = list(await self.provider.embed_query(text))
        await self.cache.set(key, vec)
        return vec


class RateLimitedEmbeddingProvider:
    """Take one token from a RateLimiter before each call to the wrapped provider."""

    def __init__(self, provider: EmbeddingProvider, limiter: RateLimiter) -> None:
        self.provider = provider
        self.limiter = limiter
        self.name = provider.name
        self.dimensions = provider.dimensions

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        await self.limiter.acquire()
        return await self.provider.embed(texts)

    async def embed_query(self, text: str) -> List[float]:
        await self.limiter.acquire()
        return await self.provider.embed_query(text)
