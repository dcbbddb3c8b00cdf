from __future__ import annotations

import numpy as np
import pytest

from strata.cache import EmbeddingCache
from strata.embeddings import CachedEmbeddingProvider, HashEmbeddingProvider, RateLimitedEmbeddingProvider
from strata.errors import ConfigurationError
from strata.ratelimit import RateLimiter


@pytest.mark.asyncio
async def test_hash_embeddings_are_deterministic_unit_vectors():
    p = HashEmbeddingProvider(dimensions=24)
    a1, b = await p.embed(["alpha", "beta"])
    (a2,) = await p.embed(["alpha"])
    assert len(a1) == 24
    assert a1 == a2
    assert np.isclose(np.linalg.norm(a1), 1.0)
    assert not np.allclose(a1, b)
    assert await p.embed_query("alpha") == a1


def test_hash_embeddings_validation():
    with pytest.raises(ConfigurationError):
        HashEmbeddingProvider(dimensions=0)


@pytest.mark.asyncio
async def test_cached_provider_only_embeds_misses():
    inner = HashEmbeddingProvider(dimensions=8)
    cached = CachedEmbeddingProvider(inner, EmbeddingCache(max_size=100))
    first = await cached.embed(["x", "y", "x"])
    assert inner.calls == 1
    assert first[0] == first[2]
    again = await cached.embed(["y", "x"])
    assert inner.calls == 1
    assert again == [first[1], first[0]]

    q1 = await cached.embed_query("x")
    q2 = await cached.embed_query("x")
    assert inner.calls == 2
    assert q1 == q2
    assert cached.name == "cached_hash-8"
    assert cached.dimensions == 8


@pytest.mark.asyncio
async def test_rate_limited_provider_takes_tokens():
    limiter = RateLimiter(1, bucket_size=3)
    p = RateLimitedEmbeddingProvider(HashEmbeddingProvider(dimensions=4), limiter)
    await p.embed(["a", "b"])
    await p.embed_query("c")
    assert await limiter.available_tokens() < 2.0
