from __future__ import annotations

from typing import List

import numpy as np
import pytest

from strata.errors import ConfigurationError
from strata.fusion import mmr_select, normalize_scores, reciprocal_rank_fusion, weighted_fusion
from strata.retrieval import HybridRetriever, MMRRetriever, VectorRetriever
from strata.types import RetrievalResult


class FixedRetriever:
    """Returns canned results and records the limit it was asked for."""

    def __init__(self, name: str, results: List[RetrievalResult]) -> None:
        self.name = name
        self.results = results
        self.limits: List[int] = []
        self.queries: list = []

    async def retrieve(self, query, limit, filter=None):
        self.limits.append(limit)
        self.queries.append(query)
        return self.results[:limit]


def _results(make_unit, pairs) -> List[RetrievalResult]:
    return [RetrievalResult(unit=make_unit(uid), score=s) for uid, s in pairs]


def test_normalize_scores():
    assert normalize_scores([]) == []
    assert normalize_scores([0.4, 0.4, 0.4]) == [1.0, 1.0, 1.0]
    assert np.allclose(normalize_scores([2.0, 4.0, 3.0]), [0.0, 1.0, 0.5])


def test_weighted_fusion(make_unit):
    dense = _results(make_unit, [("a", 0.9), ("b", 0.5), ("c", 0.1)])
    sparse = _results(make_unit, [("c", 10.0), ("a", 0.0)])
    fused = weighted_fusion([dense, sparse], [0.7, 0.3], names=["dense", "sparse"])
    assert [r.id for r in fused] == ["a", "b", "c"]
    assert np.allclose([r.score for r in fused], [0.7, 0.35, 0.3])
    assert fused[0].metadata["scores"] == {"dense": pytest.approx(0.7), "sparse": pytest.approx(0.0)}
    assert "sparse" not in fused[1].metadata["scores"]


def test_reciprocal_rank_fusion(make_unit):
    dense = _results(make_unit, [("a", 0.9), ("b", 0.5), ("c", 0.1)])
    sparse = _results(make_unit, [("c", 10.0), ("a", 0.0)])
    fused = reciprocal_rank_fusion([dense, sparse], [0.7, 0.3], k=60)
    assert [r.id for r in fused] == ["a", "c", "b"]
    assert np.isclose(fused[0].score, 0.7 / 61 + 0.3 / 62)
    assert np.isclose(fused[2].score, 0.7 / 62)


def test_fusion_weight_validation(make_unit):
    lists = [_results(make_unit, [("a", 1.0)])] * 2
    with pytest.raises(ConfigurationError):
        weighted_fusion(lists, [1.0])
    with pytest.raises(ConfigurationError):
        weighted_fusion(lists, [1.0, -0.1])
    with pytest.raises(ConfigurationError):
        reciprocal_rank_fusion(lists, k=0)


# ---- hybrid -------------------------------------------------------------------

@pytest.mark.asyncio
async def test_hybrid_default_weights_favor_first(make_unit):
    dense = FixedRetriever("dense", _results(make_unit, [("a", 0.9), ("b", 0.5), ("c", 0.1)]))
    sparse = FixedRetriever("sparse", _results(make_unit, [("c", 10.0), ("a", 0.0)]))
    h = HybridRetriever([dense, sparse])
    assert h.weights == [0.7, 0.3]

    res = await h.retrieve("query", limit=2)
    assert [r.id for r in res] == ["a", "b"]
    assert dense.limits == [4] and sparse.limits == [4]
    assert res[0].metadata["retriever"] == "hybrid"
    assert set(res[0].metadata["scores"]) == {"dense", "sparse"}


@pytest.mark.asyncio
async def test_hybrid_rrf(make_unit):
    dense = FixedRetriever("dense", _results(make_unit, [("a", 0.9), ("b", 0.5), ("c", 0.1)]))
    sparse = FixedRetriever("sparse", _results(make_unit, [("c", 10.0), ("a", 0.0)]))
    res = await HybridRetriever([dense, sparse], method="rrf").retrieve("query", limit=3)
    assert [r.id for r in res] == ["a", "c", "b"]


@pytest.mark.asyncio
async def test_hybrid_uniform_weights_and_name_clash(make_unit):
    rs = [FixedRetriever("same", _results(make_unit, [(x, 1.0)])) for x in ("a", "b", "c")]
    h = HybridRetriever(rs)
    assert np.allclose(h.weights, [1 / 3] * 3)
    assert len(set(h.names)) == 3
    res = await h.retrieve("q", limit=3)
    assert [r.id for r in res] == ["a", "b", "c"]


def test_hybrid_config_errors(make_unit):
    one = FixedRetriever("one", [])
    two = FixedRetriever("two", [])
    with pytest.raises(ConfigurationError):
        HybridRetriever([one])
    with pytest.raises(ConfigurationError):
        HybridRetriever([one, two], weights=[1.0])
    with pytest.raises(ConfigurationError):
        HybridRetriever([one, two], weights=[0.0, 0.0])
    with pytest.raises(ConfigurationError):
        HybridRetriever([one, two], method="borda")


# ---- mmr ----------------------------------------------------------------------

Q = [1.0, 0.0]
A = [0.95, 0.3122]
A_DUP = [0.9, 0.4359]
B = [0.8, -0.6]


def test_mmr_select_trades_relevance_for_diversity(make_unit):
    pool = _results(make_unit, [("a", 0.95), ("a_dup", 0.9), ("b", 0.8)])
    vectors = {"a": A, "a_dup": A_DUP, "b": B}

    diverse = mmr_select(Q, pool, vectors, limit=3, lambda_=0.5)
    assert [r.id for r in diverse] == ["a", "b", "a_dup"]
    rel_a = 0.95 / np.linalg.norm(A)
    assert np.isclose(diverse[0].score, 0.5 * rel_a)
    assert np.isclose(diverse[0].metadata["relevance"], rel_a)

    relevant = mmr_select(Q, pool, vectors, limit=3, lambda_=1.0)
    assert [r.id for r in relevant] == ["a", "a_dup", "b"]


def test_mmr_select_ties_keep_earlier_candidate(make_unit):
    pool = _results(make_unit, [("second", 1.0), ("first", 1.0)])
    out = mmr_select(Q, pool, {"first": Q, "second": Q}, limit=1)
    assert out[0].id == "second"


def test_mmr_select_skips_candidates_without_vectors(make_unit):
    pool = _results(make_unit, [("a", 1.0), ("novec", 0.9)])
    assert [r.id for r in mmr_select(Q, pool, {"a": A}, limit=2)] == ["a"]


@pytest.mark.asyncio
async def test_mmr_retriever_uses_store_vectors(store, make_unit):
    await store.insert([make_unit("a"), make_unit("a_dup"), make_unit("b")], [A, A_DUP, B])
    base = VectorRetriever(store)
    res = await MMRRetriever(base, store=store, lambda_=0.5).retrieve(Q, limit=2)
    assert [r.id for r in res] == ["a", "b"]
    assert res[0].metadata["retriever"] == "mmr"


@pytest.mark.asyncio
async def test_mmr_retriever_embeds_when_no_vector_source(make_unit, embedder):
    pool = _results(make_unit, [("alpha", 0.9), ("beta", 0.8), ("gamma", 0.7)])
    base = FixedRetriever("fixed", pool)
    res = await MMRRetriever(base, embedder=embedder, candidate_multiplier=2).retrieve("alpha", limit=2)
    assert base.limits == [4]
    assert len(res) == 2
    assert res[0].id == "alpha"


def test_mmr_lambda_validation(store):
    with pytest.raises(ConfigurationError):
        MMRRetriever(VectorRetriever(store), lambda_=1.5)


@pytest.mark.asyncio
async def test_mmr_retriever_embeds_text_query_once(store, make_unit, embedder):
    texts = ["alpha", "beta", "gamma"]
    await store.insert([make_unit(t) for t in texts], await embedder.embed(texts))
    calls = embedder.calls
    res = await MMRRetriever(VectorRetriever(store, embedder), store=store, embedder=embedder).retrieve(
        "alpha", limit=2
    )
    assert res[0].id == "alpha"
    assert embedder.calls == calls + 1


@pytest.mark.asyncio
async def test_mmr_retriever_hands_text_to_text_only_bases(make_unit, embedder):
    pool = _results(make_unit, [("alpha", 0.9), ("beta", 0.8)])
    vector_base = FixedRetriever("fixed", pool)
    await MMRRetriever(vector_base, embedder=embedder).retrieve("alpha", limit=1)
    assert not isinstance(vector_base.queries[0], str)

    text_base = FixedRetriever("keywords", pool)
    text_base.needs_text = True
    await MMRRetriever(text_base, embedder=embedder).retrieve("alpha", limit=1)
    assert text_base.queries == ["alpha"]
