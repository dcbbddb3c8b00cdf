"""Score fusion and MMR diversification.
SPDX-License-Identifier: BUSL-1.1

Pure functions over ranked result lists. All outputs are ordered by
(-score, id) unless stated otherwise.
"""
from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from .errors import ConfigurationError
from .types import RetrievalResult, Unit, VectorLike, as_array, sort_results, with_metadata
from .vectormath import cosine_scores


def normalize_scores(scores: Sequence[float]) -> List[float]:
    """Min-max scale into [0, 1]; if every score is equal they all become 1.0."""
    if len(scores) == 0:
        return []
    arr = np.asarray(scores, dtype=np.float64)
    lo = float(arr.min())
    hi = float(arr.max())
    if hi - lo <= 0.0:
        return [1.0] * len(scores)
    return [float(x) for x in (arr - lo) / (hi - lo)]


def check_weights(weights: Sequence[float], n: int) -> List[float]:
    if len(weights) != n:
        raise ConfigurationError(f"expected {n} weights, got {len(weights)}")
    out = [float(w) for w in weights]
    if any(w < 0 or not np.isfinite(w) for w in out):
        raise ConfigurationError(f"weights must be finite and non-negative, got {out}")
    return out


def _merge(
    result_lists: Sequence[Sequence[RetrievalResult]],
    contributions: Sequence[Sequence[float]],
    names: Sequence[str],
    method: str,
    limit: Optional[int],
) -> List[RetrievalResult]:
    units: Dict[str, Unit] = {}
    totals: Dict[str, float] = {}
    parts: Dict[str, Dict[str, float]] = {}
    for name, results, contrib in zip(names, result_lists, contributions):
        for r, c in zip(results, contrib):
            units.setdefault(r.id, r.unit)
            totals[r.id] = totals.get(r.id, 0.0) + c
            per = parts.setdefault(r.id, {})
            per[name] = per.get(name, 0.0) + c
    fused = [
        RetrievalResult(unit=units[uid], score=totals[uid], metadata={"fusion": method, "scores": parts[uid]})
        for uid in totals
    ]
    ranked = sort_results(fused)
    return ranked[:limit] if limit is not None else ranked


def _names(n: int, names: Optional[Sequence[str]]) -> List[str]:
    if names is None:
        return [str(i) for i in range(n)]
    if len(names) != n:
        raise ConfigurationError(f"expected {n} names, got {len(names)}")
    return list(names)


def weighted_fusion(
    result_lists: Sequence[Sequence[RetrievalResult]],
    weights: Sequence[float],
    names: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
) -> List[RetrievalResult]:
    """Sum of weight * min-max-normalized score across lists.

    A unit missing from one list contributes 0 from that list.
    """
    ws = check_weights(weights, len(result_lists))
    contributions = [
        [w * s for s in normalize_scores([r.score for r in results])]
        for w, results in zip(ws, result_lists)
    ]
    return _merge(result_lists, contributions, _names(len(result_lists), names), "weighted", limit)


def reciprocal_rank_fusion(
    result_lists: Sequence[Sequence[RetrievalResult]],
    weights: Optional[Sequence[float]] = None,
    k: int = 60,
    names: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
) -> List[RetrievalResult]:
    """Weighted RRF: each list adds ``w / (k + rank)`` with rank starting at 1."""
    if k < 1:
        raise ConfigurationError(f"rrf k must be >= 1, got {k}")
    ws = check_weights(weights if weights is not None else [1.0] * len(result_lists), len(result_lists))
    contributions = [
        [w / (k + rank) for rank in range(1, len(results) + 1)]
        for w, results in zip(ws, result_lists)
    ]
    return _merge(result_lists, contributions, _names(len(result_lists), names), "rrf", limit)


def mmr_select(
    query_vector: VectorLike,
    candidates: Sequence[RetrievalResult],
    vectors: Mapping[str, VectorLike],
    limit: int,
    lambda_: float = 0.5,
) -> List[RetrievalResult]:
    """Maximal Marginal Relevance over a candidate pool.

    Repeatedly picks the candidate maximizing
    ``lambda * cos(q, c) - (1 - lambda) * max cos(c, s) over selected s``
    and emits it with that MMR score. Output is in selection order. On a tie
    the earlier candidate in ``candidates`` wins. Candidates without a vector
    are skipped.
    """
    if not 0.0 <= lambda_ <= 1.0:
        raise ConfigurationError(f"lambda must be in [0, 1], got {lambda_}")
    pool = [c for c in candidates if c.id in vectors]
    if not pool or limit <= 0:
        return []
    q = as_array(query_vector)
    M = np.stack([as_array(vectors[c.id]) for c in pool], axis=0)
    relevance = cosine_scores(M, q)
    # running max similarity of each candidate to anything selected so far
    redundancy = np.full(len(pool), -np.inf)
    remaining = list(range(len(pool)))
    out: List[RetrievalResult] = []
    while remaining and len(out) < limit:
        best = None
        best_score = -np.inf
        for i in remaining:
            red = 0.0 if not out else float(redundancy[i])
            s = lambda_ * float(relevance[i]) - (1.0 - lambda_) * red
            if s > best_score:
                best, best_score = i, s
        if best is None:
            break
        remaining.remove(best)
        out.append(
            with_metadata(
                RetrievalResult(unit=pool[best].unit, score=float(best_score), metadata=pool[best].metadata),
                {"relevance": float(relevance[best])},
            )
        )
        if remaining:
            sims = cosine_scores(M[remaining], M[best])
            for i, s in zip(remaining, sims):
                if s > redundancy[i]:
                    redundancy[i] = s
    return out

