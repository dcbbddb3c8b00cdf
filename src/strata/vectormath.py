"""Vector math over fixed-length float vectors.
SPDX-License-Identifier: BUSL-1.1

All scalar helpers return Python floats. Length mismatches raise
DimensionMismatchError; vectors with non-finite components score 0.0
rather than propagating NaN into rankings.
"""
from __future__ import annotations

import numpy as np

from .errors import DimensionMismatchError, InputError
from .types import VectorLike, as_array


def _pair(a: VectorLike, b: VectorLike) -> tuple[np.ndarray, np.ndarray]:
    x = as_array(a)
    y = as_array(b)
    if x.shape[0] == 0 or y.shape[0] == 0:
        raise InputError("vectors cannot be empty")
    if x.shape[0] != y.shape[0]:
        raise DimensionMismatchError(x.shape[0], y.shape[0])
    return x, y


def _finite(*arrs: np.ndarray) -> bool:
    return all(bool(np.isfinite(a).all()) for a in arrs)


def dot_product(a: VectorLike, b: VectorLike) -> float:
    x, y = _pair(a, b)
    if not _finite(x, y):
        return 0.0
    return float(np.dot(x, y))


def magnitude(v: VectorLike) -> float:
    x = as_array(v)
    if x.shape[0] == 0:
        return 0.0
    return float(np.linalg.norm(x))


def normalize(v: VectorLike) -> np.ndarray:
    """Unit-length copy of v; zero or non-finite vectors come back unchanged."""
    x = as_array(v)
    if x.shape[0] == 0 or not _finite(x):
        return x
    n = np.linalg.norm(x)
    if n == 0:
        return x
    return x / n


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    x, y = _pair(a, b)
    if not _finite(x, y):
        return 0.0
    denom = float(np.linalg.norm(x)) * float(np.linalg.norm(y))
    if denom == 0.0:
        return 0.0
    return float(np.dot(x, y)) / denom


def euclidean_distance(a: VectorLike, b: VectorLike) -> float:
    x, y = _pair(a, b)
    if not _finite(x, y):
        return float("inf")
    return float(np.linalg.norm(x - y))


def cosine_scores(matrix: np.ndarray, q: VectorLike) -> np.ndarray:
    """Cosine of every row of ``matrix`` against ``q`` (zero rows score 0)."""
    v = as_array(q)
    X = np.asarray(matrix, dtype=np.float64)
    if X.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)
    if X.shape[1] != v.shape[0]:
        raise DimensionMismatchError(X.shape[1], v.shape[0])
    qn = float(np.linalg.norm(v))
    rn = np.linalg.norm(X, axis=1)
    denom = rn * qn
    dots = X @ v
    out = np.zeros_like(dots)
    ok = (denom > 0) & np.isfinite(dots) & np.isfinite(denom)
    out[ok] = dots[ok] / denom[ok]
    return out


def dot_scores(matrix: np.ndarray, q: VectorLike) -> np.ndarray:
    v = as_array(q)
    X = np.asarray(matrix, dtype=np.float64)
    if X.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)
    if X.shape[1] != v.shape[0]:
        raise DimensionMismatchError(X.shape[1], v.shape[0])
    out = X @ v
    out[~np.isfinite(out)] = 0.0
    return out


def euclidean_scores(matrix: np.ndarray, q: VectorLike) -> np.ndarray:
    """Distance mapped into (0, 1] as ``1 / (1 + d)`` so larger is closer."""
    v = as_array(q)
    X = np.asarray(matrix, dtype=np.float64)
    if X.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)
    if X.shape[1] != v.shape[0]:
        raise DimensionMismatchError(X.shape[1], v.shape[0])
    d = np.linalg.norm(X - v, axis=1)
    d[~np.isfinite(d)] = np.inf
    return 1.0 / (1.0 + d)


SCORERS = {
    "cosine": cosine_scores,
    "dot": dot_scores,
    "euclidean": euclidean_scores,
}
