from __future__ import annotations

import math

import numpy as np
import pytest

from strata.errors import DimensionMismatchError, InputError
from strata.types import Embedding
from strata.vectormath import (
    cosine_scores,
    cosine_similarity,
    dot_product,
    euclidean_distance,
    euclidean_scores,
    magnitude,
    normalize,
)


def test_cosine_basic_cases():
    assert np.isclose(cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]), 1.0)
    assert np.isclose(cosine_similarity([1.0, 0.0], [0.0, 1.0]), 0.0)
    assert np.isclose(cosine_similarity([1.0, 0.0], [-1.0, 0.0]), -1.0)


def test_cosine_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_non_finite_components_score_zero():
    assert cosine_similarity([math.nan, 1.0], [1.0, 1.0]) == 0.0
    assert dot_product([math.inf, 1.0], [1.0, 1.0]) == 0.0
    assert euclidean_distance([math.nan, 0.0], [0.0, 0.0]) == math.inf


def test_non_finite_rows_are_far_in_both_euclidean_paths():
    X = np.array([[math.nan, 0.0], [0.0, 0.0]])
    q = [0.0, 0.0]
    scores = euclidean_scores(X, q)
    assert scores[0] == 0.0
    assert scores[1] == 1.0
    assert [1.0 / (1.0 + euclidean_distance(row, q)) for row in X] == list(scores)


def test_dimension_mismatch_message():
    with pytest.raises(DimensionMismatchError) as ei:
        cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0])
    assert str(ei.value) == "dimension mismatch: expected 3, got 2"
    assert ei.value.expected == 3 and ei.value.got == 2


def test_empty_vectors_rejected():
    with pytest.raises(InputError):
        dot_product([], [])


def test_magnitude_normalize_and_distance():
    assert np.isclose(magnitude([3.0, 4.0]), 5.0)
    assert np.allclose(normalize([3.0, 4.0]), [0.6, 0.8])
    assert np.allclose(normalize([0.0, 0.0]), [0.0, 0.0])
    assert np.isclose(euclidean_distance([0.0, 0.0], [3.0, 4.0]), 5.0)


def test_accepts_embedding_instances():
    e = Embedding([1, 0, 0], model="m")
    assert e.dimensions == 3
    assert np.isclose(cosine_similarity(e, [2.0, 0.0, 0.0]), 1.0)


def test_batched_scores_match_scalar():
    X = np.array([[1.0, 0.0], [0.6, 0.8], [0.0, 0.0], [-1.0, 1.0]])
    q = [1.0, 1.0]
    batched = cosine_scores(X, q)
    scalar = [cosine_similarity(row, q) for row in X]
    assert np.allclose(batched, scalar)

    e = euclidean_scores(np.array([[1.0, 1.0], [4.0, 5.0]]), q)
    assert np.allclose(e, [1.0, 1.0 / 6.0])


def test_batched_dimension_mismatch():
    with pytest.raises(DimensionMismatchError):
        cosine_scores(np.ones((2, 3)), [1.0, 1.0])
