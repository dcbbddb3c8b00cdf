"""Core data model: documents, units, embeddings, edges and results.
SPDX-License-Identifier: BUSL-1.1

Units reference each other only through ids stored in metadata
(``parent_id``, ``child_ids``); nothing here holds object pointers to
other units.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import InputError


@dataclass(frozen=True)
class Document:
    id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Embedding:
    vector: Tuple[float, ...]
    model: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "vector", tuple(float(x) for x in self.vector))

    @property
    def dimensions(self) -> int:
        return len(self.vector)


VectorLike = Union[Embedding, Sequence[float], np.ndarray]


def as_array(vec: VectorLike) -> np.ndarray:
    """Coerce an Embedding or float sequence to a 1-D float64 array."""
    if isinstance(vec, Embedding):
        vec = vec.vector
    arr = np.asarray(vec, dtype=np.float64)
    if arr.ndim == 2 and arr.shape[0] == 1:
        arr = arr[0]
    if arr.ndim != 1:
        raise InputError("vector must be 1-D")
    return arr


@dataclass(frozen=True)
class Unit:
    """An offset-addressed slice of a document; the atomic retrieval item."""

    id: str
    document_id: str
    index: int
    start: int
    end: int
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    vector: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InputError(f"unit {self.id}: start must be < end ({self.start} >= {self.end})")
        if self.end - self.start != len(self.content):
            raise InputError(
                f"unit {self.id}: offset range {self.end - self.start} != content length {len(self.content)}"
            )

    def with_vector(self, vector: VectorLike) -> "Unit":
        return replace(self, vector=tuple(float(x) for x in as_array(vector)))

    @property
    def parent_id(self) -> Optional[str]:
        return self.metadata.get("parent_id")

    @property
    def child_ids(self) -> List[str]:
        return list(self.metadata.get("child_ids") or [])

    @property
    def overlap(self) -> int:
        return int(self.metadata.get("overlap", 0))

    @property
    def level(self) -> str:
        return str(self.metadata.get("level", "chunk"))

    def filter_view(self) -> Dict[str, Any]:
        view = dict(self.metadata)
        view.update(
            {
                "document_id": self.document_id,
                "index": self.index,
                "start": self.start,
                "end": self.end,
            }
        )
        return view


class EdgeType(str, Enum):
    SEQUENTIAL = "sequential"
    SEMANTIC = "semantic"
    REFERENCE = "reference"


@dataclass(frozen=True)
class Edge:
    source_id: str
    target_id: str
    type: EdgeType
    weight: float

    @property
    def key(self) -> Tuple[str, str, EdgeType]:
        return (self.source_id, self.target_id, self.type)


@dataclass(frozen=True)
class RetrievalResult:
    unit: Unit
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.unit.id


def sort_results(results: Iterable[RetrievalResult]) -> List[RetrievalResult]:
    """Stable ranking: descending score, ties by unit id."""
    return sorted(results, key=lambda r: (-r.score, r.id))


def with_metadata(result: RetrievalResult, extra: Mapping[str, Any]) -> RetrievalResult:
    meta = dict(result.metadata)
    meta.update(extra)
    return replace(result, metadata=meta)
