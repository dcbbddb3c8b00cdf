"""Relationship graph over indexed units.
SPDX-License-Identifier: BUSL-1.1

Adjacency map ``unit_id -> [Edge, ...]`` (outgoing edges, insertion order).
Edges are typed:
- sequential: adjacent indices of one document at one level, weight 1.0
- semantic: cosine similarity >= threshold, weight = similarity
- reference: added by the caller

Sequential and semantic edges are always added in both directions. A
(source, target, type) triple is stored once and self edges never exist.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .errors import ConfigurationError, DimensionMismatchError, InputError
from .types import Edge, EdgeType, Unit, VectorLike, as_array
from .vectormath import cosine_scores

logger = logging.getLogger(__name__)


class RelationshipGraph:
    def __init__(self, similarity_threshold: float = 0.8, link_existing: bool = False) -> None:
        if not -1.0 <= float(similarity_threshold) <= 1.0:
            raise ConfigurationError(f"similarity_threshold must be in [-1, 1], got {similarity_threshold}")
        self.similarity_threshold = float(similarity_threshold)
        self.link_existing = bool(link_existing)
        self._units: Dict[str, Unit] = {}
        self._vecs: Dict[str, np.ndarray] = {}
        self._out: Dict[str, List[Edge]] = {}
        self._keys: Set[Tuple[str, str, EdgeType]] = set()
        self._pos: Dict[Tuple[str, str, int], str] = {}
        self._lock = asyncio.Lock()

    # -- mutation ---------------------------------------------------------

    def _link(self, source: str, target: str, type: EdgeType, weight: float) -> bool:
        if source == target:
            return False
        edge = Edge(source, target, type, weight)
        if edge.key in self._keys:
            return False
        self._keys.add(edge.key)
        self._out.setdefault(source, []).append(edge)
        return True

    async def add_units(self, units: Sequence[Unit], vectors: Optional[Sequence[VectorLike]] = None) -> int:
        """Register units and build their edges. Returns the number of new edges."""
        has_vectors = vectors is not None and len(vectors) > 0
        if has_vectors and len(vectors) != len(units):
            raise InputError(f"units/vectors length mismatch: {len(units)} != {len(vectors)}")
        rows: List[Optional[np.ndarray]]
        if has_vectors:
            rows = [as_array(v) for v in vectors]
        else:
            rows = [as_array(u.vector) if u.vector is not None else None for u in units]
        dims = {r.shape[0] for r in rows if r is not None}
        if len(dims) > 1:
            first, *rest = sorted(dims)
            raise DimensionMismatchError(first, rest[0])

        added = 0
        async with self._lock:
            for u, r in zip(units, rows):
                self._units[u.id] = u
                self._out.setdefault(u.id, [])
                self._pos[(u.document_id, u.level, u.index)] = u.id
                if r is not None:
                    self._vecs[u.id] = r

            for u in units:
                for step in (-1, 1):
                    other = self._pos.get((u.document_id, u.level, u.index + step))
                    if other is None:
                        continue
                    added += self._link(u.id, other, EdgeType.SEQUENTIAL, 1.0)
                    added += self._link(other, u.id, EdgeType.SEQUENTIAL, 1.0)

            batch = [(u.id, r) for u, r in zip(units, rows) if r is not None]
            if batch:
                added += self._link_semantic(batch)
        logger.debug("graph: +%d units, +%d edges (nodes=%d)", len(units), added, len(self._units))
        return added

    def _link_semantic(self, batch: List[Tuple[str, np.ndarray]]) -> int:
        added = 0
        ids = [uid for uid, _ in batch]
        M = np.stack([r for _, r in batch], axis=0)
        for i in range(len(ids) - 1):
            sims = cosine_scores(M[i + 1:], M[i])
            for j, sim in enumerate(sims, start=i + 1):
                added += self._semantic_pair(ids[i], ids[j], float(sim))
        if self.link_existing:
            in_batch = set(ids)
            old = [uid for uid in self._vecs if uid not in in_batch]
            old = [uid for uid in old if self._vecs[uid].shape[0] == M.shape[1]]
            if old:
                O = np.stack([self._vecs[uid] for uid in old], axis=0)
                for i, uid in enumerate(ids):
                    sims = cosine_scores(O, M[i])
                    for j, sim in enumerate(sims):
                        added += self._semantic_pair(uid, old[j], float(sim))
        return added

    def _semantic_pair(self, a: str, b: str, sim: float) -> int:
        if sim < self.similarity_threshold or a == b:
            return 0
        w = min(1.0, max(0.0, sim))
        return self._link(a, b, EdgeType.SEMANTIC, w) + self._link(b, a, EdgeType.SEMANTIC, w)

    async def add_reference(
        self, source_id: str, target_id: str, weight: float = 1.0, bidirectional: bool = False
    ) -> None:
        if not 0.0 <= float(weight) <= 1.0:
            raise InputError(f"edge weight must be in [0, 1], got {weight}")
        if source_id == target_id:
            raise InputError(f"self reference on {source_id}")
        async with self._lock:
            for uid in (source_id, target_id):
                if uid not in self._units:
                    raise InputError(f"unknown unit id: {uid}")
            self._link(source_id, target_id, EdgeType.REFERENCE, float(weight))
            if bidirectional:
                self._link(target_id, source_id, EdgeType.REFERENCE, float(weight))

    async def remove_units(self, ids: Sequence[str]) -> int:
        """Drop nodes and every edge touching them. Returns nodes removed."""
        doomed = set(ids)
        async with self._lock:
            doomed &= set(self._units)
            if not doomed:
                return 0
            for uid in doomed:
                u = self._units.pop(uid)
                self._vecs.pop(uid, None)
                self._pos.pop((u.document_id, u.level, u.index), None)
                for e in self._out.pop(uid, []):
                    self._keys.discard(e.key)
            for src, edges in self._out.items():
                if any(e.target_id in doomed for e in edges):
                    keep = []
                    for e in edges:
                        if e.target_id in doomed:
                            self._keys.discard(e.key)
                        else:
                            keep.append(e)
                    self._out[src] = keep
        return len(doomed)

    # -- reads ------------------------------------------------------------

    async def neighbors(self, unit_id: str, edge_type: Optional[EdgeType] = None) -> List[Edge]:
        async with self._lock:
            edges = self._out.get(unit_id, [])
            if edge_type is None:
                return list(edges)
            return [e for e in edges if e.type == edge_type]

    async def unit(self, unit_id: str) -> Optional[Unit]:
        async with self._lock:
            return self._units.get(unit_id)

    async def vector(self, unit_id: str) -> Optional[np.ndarray]:
        async with self._lock:
            v = self._vecs.get(unit_id)
            return None if v is None else v.copy()

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._units

    def node_count(self) -> int:
        return len(self._units)

    def edge_count(self) -> int:
        return len(self._keys)
