"""Ingest and query façade.
SPDX-License-Identifier: BUSL-1.1

Ingest: document -> chunker -> embedding provider (one batch per document)
-> chunk store -> relationship graph / parent lookup (when configured).

Deletes cascade: a unit removed through the pipeline also leaves the graph
(with every edge pointing at it), the mapping parent lookup and the parent
cache shared by hierarchical retrievers.

Re-ingesting a known document id replaces its units. The new units are
embedded and stored before the old ones are dropped, so a failed re-ingest
leaves the previous copy in place.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Union

from .cache import EmbeddingCache
from .chunking import Chunker, resolve_chunker
from .config import Settings, settings as default_settings
from .embeddings import (
    CachedEmbeddingProvider,
    EmbeddingProvider,
    HashEmbeddingProvider,
    RateLimitedEmbeddingProvider,
    check_embeddings,
)
from .errors import ConfigurationError
from .filters import MetadataFilter, equals
from .graph import RelationshipGraph
from .ratelimit import RateLimiter
from .retrieval import (
    CachedParentLookup,
    GraphRetriever,
    HierarchicalRetriever,
    HybridRetriever,
    MappingParentLookup,
    MMRRetriever,
    ParentLookup,
    Retriever,
    VectorRetriever,
)
from .retrieval.base import Query
from .store import ChunkStore, InMemoryChunkStore
from .types import Document, RetrievalResult, Unit

logger = logging.getLogger(__name__)


class IndexPipeline:
    def __init__(
        self,
        store: ChunkStore,
        embedder: EmbeddingProvider,
        chunker: Union[str, Chunker],
        graph: Optional[RelationshipGraph] = None,
        parent_lookup: Optional[ParentLookup] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.chunker = resolve_chunker(chunker)
        self.graph = graph
        self.parent_lookup = parent_lookup
        self.settings = settings or default_settings
        self._parent_cache: Optional[CachedParentLookup] = None
        if isinstance(parent_lookup, CachedParentLookup):
            self._parent_cache = parent_lookup
        elif parent_lookup is not None:
            self._parent_cache = CachedParentLookup(parent_lookup, self.settings.parent_cache_size)
        self._documents: Dict[str, List[str]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        store: Optional[ChunkStore] = None,
        embedder: Optional[EmbeddingProvider] = None,
    ) -> "IndexPipeline":
        s = settings or default_settings
        if embedder is None:
            embedder = HashEmbeddingProvider(s.embed_dimensions)
            if s.embed_rate_limit:
                embedder = RateLimitedEmbeddingProvider(embedder, RateLimiter(s.embed_rate_limit))
            embedder = CachedEmbeddingProvider(
                embedder, EmbeddingCache(s.embed_cache_size, s.embed_cache_ttl_seconds)
            )
        return cls(
            store=store if store is not None else InMemoryChunkStore(similarity=s.similarity),
            embedder=embedder,
            chunker=s.chunking,
            graph=RelationshipGraph(s.graph_similarity_threshold, s.graph_link_existing),
            parent_lookup=MappingParentLookup(),
            settings=s,
        )

    # -- ingest -----------------------------------------------------------

    def _mapping_lookup(self) -> Optional[MappingParentLookup]:
        inner = self.parent_lookup
        if isinstance(inner, CachedParentLookup):
            inner = inner.inner
        return inner if isinstance(inner, MappingParentLookup) else None

    async def _index(self, document: Document, units: List[Unit]) -> List[Unit]:
        texts = [u.content for u in units]
        vectors = await self.embedder.embed(texts)
        check_embeddings(self.embedder, texts, vectors)
        units = [u.with_vector(v) for u, v in zip(units, vectors)]
        await self.store.insert(units, vectors)
        stale = self._documents.get(document.id, [])
        if stale:
            fresh = {u.id for u in units}
            await self.store.delete([uid for uid in stale if uid not in fresh])
            await self._cascade(stale)
        if self.graph is not None:
            await self.graph.add_units(units, vectors)
        mapping = self._mapping_lookup()
        if mapping is not None:
            mapping.add_parents(u for u in units if u.level == "parent")
        self._documents[document.id] = [u.id for u in units]
        logger.info("ingested %s: %d units", document.id, len(units))
        return units

    async def ingest(self, document: Document) -> List[Unit]:
        return await self._index(document, self.chunker.chunk(document))

    async def ingest_many(self, documents: Sequence[Document]) -> List[List[Unit]]:
        ids = [d.id for d in documents]
        if len(set(ids)) != len(ids):
            raise ConfigurationError("duplicate document ids in one ingest_many call")
        chunked = await asyncio.gather(*(asyncio.to_thread(self.chunker.chunk, d) for d in documents))
        return list(await asyncio.gather(*(self._index(d, us) for d, us in zip(documents, chunked))))

    # -- delete -----------------------------------------------------------

    async def _cascade(self, ids: Sequence[str]) -> None:
        if self.graph is not None:
            await self.graph.remove_units(ids)
        mapping = self._mapping_lookup()
        if mapping is not None:
            mapping.remove(ids)
        if self._parent_cache is not None:
            await self._parent_cache.forget(ids)

    async def delete(self, ids: Sequence[str]) -> int:
        removed = await self.store.delete(ids)
        await self._cascade(ids)
        doomed = set(ids)
        for doc_id, unit_ids in list(self._documents.items()):
            keep = [u for u in unit_ids if u not in doomed]
            if keep:
                self._documents[doc_id] = keep
            else:
                del self._documents[doc_id]
        return removed

    async def delete_document(self, document_id: str) -> int:
        removed = await self.store.delete_where(equals("document_id", document_id))
        await self._cascade(self._documents.pop(document_id, []))
        logger.info("deleted %s: %d units", document_id, removed)
        return removed

    # -- query ------------------------------------------------------------

    def retriever(self, kind: str = "vector") -> Retriever:
        """Build a retriever over this pipeline's collaborators with settings defaults."""
        s = self.settings
        if kind == "vector":
            return VectorRetriever(self.store, self.embedder)
        if kind == "hierarchical":
            if self._parent_cache is None:
                raise ConfigurationError("hierarchical retrieval needs a parent lookup")
            return HierarchicalRetriever(
                self.store,
                self._parent_cache,
                self.embedder,
                child_multiplier=s.child_multiplier,
                aggregation=s.aggregation,
            )
        if kind == "graph":
            if self.graph is None:
                raise ConfigurationError("graph retrieval needs a relationship graph")
            return GraphRetriever(
                self.graph,
                self.store,
                self.embedder,
                hops=s.graph_hops,
                edge_weight_threshold=s.graph_edge_weight_threshold,
            )
        if kind == "mmr":
            return MMRRetriever(
                VectorRetriever(self.store, self.embedder),
                self.store,
                self.embedder,
                lambda_=s.mmr_lambda,
                candidate_multiplier=s.mmr_candidate_multiplier,
            )
        if kind == "hybrid":
            return HybridRetriever(
                [self.retriever("vector"), self.retriever("graph")],
                weights=s.hybrid_weights,
                method=s.hybrid_method,
                fetch_multiplier=s.hybrid_fetch_multiplier,
                rrf_k=s.rrf_k,
            )
        raise ConfigurationError(f"unknown retriever kind: {kind!r}")

    async def search(
        self, query: Query, limit: int = 10, filter: Optional[MetadataFilter] = None
    ) -> List[RetrievalResult]:
        return await VectorRetriever(self.store, self.embedder).retrieve(query, limit, filter)

    async def count(self) -> int:
        return await self.store.count()
