"""Retrieval strategies.
SPDX-License-Identifier: BUSL-1.1

Strategies:
- vector: similarity search against the chunk store
- hierarchical: match children, return their parents
- graph: vector seeds expanded over the relationship graph
- lexical: adapter for an external keyword scorer
- hybrid: concurrent strategies fused by weighted scores or RRF
- mmr: diversity re-ranking over another strategy
- reranker: external second-stage rescoring over another strategy
"""
from __future__ import annotations

from .base import BaseRetriever, Query, Retriever
from .graph import GraphRetriever
from .hierarchical import HierarchicalRetriever
from .hybrid import HybridRetriever
from .lexical import LexicalRetriever
from .mmr import MMRRetriever
from .parents import CachedParentLookup, MappingParentLookup, ParentLookup, StoreParentLookup
from .rerank import Reranker, RerankerRetriever
from .vector import VectorRetriever

__all__ = [
    "BaseRetriever",
    "CachedParentLookup",
    "GraphRetriever",
    "HierarchicalRetriever",
    "HybridRetriever",
    "LexicalRetriever",
    "MMRRetriever",
    "MappingParentLookup",
    "ParentLookup",
    "Query",
    "Reranker",
    "RerankerRetriever",
    "Retriever",
    "StoreParentLookup",
    "VectorRetriever",
]
