"""Chunking strategies.
SPDX-License-Identifier: BUSL-1.1
"""
from __future__ import annotations

from .base import Chunker, chunk, reassemble, resolve_chunker
from .boundary import ParagraphChunker, SentenceChunker
from .fixed import FixedSizeChunker
from .hierarchical import HierarchicalChunker
from .recursive import DEFAULT_SEPARATORS, RecursiveChunker

__all__ = [
    "Chunker",
    "DEFAULT_SEPARATORS",
    "FixedSizeChunker",
    "HierarchicalChunker",
    "ParagraphChunker",
    "RecursiveChunker",
    "SentenceChunker",
    "chunk",
    "reassemble",
    "resolve_chunker",
]
