"""Fixed-size sliding-window chunker.
SPDX-License-Identifier: BUSL-1.1
"""
from __future__ import annotations

from typing import List

from ..types import Document, Unit
from .base import check_window, ensure_text, make_unit, windows


class FixedSizeChunker:
    name = "fixed"

    def __init__(self, size: int = 500, overlap: int = 50) -> None:
        check_window(size, overlap)
        self.size = int(size)
        self.overlap = int(overlap)

    def chunk(self, document: Document) -> List[Unit]:
        text = ensure_text(document)
        return [
            make_unit(document, text, "chunk", i, s, e, self.name, shared)
            for i, (s, e, shared) in enumerate(windows(0, len(text), self.size, self.overlap))
        ]

    def __repr__(self) -> str:
        return f"FixedSizeChunker(size={self.size}, overlap={self.overlap})"
