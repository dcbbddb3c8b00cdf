"""Sentence and paragraph chunkers.
SPDX-License-Identifier: BUSL-1.1

Both cut the text into segments that end after a boundary (sentence
terminator plus trailing whitespace, or a blank-line run) and pack whole
segments greedily into units of at most ``size`` characters. The last
``overlap`` segments of a unit are repeated at the head of the next one when
they fit. A single segment longer than ``max_size`` is cut into hard
``max_size`` windows, and a trailing unit shorter than ``min_size`` is folded
into its predecessor when the result stays within ``max_size``.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional, Pattern, Tuple

from ..errors import ConfigurationError
from ..types import Document, Unit
from .base import ensure_text, make_unit, windows

logger = logging.getLogger(__name__)

Span = Tuple[int, int]

SENTENCE_END = re.compile(r"[.!?]+[\"')\]]*\s+")
PARAGRAPH_BREAK = re.compile(r"\n[ \t\r]*\n\s*")


def segments(text: str, boundary: Pattern[str]) -> List[Span]:
    """Spans that tile ``text``, each ending right after a boundary match."""
    out: List[Span] = []
    pos = 0
    for m in boundary.finditer(text):
        if m.end() > pos and m.start() > 0:
            out.append((pos, m.end()))
            pos = m.end()
    if pos < len(text):
        out.append((pos, len(text)))
    # a leading blank segment joins the one after it
    if len(out) > 1 and not text[out[0][0]:out[0][1]].strip():
        out[1] = (out[0][0], out[1][1])
        del out[0]
    return out


class BoundaryChunker:
    name = "boundary"
    boundary: Pattern[str] = SENTENCE_END

    def __init__(
        self,
        size: int = 1000,
        overlap: int = 1,
        min_size: int = 0,
        max_size: Optional[int] = None,
        max_segments: Optional[int] = None,
    ) -> None:
        if size <= 0:
            raise ConfigurationError(f"size must be positive, got {size}")
        if overlap < 0:
            raise ConfigurationError(f"overlap cannot be negative, got {overlap}")
        if not 0 <= min_size <= size:
            raise ConfigurationError(f"min_size must be in [0, size], got {min_size}")
        max_size = size if max_size is None else int(max_size)
        if max_size < size:
            raise ConfigurationError(f"max_size ({max_size}) must be >= size ({size})")
        if max_segments is not None and max_segments < 1:
            raise ConfigurationError(f"max_segments must be >= 1, got {max_segments}")
        self.size = int(size)
        self.overlap = int(overlap)
        self.min_size = int(min_size)
        self.max_size = max_size
        self.max_segments = max_segments

    def _fits(self, segs: List[Span], i: int, j: int) -> bool:
        """Whether segments [i, j] (inclusive) can share one unit."""
        if self.max_segments is not None and j - i + 1 > self.max_segments:
            return False
        return segs[j][1] - segs[i][0] <= self.size

    def _groups(self, segs: List[Span]) -> List[Span]:
        groups: List[Span] = []
        n = len(segs)
        i = 0
        while i < n:
            fresh = i if not groups else groups[-1][1]
            while i < fresh and not self._fits(segs, i, fresh):
                i += 1
            j = fresh + 1
            while j < n and self._fits(segs, i, j):
                j += 1
            groups.append((i, j))
            if j >= n:
                break
            i = max(i + 1, j - self.overlap)
        if len(groups) > 1:
            (pi, _), (li, lj) = groups[-2], groups[-1]
            tail = segs[lj - 1][1] - segs[li][0]
            if tail < self.min_size and segs[lj - 1][1] - segs[pi][0] <= self.max_size:
                groups[-2:] = [(pi, lj)]
        return groups

    def chunk(self, document: Document) -> List[Unit]:
        text = ensure_text(document)
        segs = segments(text, self.boundary)
        units: List[Unit] = []
        prev_end: Optional[int] = None
        for gi, gj in self._groups(segs):
            s, e = segs[gi][0], segs[gj - 1][1]
            if e - s <= self.max_size:
                pieces = [(s, e)]
            else:
                pieces = [(ps, pe) for ps, pe, _ in windows(s, e, self.max_size, 0)]
            for ps, pe in pieces:
                shared = 0 if prev_end is None else max(0, prev_end - ps)
                units.append(
                    make_unit(document, text, "chunk", len(units), ps, pe, self.name, shared, {"segments": gj - gi})
                )
                prev_end = pe
        logger.debug("%s chunker: %s -> %d units from %d segments", self.name, document.id, len(units), len(segs))
        return units

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(size={self.size}, overlap={self.overlap}, "
            f"min_size={self.min_size}, max_size={self.max_size})"
        )


class SentenceChunker(BoundaryChunker):
    """Packs whole sentences; ``overlap`` counts sentences."""

    name = "sentence"
    boundary = SENTENCE_END

    def __init__(self, size: int = 1000, overlap: int = 1, min_size: int = 100, max_size: int = 2000) -> None:
        super().__init__(size, overlap, min(min_size, size), max(max_size, size))


class ParagraphChunker(BoundaryChunker):
    """Packs up to ``max_paragraphs`` paragraphs; ``overlap`` counts paragraphs."""

    name = "paragraph"
    boundary = PARAGRAPH_BREAK

    def __init__(self, size: int = 2000, overlap: int = 1, max_paragraphs: int = 3) -> None:
        super().__init__(size, overlap, 0, size, max_paragraphs)
