"""Boundary-aware recursive chunker.
SPDX-License-Identifier: BUSL-1.1

Splits on the coarsest separator first (paragraph, line, sentence, word) and
only falls back to a finer one for pieces that are still larger than
``size``. A separator stays with the piece before it, so pieces tile the
text exactly. The empty separator cuts hard ``size`` windows.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from ..types import Document, Unit
from .base import check_window, ensure_text, make_unit

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS: Tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")

Span = Tuple[int, int]


def split_after(text: str, start: int, end: int, sep: str) -> List[Span]:
    """Cut text[start:end] after every occurrence of ``sep``."""
    out: List[Span] = []
    pos = start
    while pos < end:
        hit = text.find(sep, pos, end)
        if hit < 0:
            break
        cut = hit + len(sep)
        out.append((pos, cut))
        pos = cut
    if pos < end:
        out.append((pos, end))
    return out


class RecursiveChunker:
    name = "recursive"

    def __init__(self, size: int = 1000, overlap: int = 0, separators: Optional[Sequence[str]] = None) -> None:
        check_window(size, overlap)
        self.size = int(size)
        self.overlap = int(overlap)
        self.separators: Tuple[str, ...] = tuple(separators) if separators is not None else DEFAULT_SEPARATORS

    def _spans(self, text: str, start: int, end: int, seps: Sequence[str]) -> List[Span]:
        if end - start <= self.size:
            return [(start, end)]
        if not seps or seps[0] == "":
            return [(s, min(s + self.size, end)) for s in range(start, end, self.size)]
        sep, finer = seps[0], seps[1:]
        pieces = split_after(text, start, end, sep)
        if len(pieces) == 1:
            return self._spans(text, start, end, finer)

        out: List[Span] = []
        cur: Optional[Span] = None
        for ps, pe in pieces:
            if pe - ps > self.size:
                if cur is not None:
                    out.append(cur)
                    cur = None
                out.extend(self._spans(text, ps, pe, finer))
            elif cur is None:
                cur = (ps, pe)
            elif pe - cur[0] <= self.size:
                cur = (cur[0], pe)
            else:
                out.append(cur)
                cur = (ps, pe)
        if cur is not None:
            out.append(cur)
        return out

    def chunk(self, document: Document) -> List[Unit]:
        text = ensure_text(document)
        spans = self._spans(text, 0, len(text), self.separators)
        units: List[Unit] = []
        prev_start = None
        for i, (s, e) in enumerate(spans):
            begin = s
            if self.overlap and prev_start is not None:
                begin = max(prev_start, s - self.overlap)
            units.append(make_unit(document, text, "chunk", i, begin, e, self.name, s - begin))
            prev_start = s
        logger.debug("recursive chunker: %s -> %d units", document.id, len(units))
        return units

    def __repr__(self) -> str:
        return f"RecursiveChunker(size={self.size}, overlap={self.overlap})"
