"""Two-level parent/child chunker.
SPDX-License-Identifier: BUSL-1.1

Parents partition the document on ``parent_separator`` boundaries, up to
``parent_size`` characters each. Every parent is then cut into overlapping
fixed-size children. Search runs over the children; the parent is what gets
returned, so retrieval is precise while the answer keeps its context.

Output order is, for each parent, its children followed by the parent.
"""
from __future__ import annotations

import logging
from typing import List, Tuple

from ..errors import ConfigurationError
from ..types import Document, Unit
from .base import check_window, ensure_text, make_unit, windows
from .recursive import split_after

logger = logging.getLogger(__name__)

Span = Tuple[int, int]


class HierarchicalChunker:
    name = "hierarchical"

    def __init__(
        self,
        parent_size: int = 2000,
        child_size: int = 400,
        child_overlap: int = 50,
        parent_separator: str = "\n\n",
        include_parents: bool = True,
    ) -> None:
        check_window(child_size, child_overlap, what="child_size")
        if child_size >= parent_size:
            raise ConfigurationError(
                f"child_size ({child_size}) must be smaller than parent_size ({parent_size})"
            )
        if not parent_separator:
            raise ConfigurationError("parent_separator cannot be empty")
        self.parent_size = int(parent_size)
        self.child_size = int(child_size)
        self.child_overlap = int(child_overlap)
        self.parent_separator = parent_separator
        self.include_parents = bool(include_parents)

    def parent_spans(self, text: str) -> List[Span]:
        spans: List[Span] = []
        cur = None
        for s, e in split_after(text, 0, len(text), self.parent_separator):
            if e - s > self.parent_size and not text[s:e].isspace():
                if cur is not None:
                    spans.append(cur)
                    cur = None
                spans.extend((w, min(w + self.parent_size, e)) for w in range(s, e, self.parent_size))
            elif cur is None:
                cur = (s, e)
            elif text[s:e].isspace() or e - cur[0] <= self.parent_size:
                cur = (cur[0], e)
            else:
                spans.append(cur)
                cur = (s, e)
        if cur is not None:
            spans.append(cur)

        # fold whitespace-only spans into a neighbour
        merged: List[Span] = []
        carry = None
        for s, e in spans:
            if text[s:e].isspace():
                if merged:
                    merged[-1] = (merged[-1][0], e)
                elif carry is None:
                    carry = s
                continue
            if carry is not None:
                s, carry = carry, None
            merged.append((s, e))
        return merged

    def chunk(self, document: Document) -> List[Unit]:
        text = ensure_text(document)
        out: List[Unit] = []
        seq = 0
        for p_index, (ps, pe) in enumerate(self.parent_spans(text)):
            parent_id = f"{document.id}:parent:{p_index}"
            children: List[Unit] = []
            for sib, (cs, ce, shared) in enumerate(windows(ps, pe, self.child_size, self.child_overlap)):
                children.append(
                    make_unit(
                        document, text, "child", seq, cs, ce, self.name, shared,
                        {
                            "is_child": True,
                            "parent_id": parent_id,
                            "parent_index": p_index,
                            "offset_in_parent": cs - ps,
                            "sibling_index": sib,
                        },
                    )
                )
                seq += 1
            out.extend(children)
            if self.include_parents:
                out.append(
                    make_unit(
                        document, text, "parent", p_index, ps, pe, self.name, 0,
                        {
                            "is_parent": True,
                            "child_ids": [c.id for c in children],
                            "child_count": len(children),
                        },
                    )
                )
        logger.debug("hierarchical chunker: %s -> %d units", document.id, len(out))
        return out

    def __repr__(self) -> str:
        return (
            f"HierarchicalChunker(parent_size={self.parent_size}, child_size={self.child_size}, "
            f"child_overlap={self.child_overlap}, include_parents={self.include_parents})"
        )
