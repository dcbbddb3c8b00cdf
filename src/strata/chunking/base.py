"""Chunker protocol, shared helpers and strategy resolution.
SPDX-License-Identifier: BUSL-1.1

Every chunker turns one Document into Units that are exact slices of the
document text: ``text[unit.start:unit.end] == unit.content``. A unit may
repeat the tail of its predecessor; the number of repeated leading
characters is stored under ``metadata["overlap"]`` so ``reassemble`` can
rebuild the source.

Strategy specs look like ``"fixed:size=500,overlap=50"`` and are resolved
with ``resolve_chunker``.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Protocol, Tuple, Union

from ..errors import ConfigurationError, EmptyDocumentError
from ..types import Document, Unit


class Chunker(Protocol):
    name: str

    def chunk(self, document: Document) -> List[Unit]: ...


def ensure_text(document: Document) -> str:
    text = document.text
    if not text or not text.strip():
        raise EmptyDocumentError(document.id)
    return text


def check_window(size: int, overlap: int, what: str = "size") -> None:
    if size <= 0:
        raise ConfigurationError(f"{what} must be positive, got {size}")
    if overlap < 0:
        raise ConfigurationError(f"overlap cannot be negative, got {overlap}")
    if overlap >= size:
        raise ConfigurationError(f"overlap ({overlap}) must be smaller than {what} ({size})")


def windows(start: int, end: int, size: int, overlap: int) -> Iterator[Tuple[int, int, int]]:
    """Sliding windows over [start, end) as (start, end, overlap_with_previous).

    Stops once a window reaches ``end``; the last one may be shorter.
    """
    step = size - overlap
    pos = start
    prev_end = None
    while pos < end:
        stop = min(pos + size, end)
        shared = 0 if prev_end is None else max(0, prev_end - pos)
        yield pos, stop, shared
        if stop >= end:
            break
        prev_end = stop
        pos += step


def make_unit(
    document: Document,
    text: str,
    level: str,
    index: int,
    start: int,
    end: int,
    strategy: str,
    overlap: int = 0,
    extra: Mapping[str, Any] | None = None,
) -> Unit:
    meta: Dict[str, Any] = dict(document.metadata)
    meta.update({"level": level, "strategy": strategy, "overlap": int(overlap)})
    if extra:
        meta.update(extra)
    return Unit(
        id=f"{document.id}:{level}:{index}",
        document_id=document.id,
        index=index,
        start=start,
        end=end,
        content=text[start:end],
        metadata=meta,
    )


def reassemble(units: Iterable[Unit]) -> str:
    """Join units of one level in offset order, dropping overlapped prefixes."""
    ordered = sorted(units, key=lambda u: (u.start, u.index))
    return "".join(u.content[u.overlap:] for u in ordered)


# ---- strategy specs ---------------------------------------------------------

def _parse_params(raw: str) -> Dict[str, int]:
    params: Dict[str, int] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            raise ConfigurationError(f"bad chunker parameter {part!r}; expected key=value")
        key, val = (s.strip() for s in part.split("=", 1))
        try:
            params[key.lower()] = int(val)
        except ValueError:
            raise ConfigurationError(f"chunker parameter {key!r} must be an integer, got {val!r}") from None
    return params


def _take(params: Dict[str, int], allowed: Dict[str, str]) -> Dict[str, int]:
    unknown = sorted(set(params) - set(allowed))
    if unknown:
        raise ConfigurationError(f"unknown chunker parameter(s): {', '.join(unknown)}")
    return {allowed[k]: v for k, v in params.items()}


def resolve_chunker(spec: Union[str, Chunker]) -> Chunker:
    """Resolve a spec like "fixed:size=500,overlap=50" into a chunker instance.

    Known names: ``fixed``, ``recursive``, ``sentence``, ``paragraph``,
    ``hierarchical`` (alias ``parent_child``). Anything else raises
    ConfigurationError.
    """
    if not isinstance(spec, str):
        return spec
    parts = spec.split(":", 1)
    key = parts[0].strip().lower()
    params = _parse_params(parts[1] if len(parts) > 1 else "")
    if key == "fixed":
        from .fixed import FixedSizeChunker
        return FixedSizeChunker(**_take(params, {"size": "size", "overlap": "overlap"}))
    if key == "recursive":
        from .recursive import RecursiveChunker
        return RecursiveChunker(**_take(params, {"size": "size", "overlap": "overlap"}))
    if key == "sentence":
        from .boundary import SentenceChunker
        return SentenceChunker(
            **_take(params, {"size": "size", "overlap": "overlap", "min": "min_size", "max": "max_size"})
        )
    if key == "paragraph":
        from .boundary import ParagraphChunker
        return ParagraphChunker(**_take(params, {"size": "size", "overlap": "overlap", "paragraphs": "max_paragraphs"}))
    if key in ("hierarchical", "parent_child"):
        from .hierarchical import HierarchicalChunker
        kw = _take(
            params,
            {"parent": "parent_size", "child": "child_size", "overlap": "child_overlap", "parents": "include_parents"},
        )
        if "include_parents" in kw:
            kw["include_parents"] = bool(kw["include_parents"])  # type: ignore[assignment]
        return HierarchicalChunker(**kw)
    raise ConfigurationError(f"unknown chunking strategy: {key!r}")


def chunk(document: Document, strategy: Union[str, Chunker]) -> List[Unit]:
    return resolve_chunker(strategy).chunk(document)
