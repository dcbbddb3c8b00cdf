from __future__ import annotations

from typing import Any, Callable

import pytest

from strata.embeddings import HashEmbeddingProvider
from strata.store import InMemoryChunkStore
from strata.types import Unit


@pytest.fixture
def make_unit() -> Callable[..., Unit]:
    """Build a standalone Unit; content defaults to the id so offsets line up."""

    def _make(uid: str, content: str | None = None, doc: str = "doc", index: int = 0, **meta: Any) -> Unit:
        text = content if content is not None else uid
        return Unit(
            id=uid,
            document_id=doc,
            index=index,
            start=0,
            end=len(text),
            content=text,
            metadata=dict(meta),
        )

    return _make


@pytest.fixture
def embedder() -> HashEmbeddingProvider:
    return HashEmbeddingProvider(dimensions=16)


@pytest.fixture
def store() -> InMemoryChunkStore:
    return InMemoryChunkStore()

