"""Typed errors raised by strata.
SPDX-License-Identifier: BUSL-1.1

Configuration errors are raised eagerly (construction or operation start).
Input errors describe unusable caller input. Both subclass ValueError so
callers that only know the builtin keep working.
"""
from __future__ import annotations

from typing import Optional


class StrataError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(StrataError, ValueError):
    pass


class InputError(StrataError, ValueError):
    pass


class EmptyDocumentError(InputError):
    def __init__(self, document_id: Optional[str] = None) -> None:
        self.document_id = document_id
        msg = "cannot chunk an empty document"
        if document_id:
            msg = f"{msg}: {document_id}"
        super().__init__(msg)


class DimensionMismatchError(InputError):
    def __init__(self, expected: int, got: int) -> None:
        self.expected = int(expected)
        self.got = int(got)
        super().__init__(f"dimension mismatch: expected {self.expected}, got {self.got}")


class FilterError(InputError):
    pass


class RetrievalError(StrataError):
    """A retrieval collaborator (such as a reranker) failed."""


def require_positive_limit(limit: int) -> int:
    """Validate a result limit at operation start."""
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ConfigurationError(f"limit must be an int, got {type(limit).__name__}")
    if limit <= 0:
        raise ConfigurationError(f"limit must be positive, got {limit}")
    return limit
