"""strata: hybrid text retrieval core.
SPDX-License-Identifier: BUSL-1.1
"""
from __future__ import annotations

from .errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmptyDocumentError,
    FilterError,
    InputError,
    RetrievalError,
    StrataError,
)
from .types import Document, Edge, EdgeType, Embedding, RetrievalResult, Unit

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "Document",
    "Edge",
    "EdgeType",
    "Embedding",
    "EmptyDocumentError",
    "FilterError",
    "InputError",
    "RetrievalError",
    "RetrievalResult",
    "StrataError",
    "Unit",
    "__version__",
]
