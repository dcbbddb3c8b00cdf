"""Settings and logging for strata.
SPDX-License-Identifier: BUSL-1.1
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STRATA_", env_file=".env", env_file_encoding="utf-8")
    log_level: str = "INFO"
    # Chunking (see strata.chunking.resolve_chunker for the spec format)
    chunking: str = "hierarchical:parent=2000,child=400,overlap=50,parents=1"
    # Chunk store similarity: cosine|dot|euclidean
    similarity: str = "cosine"
    # Relationship graph
    graph_similarity_threshold: float = 0.8
    graph_link_existing: bool = False
    # Graph retrieval
    graph_hops: int = 2
    graph_edge_weight_threshold: float = 0.7
    # Hierarchical retrieval
    child_multiplier: int = 3
    aggregation: str = "max"
    parent_cache_size: int = 100
    # Hybrid retrieval over (vector, graph); weights are positional
    hybrid_method: str = "weighted"
    hybrid_weights: list[float] = [0.7, 0.3]
    hybrid_fetch_multiplier: int = 2
    rrf_k: int = 60
    # MMR
    mmr_lambda: float = 0.5
    mmr_candidate_multiplier: int = 3
    # Embeddings
    embed_dimensions: int = 32
    embed_cache_size: int = 10000
    embed_cache_ttl_seconds: Optional[float] = None
    embed_rate_limit: Optional[float] = None  # tokens per second; unset disables

    @field_validator("aggregation")
    @classmethod
    def _check_aggregation(cls, v: str) -> str:
        if v not in ("max", "average", "sum"):
            raise ValueError(f"unknown aggregation: {v}")
        return v

    @field_validator("hybrid_method")
    @classmethod
    def _check_hybrid_method(cls, v: str) -> str:
        if v not in ("weighted", "rrf"):
            raise ValueError(f"unknown hybrid method: {v}")
        return v

    @field_validator("mmr_lambda")
    @classmethod
    def _check_lambda(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("mmr_lambda must be in [0, 1]")
        return v


settings = Settings()


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, msg, name (plus exc when present)."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "msg": record.getMessage(),
            "name": record.name,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: Optional[str] = None) -> None:
    lvl = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(lvl)
