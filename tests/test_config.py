from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from strata.config import Settings, setup_logging


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("STRATA_GRAPH_HOPS", "4")
    monkeypatch.setenv("STRATA_AGGREGATION", "sum")
    monkeypatch.setenv("STRATA_HYBRID_WEIGHTS", "[0.5, 0.5]")
    s = Settings()
    assert s.graph_hops == 4
    assert s.aggregation == "sum"
    assert s.hybrid_weights == [0.5, 0.5]


def test_defaults():
    s = Settings()
    assert s.chunking.startswith("hierarchical:")
    assert s.graph_similarity_threshold == 0.8
    assert s.graph_edge_weight_threshold == 0.7
    assert s.child_multiplier == 3
    assert s.mmr_lambda == 0.5


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        Settings(aggregation="median")
    with pytest.raises(ValidationError):
        Settings(mmr_lambda=2.0)


def test_setup_logging_emits_json_lines(capsys):
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        setup_logging("DEBUG")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        logging.getLogger("strata.test").info("hello")
    finally:
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["msg"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["name"] == "strata.test"


def test_json_log_lines_escape_messages(capsys):
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        setup_logging("INFO")
        log = logging.getLogger("strata.test")
        log.warning('unit "a:b" has a\nnewline')
        try:
            raise ValueError("boom")
        except ValueError:
            log.exception("failed")
    finally:
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
    lines = capsys.readouterr().out.strip().splitlines()
    first, second = json.loads(lines[-2]), json.loads(lines[-1])
    assert first["msg"] == 'unit "a:b" has a\nnewline'
    assert second["level"] == "ERROR"
    assert "ValueError: boom" in second["exc"]


def test_hybrid_method_validated():
    with pytest.raises(ValidationError):
        Settings(hybrid_method="borda")
