from __future__ import annotations

import asyncio

import numpy as np
import pytest

from strata.errors import ConfigurationError, InputError
from strata.graph import RelationshipGraph
from strata.types import EdgeType


@pytest.mark.asyncio
async def test_sequential_edges_both_directions(make_unit):
    g = RelationshipGraph()
    units = [make_unit(f"d:chunk:{i}", doc="d", index=i) for i in range(3)]
    added = await g.add_units(units)
    assert added == 4
    assert g.node_count() == 3
    assert g.edge_count() == 4
    middle = await g.neighbors("d:chunk:1")
    assert sorted(e.target_id for e in middle) == ["d:chunk:0", "d:chunk:2"]
    assert all(e.type == EdgeType.SEQUENTIAL and e.weight == 1.0 for e in middle)


@pytest.mark.asyncio
async def test_sequential_edges_stay_within_document_and_level(make_unit):
    g = RelationshipGraph()
    await g.add_units(
        [
            make_unit("a0", doc="a", index=0),
            make_unit("b1", doc="b", index=1),
            make_unit("a1p", doc="a", index=1, level="parent"),
        ]
    )
    assert g.edge_count() == 0


@pytest.mark.asyncio
async def test_sequential_edges_link_across_batches(make_unit):
    g = RelationshipGraph()
    await g.add_units([make_unit("x0", doc="x", index=0)])
    await g.add_units([make_unit("x1", doc="x", index=1)])
    assert [e.target_id for e in await g.neighbors("x0")] == ["x1"]


@pytest.mark.asyncio
async def test_semantic_edges(make_unit):
    g = RelationshipGraph(similarity_threshold=0.8)
    units = [make_unit("p", doc="1"), make_unit("q", doc="2"), make_unit("r", doc="3")]
    vectors = [[1.0, 0.0], [0.9, 0.1], [0.0, 1.0]]
    await g.add_units(units, vectors)
    edges = await g.neighbors("p", EdgeType.SEMANTIC)
    assert [e.target_id for e in edges] == ["q"]
    expected = 0.9 / np.linalg.norm([0.9, 0.1])
    assert np.isclose(edges[0].weight, expected)
    back = await g.neighbors("q", EdgeType.SEMANTIC)
    assert [e.target_id for e in back] == ["p"]
    assert await g.neighbors("r") == []
    assert np.allclose(await g.vector("p"), [1.0, 0.0])


@pytest.mark.asyncio
async def test_link_existing_compares_against_earlier_batches(make_unit):
    plain = RelationshipGraph(link_existing=False)
    linked = RelationshipGraph(link_existing=True)
    for g in (plain, linked):
        await g.add_units([make_unit("p", doc="1")], [[1.0, 0.0]])
        await g.add_units([make_unit("q", doc="2")], [[1.0, 0.05]])
    assert plain.edge_count() == 0
    assert linked.edge_count() == 2


@pytest.mark.asyncio
async def test_duplicates_and_self_edges_suppressed(make_unit):
    g = RelationshipGraph()
    units = [make_unit("a", index=0), make_unit("b", index=1)]
    await g.add_units(units, [[1.0, 0.0], [1.0, 0.0]])
    before = g.edge_count()
    await g.add_units(units, [[1.0, 0.0], [1.0, 0.0]])
    assert g.edge_count() == before
    assert all(e.target_id != "a" for e in await g.neighbors("a"))
    with pytest.raises(InputError):
        await g.add_reference("a", "a")


@pytest.mark.asyncio
async def test_references(make_unit):
    g = RelationshipGraph()
    await g.add_units([make_unit("a", doc="1"), make_unit("b", doc="2")])
    await g.add_reference("a", "b", weight=0.5)
    assert [(e.target_id, e.type, e.weight) for e in await g.neighbors("a")] == [("b", EdgeType.REFERENCE, 0.5)]
    assert await g.neighbors("b") == []
    await g.add_reference("a", "b", weight=0.5, bidirectional=True)
    assert [e.target_id for e in await g.neighbors("b")] == ["a"]

    with pytest.raises(InputError):
        await g.add_reference("a", "missing")
    with pytest.raises(InputError):
        await g.add_reference("a", "b", weight=1.5)


@pytest.mark.asyncio
async def test_remove_units_cascades(make_unit):
    g = RelationshipGraph()
    units = [make_unit(f"n{i}", doc="d", index=i) for i in range(3)]
    await g.add_units(units)
    assert await g.remove_units(["n1", "unknown"]) == 1
    assert g.node_count() == 2
    assert g.edge_count() == 0
    assert await g.neighbors("n0") == []
    assert await g.unit("n1") is None
    assert (await g.unit("n0")).id == "n0"


def test_threshold_validation():
    with pytest.raises(ConfigurationError):
        RelationshipGraph(similarity_threshold=1.5)


@pytest.mark.asyncio
async def test_neighbors_during_removal_never_see_half_removed_nodes(make_unit):
    g = RelationshipGraph()
    units = [make_unit(f"d:chunk:{i}", doc="d", index=i) for i in range(6)]
    await g.add_units(units)
    doomed = {"d:chunk:2", "d:chunk:3"}

    outcomes = await asyncio.gather(
        g.neighbors("d:chunk:1"),
        g.remove_units(sorted(doomed)),
        g.neighbors("d:chunk:1"),
        g.neighbors("d:chunk:4"),
    )
    assert sorted(e.target_id for e in outcomes[0]) == ["d:chunk:0", "d:chunk:2"]
    assert outcomes[1] == 2
    assert [e.target_id for e in outcomes[2]] == ["d:chunk:0"]
    assert [e.target_id for e in outcomes[3]] == ["d:chunk:5"]
    assert g.edge_count() == 4
