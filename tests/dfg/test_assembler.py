import json

import pytest

from federated_dfg.dfg import END_ACTIVITY, START_ACTIVITY, assemble_dfg
from federated_dfg.errors import LengthMismatch


def test_nodes_and_weighted_edges() -> None:
    dfg = assemble_dfg([("a", "b"), ("b", "c"), ("c", "d")], [4, 2, 4])
    assert dfg.nodes == {"a", "b", "c", "d"}
    assert dfg.edges == {("a", "b"): 4, ("b", "c"): 2, ("c", "d"): 4}
    assert dfg.activities == {"a": 4, "b": 4, "c": 4, "d": 4}


def test_zero_counts_produce_no_edge() -> None:
    dfg = assemble_dfg([("a", "b"), ("b", "c")], [3, 0])
    assert dfg.edges == {("a", "b"): 3}
    assert "c" in dfg.nodes


def test_start_and_end_markers() -> None:
    pairs = [(START_ACTIVITY, "a"), ("a", "b"), ("b", END_ACTIVITY), ("a", END_ACTIVITY), (START_ACTIVITY, END_ACTIVITY)]
    dfg = assemble_dfg(pairs, [5, 3, 3, 2, 1], split_markers=True)
    assert dfg.start_activities == {"a": 5}
    assert dfg.end_activities == {"b": 3, "a": 2}
    assert dfg.edges == {("a", "b"): 3}
    # incoming 5 from the start marker, outgoing 3 + 2
    assert dfg.activities == {"a": 5, "b": 3}
    assert START_ACTIVITY not in dfg.nodes and END_ACTIVITY not in dfg.nodes


def test_is_deterministic_and_serializable() -> None:
    pairs = [("b", "c"), ("a", "b")]
    first = assemble_dfg(pairs, [1, 2])
    second = assemble_dfg(list(reversed(pairs)), [2, 1])
    assert first.to_dict() == second.to_dict()
    data = json.loads(first.to_json())
    assert data["directly_follows_relations"][0] == {"from": "a", "to": "b", "frequency": 2}


def test_length_mismatch() -> None:
    with pytest.raises(LengthMismatch):
        assemble_dfg([("a", "b")], [1, 2])


def test_marker_labels_are_plain_activities_by_default() -> None:
    pairs = [(START_ACTIVITY, "a"), ("a", "b"), ("b", END_ACTIVITY)]
    dfg = assemble_dfg(pairs, [2, 1, 1])
    assert dfg.edges == {(START_ACTIVITY, "a"): 2, ("a", "b"): 1, ("b", END_ACTIVITY): 1}
    assert dfg.start_activities == {}
    assert dfg.end_activities == {}
    assert START_ACTIVITY in dfg.nodes and END_ACTIVITY in dfg.nodes
