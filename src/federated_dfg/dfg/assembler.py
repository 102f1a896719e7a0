"""Turning decrypted global totals into a directly-follows graph."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

from federated_dfg.errors import LengthMismatch

Pair = Tuple[str, str]

START_ACTIVITY = "▶"
END_ACTIVITY = "■"


@dataclass
class DirectlyFollowsGraph:
    """
    Nodes are activities with their frequency, edges are directly-follows
    relations with their totals. Start/end activities are filled from edges
    that touch the artificial markers.
    """

    activities: Dict[str, int] = field(default_factory=dict)
    directly_follows_relations: Dict[Pair, int] = field(default_factory=dict)
    start_activities: Dict[str, int] = field(default_factory=dict)
    end_activities: Dict[str, int] = field(default_factory=dict)

    @property
    def nodes(self) -> set:
        return set(self.activities)

    @property
    def edges(self) -> Dict[Pair, int]:
        return dict(self.directly_follows_relations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activities": dict(sorted(self.activities.items())),
            "directly_follows_relations": [
                {"from": source, "to": target, "frequency": freq}
                for (source, target), freq in sorted(self.directly_follows_relations.items())
            ],
            "start_activities": dict(sorted(self.start_activities.items())),
            "end_activities": dict(sorted(self.end_activities.items())),
        }

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def _recalculate_activity_counts(relations: Dict[Pair, int], activities: Sequence[str]) -> Dict[str, int]:
    incoming: Dict[str, int] = {act: 0 for act in activities}
    outgoing: Dict[str, int] = {act: 0 for act in activities}
    for (source, target), freq in relations.items():
        outgoing[source] += freq
        incoming[target] += freq
    return {act: max(incoming[act], outgoing[act]) for act in activities}


def assemble_dfg(pairs: Sequence[Pair], counts: Sequence[int], split_markers: bool = False) -> DirectlyFollowsGraph:
    """
    Build a DFG from aligned pair labels and totals.

    Pure and deterministic. Every activity named by a pair becomes a node;
    zero totals produce no edge. Activity frequencies are
    max(sum of incoming, sum of outgoing).

    With ``split_markers`` the tables are assumed to be framed by
    START_ACTIVITY/END_ACTIVITY: marker edges feed ``start_activities`` and
    ``end_activities`` (counted into activity frequencies first) and the
    markers themselves are dropped. Without it, marker labels are ordinary
    activities and every pair with a positive total stays an edge.
    """
    if len(pairs) != len(counts):
        raise LengthMismatch(f"{len(pairs)} pairs but {len(counts)} counts")

    relations: Dict[Pair, int] = {}
    activities = set()
    for (source, target), count in zip(pairs, counts):
        activities.update((source, target))
        if count > 0:
            relations[(source, target)] = relations.get((source, target), 0) + count

    ordered = sorted(activities)
    activity_counts = _recalculate_activity_counts(relations, ordered)

    graph = DirectlyFollowsGraph()
    if not split_markers:
        graph.directly_follows_relations = relations
        graph.activities = activity_counts
        return graph
    for (source, target), freq in relations.items():
        if source == START_ACTIVITY:
            if target != END_ACTIVITY:
                graph.start_activities[target] = graph.start_activities.get(target, 0) + freq
        elif target == END_ACTIVITY:
            graph.end_activities[source] = graph.end_activities.get(source, 0) + freq
        else:
            graph.directly_follows_relations[(source, target)] = freq
    graph.activities = {
        act: freq for act, freq in activity_counts.items() if act not in (START_ACTIVITY, END_ACTIVITY)
    }
    return graph
