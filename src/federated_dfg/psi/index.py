"""The agreed slot enumeration and validation of local pair sets."""

from __future__ import annotations

import json
import numbers
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from federated_dfg.crypto import fingerprint
from federated_dfg.errors import LengthMismatch, ReconciliationError

Pair = Tuple[str, str]


def encode_pair(pair: Pair) -> str:
    """Canonical, separator-safe string encoding of a pair."""
    return json.dumps([pair[0], pair[1]], ensure_ascii=False, separators=(",", ":"))


def validate_pairs(pairs: Iterable[object]) -> List[Pair]:
    """Check that every element is a (str, str) pair with non-empty labels."""
    result: List[Pair] = []
    for pair in pairs:
        if not isinstance(pair, (tuple, list)) or len(pair) != 2:
            raise ReconciliationError(f"Not a directly-follows pair: {pair!r}")
        source, target = pair
        if not isinstance(source, str) or not isinstance(target, str) or not source or not target:
            raise ReconciliationError(f"Pair activities must be non-empty strings: {pair!r}")
        result.append((source, target))
    return result


def validate_table(table: Mapping[Pair, int]) -> Dict[Pair, int]:
    """Validate a LocalFrequencyTable and return a normalized copy."""
    normalized: Dict[Pair, int] = {}
    for pair, count in table.items():
        (key,) = validate_pairs([pair])
        if isinstance(count, bool) or not isinstance(count, numbers.Integral) or count < 0:
            raise ReconciliationError(f"Count for {key} must be a non-negative integer, got {count!r}")
        normalized[key] = int(count)
    return normalized


@dataclass(frozen=True)
class PairIndex:
    """
    One party's view of the agreed enumeration.

    ``keys`` is identical, element for element, in both parties' views.
    ``labels`` names only the positions this party can resolve; any other
    position is a pair observed solely by the peer.
    """

    keys: Tuple[str, ...]
    labels: Mapping[int, Pair] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if len(set(self.keys)) != len(self.keys):
            raise ReconciliationError("PairIndex keys must be unique")
        for pos in self.labels:
            if not 0 <= pos < len(self.keys):
                raise ReconciliationError(f"Label position {pos} outside index of size {len(self.keys)}")
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    def __len__(self) -> int:
        return len(self.keys)

    @cached_property
    def _positions(self) -> Dict[Pair, int]:
        return {pair: pos for pos, pair in self.labels.items()}

    @cached_property
    def digest(self) -> str:
        """Fingerprint of the slot keys; equal for both parties after reconciliation."""
        return fingerprint("\n".join(self.keys).encode("utf-8"))

    def label(self, position: int) -> Optional[Pair]:
        return self.labels.get(position)

    def position(self, pair: Pair) -> int:
        try:
            return self._positions[pair]
        except KeyError:
            raise ReconciliationError(f"Pair {pair} is not part of the agreed index") from None

    def unknown_positions(self) -> List[int]:
        return [pos for pos in range(len(self.keys)) if pos not in self.labels]

    def align(self, table: Mapping[Pair, int]) -> List[int]:
        """Build the PlaintextVector for a local table, 0-filling absent pairs."""
        vector = [0] * len(self.keys)
        for pair, count in table.items():
            vector[self.position(pair)] = count
        return vector

    def with_labels(self, extra: Mapping[int, Pair]) -> "PairIndex":
        """Return a view that also names the given positions."""
        merged = dict(self.labels)
        for pos, pair in extra.items():
            if pos in merged and merged[pos] != pair:
                raise ReconciliationError(f"Conflicting labels for position {pos}: {merged[pos]} vs {pair}")
            merged[pos] = pair
        return PairIndex(self.keys, merged)

    def labelled_pairs(self) -> List[Pair]:
        """All pairs in slot order; every position must be labelled."""
        missing = self.unknown_positions()
        if missing:
            raise LengthMismatch(f"{len(missing)} index positions have no label")
        return [self.labels[pos] for pos in range(len(self.keys))]
