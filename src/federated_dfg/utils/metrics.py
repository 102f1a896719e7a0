"""Per-run cost accounting: operation counters and phase timers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

Labels = Tuple[Tuple[str, str], ...]


@dataclass
class MetricPoint:
    value: float
    labels: Labels


class InMemoryMetrics:
    """
    Collects samples for a single protocol run.

    Counters record operation counts (HE encryptions, PSI blindings, bytes
    sent); timers record phase durations. Samples keep their labels so they
    can be regrouped afterwards.
    """

    def __init__(self) -> None:
        self.counters: Dict[str, List[MetricPoint]] = {}
        self.timers: Dict[str, List[MetricPoint]] = {}

    @staticmethod
    def _emit(store: Dict[str, List[MetricPoint]], name: str, value: float, labels: Dict[str, str]) -> None:
        store.setdefault(name, []).append(MetricPoint(value=value, labels=tuple(labels.items())))

    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None:
        self._emit(self.counters, name, value, labels)

    def emit_timer(self, name: str, value: float, **labels: str) -> None:
        self._emit(self.timers, name, value, labels)

    def counter_total(self, name: str) -> float:
        return sum(point.value for point in self.counters.get(name, []))

    def counter_totals(self) -> Dict[str, int]:
        """Integer total of every counter, by name."""
        return {name: int(self.counter_total(name)) for name in sorted(self.counters)}

    def timer_by_label(self, name: str, label: str) -> Dict[str, float]:
        """Sum timer samples grouped by the value of one label."""
        totals: Dict[str, float] = {}
        for point in self.timers.get(name, []):
            key = dict(point.labels).get(label, "")
            totals[key] = totals.get(key, 0.0) + point.value
        return totals

    def snapshot(self) -> Dict[str, Dict[str, List[MetricPoint]]]:
        return {
            "counters": {name: list(points) for name, points in self.counters.items()},
            "timers": {name: list(points) for name, points in self.timers.items()},
        }


class Timer:
    """Times a block and records it to ``sink``; ``elapsed`` is set on exit, even on error."""

    def __init__(self, sink: InMemoryMetrics, name: str, **labels: str) -> None:
        self.sink = sink
        self.name = name
        self.labels = labels
        self._start: Optional[float] = None
        self.elapsed: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if self._start is None:
            return
        self.elapsed = time.perf_counter() - self._start
        self.sink.emit_timer(self.name, self.elapsed, **self.labels)
