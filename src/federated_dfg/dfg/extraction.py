"""From XES event logs to local directly-follows frequency tables."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd
import pm4py

from federated_dfg.dfg.assembler import END_ACTIVITY, START_ACTIVITY
from federated_dfg.utils import get_logger

logger = get_logger("dfg.extraction")

Pair = Tuple[str, str]

CASE_KEY = "case:concept:name"
ACTIVITY_KEY = "concept:name"
TIMESTAMP_KEY = "time:timestamp"


def read_event_log(path: str | Path) -> pd.DataFrame:
    """Import an .xes or .xes.gz file as a pm4py event dataframe."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event log not found at {path}")
    log = pm4py.read_xes(str(path))
    if not isinstance(log, pd.DataFrame):
        log = pm4py.convert_to_dataframe(log)
    logger.info("Read %d events from %s", len(log), path)
    return log


def traces_from_dataframe(df: pd.DataFrame) -> List[List[str]]:
    """Activity sequences per case, ordered by timestamp; empty traces are dropped."""
    missing = {CASE_KEY, ACTIVITY_KEY} - set(df.columns)
    if missing:
        raise ValueError(f"Event log lacks required columns {sorted(missing)}")
    frame = df
    if TIMESTAMP_KEY in frame.columns:
        frame = frame.sort_values([CASE_KEY, TIMESTAMP_KEY], kind="stable")
    traces: List[List[str]] = []
    for _, events in frame.groupby(CASE_KEY, sort=True):
        activities = [str(act) for act in events[ACTIVITY_KEY] if pd.notna(act)]
        if activities:
            traces.append(activities)
    return traces


def count_directly_follows(traces: Iterable[Sequence[str]], add_start_end: bool = True) -> Dict[Pair, int]:
    """Count directly-follows pairs, optionally framing each trace with start/end markers."""
    table: Dict[Pair, int] = {}
    for trace in traces:
        if not trace:
            continue
        sequence = list(trace)
        if add_start_end:
            sequence = [START_ACTIVITY] + sequence + [END_ACTIVITY]
        for source, target in zip(sequence, sequence[1:]):
            table[(source, target)] = table.get((source, target), 0) + 1
    return table


def frequency_table_from_xes(path: str | Path, add_start_end: bool = True) -> Dict[Pair, int]:
    traces = traces_from_dataframe(read_event_log(path))
    table = count_directly_follows(traces, add_start_end=add_start_end)
    logger.info("Extracted %d directly-follows pairs from %d traces in %s", len(table), len(traces), path)
    return table
