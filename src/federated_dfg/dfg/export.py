"""Writing a DFG to JSON or, through pm4py's graphviz visualizer, to an image."""

from __future__ import annotations

from pathlib import Path

import pm4py

from federated_dfg.dfg.assembler import DirectlyFollowsGraph
from federated_dfg.utils import get_logger

logger = get_logger("dfg.export")


def write_dfg_json(dfg: DirectlyFollowsGraph, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dfg.to_json(indent=2) + "\n", encoding="utf-8")
    logger.info("Wrote DFG with %d edges to %s", len(dfg.directly_follows_relations), path)
    return path


def render_dfg_image(dfg: DirectlyFollowsGraph, path: str | Path) -> Path:
    """Render to an image; the format follows the file extension (needs graphviz)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pm4py.save_vis_dfg(
        dict(dfg.directly_follows_relations),
        dict(dfg.start_activities),
        dict(dfg.end_activities),
        str(path),
    )
    logger.info("Rendered DFG image to %s", path)
    return path
