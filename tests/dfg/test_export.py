import json
from pathlib import Path

import pytest

from federated_dfg.dfg import END_ACTIVITY, START_ACTIVITY, assemble_dfg
from federated_dfg.dfg import export


def _dfg():
    return assemble_dfg([(START_ACTIVITY, "a"), ("a", "b"), ("b", END_ACTIVITY)], [2, 2, 2], split_markers=True)


def test_write_dfg_json(tmp_path: Path) -> None:
    path = export.write_dfg_json(_dfg(), tmp_path / "out" / "dfg.json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["activities"] == {"a": 2, "b": 2}
    assert data["start_activities"] == {"a": 2}
    assert data["end_activities"] == {"b": 2}


def test_render_delegates_to_pm4py(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(export.pm4py, "save_vis_dfg", lambda *args: calls.append(args))
    export.render_dfg_image(_dfg(), tmp_path / "dfg.png")
    dfg, start, end, target = calls[0]
    assert dfg == {("a", "b"): 2}
    assert start == {"a": 2}
    assert end == {"b": 2}
    assert target.endswith("dfg.png")
