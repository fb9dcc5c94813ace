from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from flowpolicy.evaluation.budget import budget_scope


@pytest.fixture(autouse=True)
def _budget_scope_fixture():
    with budget_scope(100_000):
        yield


@pytest.fixture
def write_graph():
    def _write(path: Path, controllers: list[dict[str, object]]) -> Path:
        path.write_text(
            json.dumps({"controllers": controllers}, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return path

    return _write


@pytest.fixture
def delete_check_controller():
    def _make(*, influenced: bool = True) -> dict[str, object]:
        edges = [{"source": "req", "target": "d1", "kind": "data"}]
        if influenced:
            edges.append({"source": "d1", "target": "w", "kind": "control"})
        return {
            "name": "delete_community",
            "nodes": [
                {"id": "req", "markers": ["community"]},
                {"id": "d1", "markers": ["delete_check"]},
                {"id": "w", "markers": ["db_write"], "kind": "call_site"},
            ],
            "edges": edges,
        }

    return _make
