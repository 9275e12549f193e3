import json
from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


def rename_ids(raw: dict, mapping: dict) -> dict:
    """Apply a node-id renaming to a raw workflow, connection sources included."""
    renamed = {}
    for node_id, node in raw.items():
        inputs = {}
        for name, value in node["inputs"].items():
            if isinstance(value, list) and len(value) == 2 and isinstance(value[0], str):
                value = [mapping[value[0]], value[1]]
            inputs[name] = value
        renamed[mapping[node_id]] = {**node, "inputs": inputs}
    return renamed


@pytest.fixture
def sample_path() -> Path:
    return FIXTURES / "sample_workflow.json"


@pytest.fixture
def sample_workflow(sample_path) -> dict:
    return json.loads(sample_path.read_text())
