"""Pytest fixtures for forcelayout tests."""

import json

import pytest

from forcelayout.layout import LayoutConfig, SpringLayout


class RecordingSink:
    """Sink recording every event it receives as (name, args) tuples."""

    def __init__(self):
        self.events = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def record(*args):
            self.events.append((name, args))

        return record

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def layout():
    """A 2D layout with a fixed seed."""
    engine = SpringLayout(LayoutConfig(seed=42))
    yield engine
    engine.close()


@pytest.fixture
def exact_layout():
    """A 2D layout using exact repulsion."""
    engine = SpringLayout(LayoutConfig(seed=42, quality=4))
    yield engine
    engine.close()


@pytest.fixture
def recorder():
    return RecordingSink()


@pytest.fixture
def graph_file(tmp_path):
    """Write a small triangle graph with a pendant node to a JSON file."""
    graph = {
        "nodes": [
            "a",
            "b",
            {"id": "c", "weight": 2.0},
            {"id": "d", "position": [5.0, 5.0], "frozen": True},
        ],
        "edges": [
            {"id": "ab", "source": "a", "target": "b"},
            {"id": "bc", "source": "b", "target": "c", "weight": 1.5},
            {"source": "c", "target": "a"},
            {"id": "cd", "source": "c", "target": "d", "ignored": True},
        ],
        "attributes": {"layout.quality": 2},
    }
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(graph))
    return path


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run with no user config and a project root at tmp_path."""
    (tmp_path / ".git").mkdir(exist_ok=True)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("forcelayout.config.USER_CONFIG_PATH", tmp_path / "no-user.toml")
    return tmp_path
