"""Tests for the JSON document store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskcoord.engine.manager import TaskManager
from taskcoord.config import Settings
from taskcoord.errors import StoreError
from taskcoord.storage import JsonStore, MemoryStore, new_agents, new_tracker


@pytest.fixture
def store(tmp_path: Path) -> JsonStore:
    return JsonStore(tmp_path / "data")


def test_initialize_creates_files(store: JsonStore) -> None:
    assert not store.exists()
    assert store.initialize("Demo", max_recommendations=5) is True

    assert store.exists()
    assert (store.data_dir / "README.md").exists()
    tracker = json.loads(store.tracker_path.read_text())
    assert tracker["project"]["name"] == "Demo"
    assert tracker["current_state"]["recommendation_algorithm"]["max_recommendations"] == 5
    assert json.loads(store.agents_path.read_text())["registry"] == {}


def test_initialize_twice_keeps_data(store: JsonStore) -> None:
    store.initialize("First")
    assert store.initialize("Second") is False
    assert store.load_tasks()["project"]["name"] == "First"


def test_missing_files_load_as_empty(store: JsonStore) -> None:
    assert store.load_tasks()["tasks"] == {}
    assert store.load_agents()["registry"] == {}


def test_save_and_load(store: JsonStore) -> None:
    tracker = new_tracker()
    tracker["tasks"]["TASK-001"] = {"title": "Persisted"}
    agents = new_agents()
    agents["registry"]["a1"] = {"name": "A"}

    store.save(tracker, agents)

    assert store.load_tasks()["tasks"]["TASK-001"]["title"] == "Persisted"
    assert store.load_agents()["registry"]["a1"]["name"] == "A"


def test_save_leaves_no_temp_files(store: JsonStore) -> None:
    store.initialize()
    store.save(new_tracker(), new_agents())
    leftovers = [p.name for p in store.data_dir.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_corrupt_json_raises(store: JsonStore) -> None:
    store.initialize()
    store.tracker_path.write_text("{not json")
    with pytest.raises(StoreError):
        store.load_tasks()


def test_non_object_document_raises(store: JsonStore) -> None:
    store.initialize()
    store.agents_path.write_text("[]")
    with pytest.raises(StoreError):
        store.load_agents()


def test_manager_open_initialises_directory(tmp_path: Path) -> None:
    data_dir = tmp_path / "fresh"
    manager = TaskManager.open(settings=Settings(data_dir=data_dir))
    manager.add_agent("Bot", agent_id="bot")
    manager.create_task("Persisted task")

    reopened = TaskManager.open(settings=Settings(data_dir=data_dir))
    assert reopened.get_task("TASK-001").title == "Persisted task"
    assert reopened.get_agent("bot").name == "Bot"


def test_memory_store_isolates_callers() -> None:
    store = MemoryStore()
    tracker = store.load_tasks()
    tracker["tasks"]["X"] = {"title": "local only"}
    assert store.load_tasks()["tasks"] == {}

    store.save(tracker, store.load_agents())
    tracker["tasks"]["Y"] = {}
    assert list(store.load_tasks()["tasks"]) == ["X"]
    assert store.save_count == 1
