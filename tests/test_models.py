"""Tests for entity (de)serialisation."""

from __future__ import annotations

import logging

import pytest

from taskcoord.models import Agent, Assignee, ProjectState, Task
from taskcoord.storage.json_store import new_agents, new_tracker


def test_self_dependency_rejected() -> None:
    with pytest.raises(ValueError):
        Task(id="T", title="t", dependencies=["T"])


def test_task_keeps_unknown_keys() -> None:
    stored = {
        "id": "TASK-001",
        "title": "Stored",
        "status": "review",
        "custom_field": {"nested": True},
        "assignees": [{"id": "a1", "name": "A"}],
    }
    task = Task.from_dict(stored)
    assert task.extra == {"custom_field": {"nested": True}}
    assert task.assignees[0].type == "human"

    data = task.to_dict()
    assert data["custom_field"] == {"nested": True}
    assert data["status"] == "review"


def test_task_tolerates_missing_fields() -> None:
    task = Task.from_dict({"id": "T", "dependencies": None})
    assert task.title == ""
    assert task.dependencies == []
    assert task.recommendation_score == 0


def test_set_status_stamps_completion_once() -> None:
    task = Task(id="T", title="t")
    task.set_status("completed")
    stamp = task.completed
    assert stamp is not None
    task.set_status("completed")
    assert task.completed == stamp


def test_drop_references() -> None:
    task = Task(id="T", title="t", dependencies=["A", "B"], blocks=["A"])
    assert task.drop_references("A")
    assert task.dependencies == ["B"]
    assert task.blocks == []
    assert not task.drop_references("Z")


def test_add_assignee_reports_duplicates() -> None:
    task = Task(id="T", title="t")
    assert task.add_assignee(Assignee(id="a", name="A"))
    assert not task.add_assignee(Assignee(id="a", name="Other"))
    assert len(task.assignees) == 1


def test_agent_snapshot() -> None:
    agent = Agent(id="a", name="A", type="ai", capabilities=["coding"])
    snap = agent.snapshot(role="reviewer")
    assert (snap.id, snap.name, snap.type, snap.role) == ("a", "A", "ai", "reviewer")


def test_agent_from_dict_defaults_name() -> None:
    agent = Agent.from_dict({"id": "a", "skills": ["x"]})
    assert agent.name == "a"
    assert agent.workload.active_tasks == 0
    assert agent.to_dict()["skills"] == ["x"]


def test_project_state_documents_round_trip() -> None:
    tracker = new_tracker("Demo")
    tracker["current_state"]["active_phase"] = "phase-2"
    tracker["tasks"]["TASK-001"] = {"title": "One", "priority": "high"}
    tracker["custom_section"] = [1, 2]
    agents = new_agents()
    agents["registry"]["a1"] = {"name": "Agent", "type": "ai"}

    state = ProjectState.from_documents(tracker, agents)
    assert state.active_phase == "phase-2"
    assert state.tasks["TASK-001"].id == "TASK-001"
    assert state.agents["a1"].type == "ai"

    out_tracker, out_agents = state.to_documents()
    assert out_tracker["current_state"]["active_phase"] == "phase-2"
    assert out_tracker["custom_section"] == [1, 2]
    assert out_tracker["tasks"]["TASK-001"]["priority"] == "high"
    assert out_agents["registry"]["a1"]["name"] == "Agent"
    assert out_agents["types"] == agents["types"]


def test_stored_self_dependency_dropped_on_load(caplog: pytest.LogCaptureFixture) -> None:
    tracker = new_tracker("Demo")
    tracker["tasks"]["T1"] = {"title": "Loop", "dependencies": ["T1", "T0"]}

    with caplog.at_level(logging.WARNING, logger="taskcoord.models"):
        state = ProjectState.from_documents(tracker, new_agents())

    assert state.tasks["T1"].dependencies == ["T0"]
    assert "T1 lists itself as a dependency" in caplog.text
    assert tracker["tasks"]["T1"]["dependencies"] == ["T1", "T0"]
