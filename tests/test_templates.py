"""Tests for project templates."""

from __future__ import annotations

import pytest

from taskcoord.engine.manager import TaskManager
from taskcoord.config import Settings
from taskcoord.storage.json_store import MemoryStore
from taskcoord.templates import TEMPLATES, create_from_template, list_templates


@pytest.fixture
def manager() -> TaskManager:
    return TaskManager(MemoryStore(), Settings())


def test_list_templates() -> None:
    ids = [t["id"] for t in list_templates()]
    assert ids == ["web-app", "api"]


def test_web_app_template(manager: TaskManager) -> None:
    result = create_from_template(manager, "web-app", name="Shop")

    assert manager.state.project["name"] == "Shop"
    assert len(manager.state.agents) == 4
    assert len(manager.state.tasks) == len(TEMPLATES["web-app"].tasks)
    assert set(manager.state.phases) == {f"phase-{i}" for i in range(1, 6)}
    assert result.to_dict()["tasks"] == 9


def test_template_edges_are_consistent(manager: TaskManager) -> None:
    result = create_from_template(manager, "web-app")
    ids = result.task_ids

    e2e = manager.get_task(ids["e2e"])
    assert e2e.dependencies == [ids["ui"], ids["auth"]]
    for upstream in (ids["ui"], ids["auth"]):
        assert ids["e2e"] in manager.get_task(upstream).blocks

    for task in manager.state.tasks.values():
        for dep in task.dependencies:
            assert task.id in manager.get_task(dep).blocks


def test_dependencies_gate_template_tasks(manager: TaskManager) -> None:
    result = create_from_template(manager, "api")
    ids = result.task_ids
    assert [t.id for t in manager.eligible_tasks("qa-engineer")] == [ids["design"]]

    manager.update_task(ids["design"], status="completed")
    assert [t.id for t in manager.eligible_tasks("qa-engineer")] == [ids["foundation"]]
    assert [t.id for t in manager.eligible_tasks("tech-architect")] == [ids["foundation"]]


def test_large_team_adds_agents(manager: TaskManager) -> None:
    result = create_from_template(manager, "web-app", large_team=True)
    assert len(result.agents_added) == 6
    assert manager.find_agent("devops-engineer") is not None


def test_existing_agents_are_kept(manager: TaskManager) -> None:
    manager.add_agent("Our Lead", agent_id="tech-lead", type="human")
    result = create_from_template(manager, "web-app")
    assert "tech-lead" not in result.agents_added
    assert manager.get_agent("tech-lead").name == "Our Lead"


def test_assignees_are_snapshots(manager: TaskManager) -> None:
    result = create_from_template(manager, "web-app")
    init = manager.get_task(result.task_ids["init"])
    assert [a.id for a in init.assignees] == ["backend-dev"]
    assert init.assignees[0].type == "ai"


def test_unknown_template(manager: TaskManager) -> None:
    with pytest.raises(ValueError):
        create_from_template(manager, "mobile")
