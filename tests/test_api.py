"""Tests for the FastAPI server."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from taskcoord.api.server import app, get_manager
from taskcoord.config import Settings
from taskcoord.engine.manager import TaskManager
from taskcoord.storage.json_store import MemoryStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def manager() -> TaskManager:
    manager = TaskManager(MemoryStore(), Settings())
    manager.add_agent("Coder", agent_id="coder", type="ai", capabilities=["coding"])
    return manager


@pytest.fixture
async def client(manager: TaskManager) -> AsyncIterator[AsyncClient]:
    app.dependency_overrides[get_manager] = lambda: manager
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert "uptime_seconds" in data


@pytest.mark.anyio
async def test_create_and_get_task(client: AsyncClient) -> None:
    response = await client.post(
        "/api/tasks", json={"title": "Build API", "category": "coding", "priority": "high"}
    )
    assert response.status_code == 201
    task = response.json()
    assert task["id"] == "TASK-001"
    assert task["status"] == "todo"

    fetched = await client.get("/api/tasks/TASK-001")
    assert fetched.json()["title"] == "Build API"


@pytest.mark.anyio
async def test_create_task_requires_title(client: AsyncClient) -> None:
    response = await client.post("/api/tasks", json={"priority": "high"})
    assert response.status_code == 422
    assert "title" in response.json()["error"]


@pytest.mark.anyio
async def test_missing_task_is_404(client: AsyncClient) -> None:
    response = await client.get("/api/tasks/TASK-404")
    assert response.status_code == 404
    assert response.json() == {"error": "Task TASK-404 not found"}


@pytest.mark.anyio
async def test_recommendations(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "T1", "category": "coding", "priority": "high"})
    response = await client.get("/api/agents/coder/recommendations")
    assert response.status_code == 200
    recs = response.json()["recommendations"]
    assert [r["id"] for r in recs] == ["TASK-001"]
    assert recs[0]["recommendation_score"] == 23
    assert recs[0]["score_breakdown"] == {"priority": 7, "dependency": 1, "risk": 5, "phase": 10}


@pytest.mark.anyio
async def test_recommendations_unknown_agent(client: AsyncClient) -> None:
    response = await client.get("/api/agents/ghost/recommendations")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_duplicate_agent_conflict(client: AsyncClient) -> None:
    response = await client.post("/api/agents", json={"name": "Coder", "id": "coder"})
    assert response.status_code == 409


@pytest.mark.anyio
async def test_agent_workflow(client: AsyncClient, manager: TaskManager) -> None:
    headers = {"X-Agent-Id": "coder"}
    await client.post("/api/tasks", json={"title": "T1"})

    taken = await client.post("/api/me/tasks/TASK-001/take", headers=headers)
    assert taken.status_code == 200
    assert [a["id"] for a in taken.json()["assignees"]] == ["coder"]

    started = await client.post("/api/me/tasks/TASK-001/start", headers=headers)
    assert started.json()["status"] == "in-progress"

    done = await client.post("/api/me/tasks/TASK-001/complete", headers=headers)
    assert done.json()["status"] == "completed"
    assert manager.get_agent("coder").workload.completed_tasks == 1


@pytest.mark.anyio
async def test_start_unassigned_is_conflict(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "T1"})
    response = await client.post("/api/me/tasks/TASK-001/start", headers={"X-Agent-Id": "coder"})
    assert response.status_code == 409
    assert "not assigned" in response.json()["error"]


@pytest.mark.anyio
async def test_me_requires_agent_header(client: AsyncClient) -> None:
    response = await client.get("/api/me/tasks")
    assert response.status_code == 409
    assert "No current agent" in response.json()["error"]


@pytest.mark.anyio
async def test_assign_and_notifications(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "T1"})
    assigned = await client.post("/api/tasks/TASK-001/assign", json={"agent_id": "coder"})
    assert assigned.status_code == 200

    headers = {"X-Agent-Id": "coder"}
    notes = await client.get("/api/me/notifications", headers=headers)
    assert notes.json()["count"] == 1

    cleared = await client.delete("/api/me/notifications", headers=headers)
    assert cleared.json() == {"cleared": 1}


@pytest.mark.anyio
async def test_delete_task_cascades(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "Base"})
    await client.post("/api/tasks", json={"title": "Next", "dependencies": ["TASK-001"]})

    response = await client.delete("/api/tasks/TASK-001")
    assert response.status_code == 200
    remaining = await client.get("/api/tasks/TASK-002")
    assert remaining.json()["dependencies"] == []


@pytest.mark.anyio
async def test_status(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "T1"})
    response = await client.get("/api/status")
    assert response.status_code == 200
    data = response.json()
    assert data["tasks"]["total"] == 1
    assert data["agents"]["by_type"]["ai"] == 1


@pytest.mark.anyio
async def test_concurrent_requests_keep_ids_unique(client: AsyncClient, manager: TaskManager) -> None:
    creates = [client.post("/api/tasks", json={"title": f"T{i}"}) for i in range(25)]
    reads = [client.get("/api/agents/coder/recommendations") for _ in range(25)]

    responses = await asyncio.gather(*creates, *reads)

    assert [r.status_code for r in responses[:25]] == [201] * 25
    assert [r.status_code for r in responses[25:]] == [200] * 25
    ids = [r.json()["id"] for r in responses[:25]]
    assert len(set(ids)) == 25
    assert len(manager.state.tasks) == 25


@pytest.mark.anyio
async def test_add_agent_status(client: AsyncClient) -> None:
    response = await client.post(
        "/api/agents", json={"name": "Sleeper", "id": "sleeper", "status": "inactive"}
    )
    assert response.status_code == 201
    assert response.json()["status"] == "inactive"

    rejected = await client.post(
        "/api/agents", json={"name": "Bot", "id": "bot", "workload": {"active_tasks": 3}}
    )
    assert rejected.status_code == 422


@pytest.mark.anyio
async def test_explain_task(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "Schema"})
    await client.post(
        "/api/tasks", json={"title": "Endpoints", "priority": "high", "dependencies": ["TASK-001"]}
    )
    response = await client.get("/api/tasks/TASK-002/explain")
    assert response.status_code == 200
    report = response.json()
    assert report["score"] == 23
    assert report["dependencies_met"] is False
    assert report["dependencies"][0]["id"] == "TASK-001"

    missing = await client.get("/api/tasks/TASK-404/explain")
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_advance_phase(client: AsyncClient) -> None:
    await client.post("/api/tasks", json={"title": "Setup"})
    await client.post("/api/tasks", json={"title": "Build", "phase": "phase-2"})

    blocked = await client.post("/api/phases/advance")
    assert blocked.status_code == 409

    await client.patch("/api/tasks/TASK-001", json={"status": "completed"})
    moved = await client.post("/api/phases/advance")
    assert moved.status_code == 200
    assert moved.json() == {
        "previous_phase": "phase-1",
        "active_phase": "phase-2",
        "finished": False,
    }

    phases = (await client.get("/api/phases")).json()
    assert phases["active_phase"] == "phase-2"
    assert phases["phases"]["phase-1"]["completion_percentage"] == 100


@pytest.mark.anyio
async def test_set_active_phase(client: AsyncClient) -> None:
    response = await client.post("/api/phases/active", json={"phase": "phase-3"})
    assert response.status_code == 200
    assert (await client.get("/api/status")).json()["active_phase"] == "phase-3"

    missing = await client.post("/api/phases/active", json={})
    assert missing.status_code == 422
