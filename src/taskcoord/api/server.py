"""FastAPI server exposing task coordination operations as JSON endpoints.

Handlers are coroutines that never await while touching the manager, so
each operation runs to completion on the event loop before the next starts.
"""

from __future__ import annotations

import time
from typing import Annotated, Any

import click
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from taskcoord import __version__
from taskcoord.engine.manager import AgentContext, TaskManager
from taskcoord.errors import NotFoundError, PreconditionError, TaskCoordError

app = FastAPI(
    title="Task Coordinator API",
    version=__version__,
    description="Task recommendations and assignment for human and AI agents",
)

_start_time = time.monotonic()
_manager: TaskManager | None = None


async def get_manager() -> TaskManager:
    global _manager
    if _manager is None:
        _manager = TaskManager.open()
    return _manager


async def agent_context(
    x_agent_id: Annotated[str | None, Header()] = None,
    manager: TaskManager = Depends(get_manager),
) -> AgentContext:
    return manager.context(x_agent_id)


Manager = Annotated[TaskManager, Depends(get_manager)]
Context = Annotated[AgentContext, Depends(agent_context)]


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(PreconditionError)
async def _precondition(request: Request, exc: PreconditionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(TaskCoordError)
async def _coord_error(request: Request, exc: TaskCoordError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(ValueError)
async def _bad_value(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.get("/api/health")
async def health() -> dict[str, Any]:
    """Health check."""
    uptime = time.monotonic() - _start_time
    return {"status": "ok", "version": __version__, "uptime_seconds": round(uptime, 1)}


@app.get("/api/status")
async def project_status(manager: Manager) -> dict[str, Any]:
    return manager.project_status()


@app.get("/api/export")
async def export_project(manager: Manager) -> dict[str, Any]:
    return manager.export_project()


@app.get("/api/phases")
async def phases(manager: Manager) -> dict[str, Any]:
    return {"active_phase": manager.state.active_phase, "phases": manager.phase_progress()}


@app.post("/api/phases/active")
async def set_active_phase(request: dict[str, Any], manager: Manager) -> dict[str, Any]:
    phase = request.get("phase")
    if not phase:
        raise ValueError("phase is required")
    manager.set_active_phase(phase)
    return {"active_phase": phase}


@app.post("/api/phases/advance")
async def advance_phase(manager: Manager) -> dict[str, Any]:
    """Advance once the active phase has no open tasks. 409 otherwise."""
    previous = manager.state.active_phase
    new_phase = manager.advance_phase()
    return {"previous_phase": previous, "active_phase": manager.state.active_phase,
            "finished": new_phase is None}



# ═══════════════════════════════════════════════════════════════════════════
# TASKS
# ═══════════════════════════════════════════════════════════════════════════


@app.get("/api/tasks")
async def list_tasks(
    manager: Manager,
    agent: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    phase: str | None = None,
) -> dict[str, Any]:
    tasks = manager.list_tasks(agent=agent, status=status, priority=priority, phase=phase)
    return {"tasks": [t.to_dict() for t in tasks], "count": len(tasks)}


@app.post("/api/tasks", status_code=201)
async def create_task(request: dict[str, Any], manager: Manager) -> dict[str, Any]:
    """Create a task. ``title`` is required; other fields are optional."""
    data = dict(request)
    title = data.pop("title", "")
    if not title:
        raise ValueError("title is required")
    task_id = data.pop("id", None)
    return manager.create_task(title, task_id, **data).to_dict()


@app.get("/api/tasks/{task_id}")
async def get_task(task_id: str, manager: Manager) -> dict[str, Any]:
    return manager.get_task(task_id).to_dict()


@app.get("/api/tasks/{task_id}/explain")
async def explain_task(task_id: str, manager: Manager) -> dict[str, Any]:
    return manager.explain_task(task_id)


@app.patch("/api/tasks/{task_id}")
async def update_task(task_id: str, request: dict[str, Any], manager: Manager) -> dict[str, Any]:
    return manager.update_task(task_id, **request).to_dict()


@app.delete("/api/tasks/{task_id}")
async def delete_task(task_id: str, manager: Manager) -> dict[str, Any]:
    manager.delete_task(task_id)
    return {"deleted": task_id}


@app.post("/api/tasks/{task_id}/assign")
async def assign(
    task_id: str, request: dict[str, Any], manager: Manager, ctx: Context
) -> dict[str, Any]:
    """Assign ``agent_id`` (or an ``agent`` snapshot dict) to a task."""
    info = request.get("agent") or request.get("agent_id")
    if not info:
        raise ValueError("agent_id is required")
    return manager.assign(task_id, info, assigned_by=ctx.agent_id).to_dict()


@app.post("/api/tasks/{task_id}/unassign")
async def unassign(task_id: str, request: dict[str, Any], manager: Manager) -> dict[str, Any]:
    agent_id = request.get("agent_id")
    if not agent_id:
        raise ValueError("agent_id is required")
    return manager.unassign(task_id, agent_id).to_dict()


@app.post("/api/tasks/{task_id}/transfer")
async def transfer(
    task_id: str, request: dict[str, Any], manager: Manager, ctx: Context
) -> dict[str, Any]:
    from_agent = request.get("from_agent_id")
    to_agent = request.get("to_agent_id")
    if not from_agent or not to_agent:
        raise ValueError("from_agent_id and to_agent_id are required")
    return manager.transfer(task_id, from_agent, to_agent, assigned_by=ctx.agent_id).to_dict()


# ═══════════════════════════════════════════════════════════════════════════
# AGENTS
# ═══════════════════════════════════════════════════════════════════════════


@app.get("/api/agents")
async def list_agents(
    manager: Manager, type: str | None = None, status: str | None = None
) -> dict[str, Any]:
    agents = manager.list_agents(type=type, status=status)
    return {"agents": [a.to_dict() for a in agents], "count": len(agents)}


@app.post("/api/agents", status_code=201)
async def add_agent(request: dict[str, Any], manager: Manager) -> dict[str, Any]:
    data = dict(request)
    name = data.pop("name", "")
    if not name:
        raise ValueError("name is required")
    agent_id = data.pop("id", None)
    return manager.add_agent(name, agent_id=agent_id, **data).to_dict()


@app.get("/api/agents/{agent_id}")
async def get_agent(agent_id: str, manager: Manager) -> dict[str, Any]:
    return manager.get_agent(agent_id).to_dict()


@app.patch("/api/agents/{agent_id}")
async def update_agent(agent_id: str, request: dict[str, Any], manager: Manager) -> dict[str, Any]:
    return manager.update_agent(agent_id, **request).to_dict()


@app.delete("/api/agents/{agent_id}")
async def remove_agent(agent_id: str, manager: Manager) -> dict[str, Any]:
    manager.remove_agent(agent_id)
    return {"removed": agent_id}


@app.get("/api/agents/{agent_id}/recommendations")
async def recommendations(agent_id: str, manager: Manager, limit: int | None = None) -> dict[str, Any]:
    ranked = manager.recommend(agent_id, limit)
    return {"agent_id": agent_id, "recommendations": [r.to_dict() for r in ranked]}


@app.get("/api/agents/{agent_id}/workload")
async def agent_workload(agent_id: str, manager: Manager) -> dict[str, Any]:
    return manager.agent_workload(agent_id)


# ═══════════════════════════════════════════════════════════════════════════
# CURRENT AGENT (X-Agent-Id header)
# ═══════════════════════════════════════════════════════════════════════════


@app.get("/api/me/tasks")
async def my_tasks(manager: Manager, ctx: Context, status: str | None = None) -> dict[str, Any]:
    tasks = manager.my_tasks(ctx, status=status)
    return {"tasks": [t.to_dict() for t in tasks], "count": len(tasks)}


@app.get("/api/me/recommendations")
async def my_recommendations(manager: Manager, ctx: Context, limit: int | None = None) -> dict[str, Any]:
    ranked = manager.my_recommendations(ctx, limit)
    return {"agent_id": ctx.agent_id, "recommendations": [r.to_dict() for r in ranked]}


@app.get("/api/me/workload")
async def my_workload(manager: Manager, ctx: Context) -> dict[str, Any]:
    return manager.my_workload(ctx)


@app.post("/api/me/check-in")
async def check_in(manager: Manager, ctx: Context) -> dict[str, Any]:
    return manager.check_in(ctx)


@app.post("/api/me/tasks/{task_id}/start")
async def start_task(task_id: str, manager: Manager, ctx: Context) -> dict[str, Any]:
    return manager.start_task(ctx, task_id).to_dict()


@app.post("/api/me/tasks/{task_id}/complete")
async def complete_task(task_id: str, manager: Manager, ctx: Context) -> dict[str, Any]:
    return manager.complete_task(ctx, task_id).to_dict()


@app.post("/api/me/tasks/{task_id}/take")
async def take_task(task_id: str, manager: Manager, ctx: Context) -> dict[str, Any]:
    return manager.take_task(ctx, task_id).to_dict()


@app.get("/api/me/notifications")
async def notifications(manager: Manager, ctx: Context) -> dict[str, Any]:
    queue = manager.notifications(ctx)
    return {"notifications": [n.to_dict() for n in queue], "count": len(queue)}


@app.delete("/api/me/notifications")
async def clear_notifications(manager: Manager, ctx: Context) -> dict[str, Any]:
    return {"cleared": manager.clear_notifications(ctx)}


@click.command()
@click.option("--port", default=3848, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
def main(port: int, host: str) -> None:
    """Start the Task Coordinator API server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)
