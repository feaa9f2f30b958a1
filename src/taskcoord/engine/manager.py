"""Task Manager - task/agent CRUD, assignment and lifecycle operations.

Every mutating operation validates first, mutates the in-memory
ProjectState, recomputes progress and workloads, then saves the whole
snapshot when autosave is on.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from taskcoord.config import Settings, load_settings
from taskcoord.engine import eligibility, lifecycle, recommender, workload
from taskcoord.engine.recommender import RankedTask
from taskcoord.errors import (
    AgentNotFoundError,
    DuplicateAgentError,
    NoCurrentAgentError,
    NotAssignedError,
    PhaseIncompleteError,
    TaskNotFoundError,
)
from taskcoord.models import (
    Agent,
    AgentStatus,
    AgentType,
    Assignee,
    Notification,
    Priority,
    ProjectState,
    RiskLevel,
    Task,
    TaskStatus,
    now_iso,
)
from taskcoord.scoring import recommendation_reason, score_task
from taskcoord.storage.json_store import JsonStore, Store

log = logging.getLogger(__name__)

_TASK_ID_RE = re.compile(r"^TASK-(\d+)$")
_PHASE_NUMBER_RE = re.compile(r"(\d+)$")

_CLOSED_STATUSES = frozenset({TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value})

# Fields update_task() may change. ``id`` and timestamps are managed here.
_UPDATABLE_TASK_FIELDS = frozenset(
    {
        "title", "description", "category", "status", "priority", "risk_level", "phase",
        "assignees", "dependencies", "blocks", "recommendation_score", "subtasks",
        "files_affected", "completion_criteria", "tags", "estimated_hours",
    }
)
_UPDATABLE_AGENT_FIELDS = frozenset({"name", "type", "capabilities", "status", "role"})
_AGENT_FIELDS = frozenset(f.name for f in fields(Agent))

AgentInfo = str | dict[str, Any] | Agent | Assignee


def _phase_sort_key(phase: str) -> tuple[int, int, str]:
    match = _PHASE_NUMBER_RE.search(phase)
    return (0, int(match.group(1)), phase) if match else (1, 0, phase)


@dataclass(frozen=True)
class AgentContext:
    """Identity of the agent on whose behalf agent-scoped operations run."""

    agent_id: str | None = None

    def require(self) -> str:
        if not self.agent_id:
            raise NoCurrentAgentError()
        return self.agent_id


class TaskManager:
    """
    Coordinates tasks across human and AI agents.

    Features:
    - Dependency-aware recommendations with an audit history
    - Idempotent assignment with best-effort notifications
    - Cascading deletes for tasks and agents
    - Workload and progress recomputed after every mutation
    """

    def __init__(self, store: Store, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.state = ProjectState.from_documents(store.load_tasks(), store.load_agents())

    @classmethod
    def open(cls, data_dir: Path | None = None, settings: Settings | None = None) -> TaskManager:
        """Open (and initialise if needed) a JSON-backed manager."""
        settings = settings or load_settings()
        if data_dir is not None:
            settings = settings.with_overrides(data_dir=data_dir)
        store = JsonStore(settings.data_dir)
        if not store.exists():
            store.initialize(max_recommendations=settings.max_recommendations)
        return cls(store, settings)

    def context(self, agent_id: str | None = None) -> AgentContext:
        """Build an AgentContext, falling back to the configured agent id."""
        return AgentContext(agent_id or self.settings.agent_id)

    # ═══════════════════════════════════════════════════════════════════════
    # PERSISTENCE
    # ═══════════════════════════════════════════════════════════════════════

    def save(self) -> None:
        """Persist the current snapshot regardless of autosave."""
        tracker, agents_doc = self.state.to_documents()
        self.store.save(tracker, agents_doc)

    def reload(self) -> None:
        self.state = ProjectState.from_documents(self.store.load_tasks(), self.store.load_agents())

    def _commit(self) -> None:
        self.state.progress = workload.compute_progress(self.state.tasks)
        workload.recompute_workloads(self.state.agents, self.state.tasks)
        self.state.current_state["latest_update"] = now_iso()
        if self.settings.autosave:
            self.save()

    # ═══════════════════════════════════════════════════════════════════════
    # AGENTS
    # ═══════════════════════════════════════════════════════════════════════

    def add_agent(
        self,
        name: str,
        agent_id: str | None = None,
        type: str = AgentType.AI.value,
        capabilities: Iterable[str] | None = None,
        role: str | None = None,
        status: str = AgentStatus.ACTIVE.value,
        **extra: Any,
    ) -> Agent:
        """Register an agent. Extra keyword arguments are stored alongside it.

        Raises:
            DuplicateAgentError: ``agent_id`` is already registered.
            ValueError: an extra key collides with a managed Agent field.
        """
        reserved = set(extra) & _AGENT_FIELDS
        if reserved:
            raise ValueError(f"Cannot set agent fields: {', '.join(sorted(reserved))}")

        agent_id = agent_id or f"agent-{int(time.time() * 1000)}"
        if agent_id in self.state.agents:
            raise DuplicateAgentError(agent_id)

        agent = Agent(
            id=agent_id,
            name=name or agent_id,
            type=type,
            capabilities=list(capabilities or []),
            status=status,
            role=role,
            extra=extra,
        )
        self.state.agents[agent_id] = agent
        self._commit()
        log.info("Agent %s (%s) added", agent.name, agent.id)
        return agent

    def find_agent(self, agent_id: str) -> Agent | None:
        return self.state.agents.get(agent_id)

    def get_agent(self, agent_id: str) -> Agent:
        agent = self.state.agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def list_agents(self, type: str | None = None, status: str | None = None) -> list[Agent]:
        agents = list(self.state.agents.values())
        if type:
            agents = [a for a in agents if a.type == type]
        if status:
            agents = [a for a in agents if a.status == status]
        return agents

    def update_agent(self, agent_id: str, **updates: Any) -> Agent:
        """Update agent fields.

        Assignee snapshots already copied onto tasks are not re-synced.
        """
        agent = self.get_agent(agent_id)
        unknown = set(updates) - _UPDATABLE_AGENT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update agent fields: {', '.join(sorted(unknown))}")

        for key, value in updates.items():
            setattr(agent, key, list(value) if key == "capabilities" else value)
        agent.updated = now_iso()
        self._commit()
        log.info("Agent %s updated", agent_id)
        return agent

    def remove_agent(self, agent_id: str) -> None:
        """Remove an agent along with its task assignments and notification queue."""
        self.get_agent(agent_id)

        for task in self.state.tasks.values():
            if task.is_assigned(agent_id):
                task.remove_assignee(agent_id)
        self.state.notifications.pop(agent_id, None)
        del self.state.agents[agent_id]

        self._commit()
        log.info("Agent %s removed", agent_id)

    # ═══════════════════════════════════════════════════════════════════════
    # TASKS
    # ═══════════════════════════════════════════════════════════════════════

    def generate_task_id(self) -> str:
        """Next ``TASK-NNN`` id: one past the highest existing number."""
        highest = 0
        for task_id in self.state.tasks:
            match = _TASK_ID_RE.match(task_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"TASK-{highest + 1:03d}"

    def create_task(
        self,
        title: str,
        task_id: str | None = None,
        *,
        description: str = "",
        category: str = "general",
        status: str = TaskStatus.TODO.value,
        priority: str = Priority.MEDIUM.value,
        risk_level: str = RiskLevel.MEDIUM.value,
        phase: str | None = None,
        assignees: Iterable[AgentInfo] | None = None,
        dependencies: Iterable[str] | None = None,
        blocks: Iterable[str] | None = None,
        **extra: Any,
    ) -> Task:
        task_id = task_id or self.generate_task_id()
        if task_id in self.state.tasks:
            raise ValueError(f"Task {task_id} already exists")

        known = {k: extra.pop(k) for k in list(extra) if k in _UPDATABLE_TASK_FIELDS}
        task = Task(
            id=task_id,
            title=title,
            description=description,
            category=category,
            status=status,
            priority=priority,
            risk_level=risk_level,
            phase=phase or self.state.active_phase,
            assignees=[self.normalize_assignee(a) for a in assignees or []],
            dependencies=list(dependencies or []),
            blocks=list(blocks or []),
            extra=extra,
            **known,
        )
        self.state.tasks[task_id] = task
        self._commit()
        log.info("Task %s created: %s", task_id, title)
        return task

    def find_task(self, task_id: str) -> Task | None:
        return self.state.tasks.get(task_id)

    def get_task(self, task_id: str) -> Task:
        task = self.state.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(
        self,
        agent: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        phase: str | None = None,
    ) -> list[Task]:
        tasks = list(self.state.tasks.values())
        if agent:
            tasks = [t for t in tasks if t.is_assigned(agent)]
        if status:
            tasks = [t for t in tasks if t.status == status]
        if priority:
            tasks = [t for t in tasks if t.priority == priority]
        if phase:
            tasks = [t for t in tasks if t.phase == phase]
        return tasks

    def update_task(self, task_id: str, **updates: Any) -> Task:
        """Apply field updates to a task.

        Status changes pass through the transition check; entering
        ``completed`` stamps the completion time.

        Raises:
            TaskNotFoundError: unknown ``task_id``.
            InvalidTransitionError: strict mode rejected the status change.
            ValueError: unknown field, or the task would depend on itself.
        """
        task = self.get_task(task_id)
        unknown = set(updates) - _UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")

        new_status = updates.pop("status", None)
        if new_status is not None:
            lifecycle.check_transition(
                task_id, task.status, new_status, strict=self.settings.strict_transitions
            )
        if "dependencies" in updates and task_id in updates["dependencies"]:
            raise ValueError(f"Task {task_id} cannot depend on itself")
        if "assignees" in updates:
            updates["assignees"] = [self.normalize_assignee(a) for a in updates["assignees"]]

        for key, value in updates.items():
            setattr(task, key, value)
        if new_status is not None:
            task.set_status(new_status)
        task.touch()

        self._commit()
        log.info("Task %s updated", task_id)
        return task

    def delete_task(self, task_id: str) -> None:
        """Delete a task, removing its id from every other task's edges first."""
        self.get_task(task_id)

        for other in self.state.tasks.values():
            if other.id != task_id and other.drop_references(task_id):
                other.touch()
        del self.state.tasks[task_id]

        self._commit()
        log.info("Task %s deleted", task_id)

    def update_project(self, **info: Any) -> dict[str, Any]:
        self.state.project.update(info)
        self._commit()
        return self.state.project

    # ═══════════════════════════════════════════════════════════════════════
    # PHASES
    # ═══════════════════════════════════════════════════════════════════════

    def set_active_phase(self, phase: str) -> None:
        self.state.active_phase = phase
        self._commit()
        log.info("Active phase set to %s", phase)

    def define_phase(self, phase_id: str, **info: Any) -> dict[str, Any]:
        self.state.phases[phase_id] = {"id": phase_id, **info}
        self._commit()
        return self.state.phases[phase_id]

    def phase_order(self) -> list[str]:
        """Phase ids in project order.

        Defined phases come first, in definition order. Phases that only
        appear on tasks (or as the active phase) follow, sorted by their
        trailing number.
        """
        order = list(self.state.phases)
        undefined = {t.phase for t in self.state.tasks.values()} | {self.state.active_phase}
        order.extend(sorted(undefined - set(order), key=_phase_sort_key))
        return order

    def _tasks_in_phase(self, phase: str) -> dict[str, Task]:
        return {t.id: t for t in self.state.tasks.values() if t.phase == phase}

    def phase_progress(self) -> dict[str, dict[str, Any]]:
        """Per-phase progress counters, keyed by phase id in project order."""
        report = {}
        for phase in self.phase_order():
            progress = workload.compute_progress(self._tasks_in_phase(phase))
            info = self.state.phases.get(phase, {})
            report[phase] = {
                "name": info.get("name", phase),
                "active": phase == self.state.active_phase,
                **progress.to_dict(),
            }
        return report

    def advance_phase(self) -> str | None:
        """Move the active phase forward once every task in it is closed.

        Completed and cancelled tasks count as closed.

        Returns:
            The new active phase, or None if the finished phase was the last one.

        Raises:
            PhaseIncompleteError: the active phase still has open tasks.
        """
        current = self.state.active_phase
        open_tasks = [
            t.id for t in self._tasks_in_phase(current).values()
            if t.status not in _CLOSED_STATUSES
        ]
        if open_tasks:
            raise PhaseIncompleteError(current, open_tasks)

        now = now_iso()
        if current in self.state.phases:
            self.state.phases[current].update(status="completed", completed_date=now)

        order = self.phase_order()
        position = order.index(current)
        if position + 1 >= len(order):
            self._commit()
            log.info("Phase %s completed, no phases remain", current)
            return None

        next_phase = order[position + 1]
        self.state.active_phase = next_phase
        if next_phase in self.state.phases:
            self.state.phases[next_phase].update(status="in_progress", start_date=now)
        self._commit()
        log.info("Phase %s completed, moving to %s", current, next_phase)
        return next_phase

    # ═══════════════════════════════════════════════════════════════════════
    # ASSIGNMENT
    # ═══════════════════════════════════════════════════════════════════════

    def normalize_assignee(self, info: AgentInfo) -> Assignee:
        """Turn an id, dict, Agent or Assignee into an assignee snapshot.

        A bare id of an unregistered agent is taken to be a human.
        """
        if isinstance(info, Assignee):
            return info
        if isinstance(info, Agent):
            return info.snapshot()
        if isinstance(info, str):
            agent = self.state.agents.get(info)
            if agent is not None:
                return agent.snapshot()
            return Assignee(id=info, name=info, type=AgentType.HUMAN.value)
        return Assignee.from_dict(info)

    def assign(self, task_id: str, agent_info: AgentInfo, assigned_by: str | None = None) -> Task:
        """Assign an agent to a task. Re-assigning is a no-op."""
        task = self.get_task(task_id)
        assignee = self.normalize_assignee(agent_info)

        if not task.add_assignee(assignee):
            log.warning("Agent %s is already assigned to task %s", assignee.id, task_id)
            return task

        self._commit()
        log.info("Agent %s assigned to task %s", assignee.name, task_id)

        try:
            self.notify_assignment(task_id, assigned_by)
        except Exception:
            log.warning("Assignment notification failed for task %s", task_id, exc_info=True)
        return task

    def unassign(self, task_id: str, agent_id: str) -> Task:
        task = self.get_task(task_id)
        task.remove_assignee(agent_id)
        self._commit()
        log.info("Agent %s unassigned from task %s", agent_id, task_id)
        return task

    def transfer(
        self,
        task_id: str,
        from_agent_id: str,
        to_agent_info: AgentInfo,
        assigned_by: str | None = None,
    ) -> Task:
        self.unassign(task_id, from_agent_id)
        return self.assign(task_id, to_agent_info, assigned_by)

    # ═══════════════════════════════════════════════════════════════════════
    # NOTIFICATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def notify_assignment(self, task_id: str, assigned_by: str | None = None) -> Notification:
        """Queue an assignment notification for every current assignee."""
        task = self.get_task(task_id)
        assigner = self.state.agents.get(assigned_by) if assigned_by else None

        notification = Notification(
            type="task_assignment",
            task_id=task_id,
            task_title=task.title,
            assigned_by=assigner.name if assigner else "System",
            assigned_at=now_iso(),
            priority=task.priority,
            message=f"You have been assigned to task: {task.title}",
        )
        for assignee in task.assignees:
            self.state.notifications.setdefault(assignee.id, []).append(notification)

        if self.settings.autosave:
            self.save()
        return notification

    def notifications(self, ctx: AgentContext) -> list[Notification]:
        return list(self.state.notifications.get(ctx.require(), []))

    def clear_notifications(self, ctx: AgentContext) -> int:
        """Drain the agent's queue. Returns how many were dropped."""
        agent_id = ctx.require()
        queue = self.state.notifications.get(agent_id)
        if not queue:
            return 0
        count = len(queue)
        self.state.notifications[agent_id] = []
        if self.settings.autosave:
            self.save()
        return count

    # ═══════════════════════════════════════════════════════════════════════
    # RECOMMENDATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def eligible_tasks(self, agent_id: str) -> list[Task]:
        """Tasks the agent could take next; empty for an unknown agent."""
        return eligibility.eligible_tasks(agent_id, self.state.tasks, self.state.agents)

    def recommend(self, agent_id: str, limit: int | None = None) -> list[RankedTask]:
        """Ranked recommendations for an agent.

        Raises:
            AgentNotFoundError: unknown ``agent_id``.
        """
        ranked = recommender.recommend(
            self.state, agent_id, limit or self.settings.max_recommendations
        )
        self._commit()
        return ranked

    def explain_task(self, task_id: str) -> dict[str, Any]:
        """Score breakdown and dependency picture for any task.

        Works for tasks no agent could take right now. Nothing is written
        back: the cached ``recommendation_score`` is left alone.
        """
        task = self.get_task(task_id)
        phase = self.state.active_phase
        result = score_task(task, phase)

        def edge(other_id: str) -> dict[str, Any]:
            other = self.state.tasks.get(other_id)
            return {
                "id": other_id,
                "title": other.title if other else None,
                "status": other.status if other else None,
            }

        dependencies = []
        for dep_id in task.dependencies:
            info = edge(dep_id)
            info["met"] = info["status"] == TaskStatus.COMPLETED
            dependencies.append(info)

        return {
            "task": task.to_dict(),
            "active_phase": phase,
            "score": result.total,
            "breakdown": result.breakdown.to_dict(),
            "reason": recommendation_reason(task, phase),
            "dependencies": dependencies,
            "dependencies_met": all(d["met"] for d in dependencies),
            "blocks": [edge(block_id) for block_id in task.blocks],
        }

    # ═══════════════════════════════════════════════════════════════════════
    # AGENT-SCOPED OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def _require_assigned(self, ctx: AgentContext, task_id: str) -> Task:
        agent_id = ctx.require()
        task = self.get_task(task_id)
        if not task.is_assigned(agent_id):
            raise NotAssignedError(agent_id, task_id)
        return task

    def start_task(self, ctx: AgentContext, task_id: str) -> Task:
        self._require_assigned(ctx, task_id)
        return self.update_task(task_id, status=TaskStatus.IN_PROGRESS.value)

    def complete_task(self, ctx: AgentContext, task_id: str) -> Task:
        self._require_assigned(ctx, task_id)
        return self.update_task(task_id, status=TaskStatus.COMPLETED.value)

    def take_task(self, ctx: AgentContext, task_id: str) -> Task:
        """Self-assign the context agent to a task."""
        agent = self.get_agent(ctx.require())
        self.get_task(task_id)
        return self.assign(task_id, agent.snapshot(role="primary"), assigned_by=agent.id)

    def my_tasks(self, ctx: AgentContext, status: str | None = None) -> list[Task]:
        return self.list_tasks(agent=ctx.require(), status=status)

    def my_active_tasks(self, ctx: AgentContext) -> list[Task]:
        return self.my_tasks(ctx, status=TaskStatus.IN_PROGRESS.value)

    def my_todo_tasks(self, ctx: AgentContext) -> list[Task]:
        return self.my_tasks(ctx, status=TaskStatus.TODO.value)

    def my_recommendations(self, ctx: AgentContext, limit: int | None = None) -> list[RankedTask]:
        return self.recommend(ctx.require(), limit)

    def my_workload(self, ctx: AgentContext) -> dict[str, Any]:
        return self.agent_workload(ctx.require())

    def check_in(self, ctx: AgentContext) -> dict[str, Any]:
        agent = self.get_agent(ctx.require())
        active = self.my_active_tasks(ctx)
        todo = self.my_todo_tasks(ctx)
        recommendations = self.my_recommendations(ctx, limit=3)
        return {
            "agent": agent.to_dict(),
            "status": {
                "active_tasks": len(active),
                "todo_tasks": len(todo),
                "pending_recommendations": len(recommendations),
            },
            "active_tasks": [t.to_dict() for t in active],
            "todo_tasks": [t.to_dict() for t in todo],
            "recommendations": [r.to_dict() for r in recommendations],
        }

    # ═══════════════════════════════════════════════════════════════════════
    # REPORTING
    # ═══════════════════════════════════════════════════════════════════════

    def project_status(self) -> dict[str, Any]:
        agents = list(self.state.agents.values())
        tasks = list(self.state.tasks.values())

        def count_status(status: str) -> int:
            return sum(1 for t in tasks if t.status == status)

        return {
            "project": dict(self.state.project),
            "active_phase": self.state.active_phase,
            "progress": self.state.progress.to_dict(),
            "phases": self.phase_progress(),
            "agents": {
                "total": len(agents),
                "active": sum(1 for a in agents if a.status == AgentStatus.ACTIVE),
                "by_type": {
                    t.value: sum(1 for a in agents if a.type == t) for t in AgentType
                },
            },
            "tasks": {
                "total": len(tasks),
                "by_status": {s.value: count_status(s) for s in TaskStatus},
                "by_priority": {
                    p.value: sum(1 for t in tasks if t.priority == p) for p in Priority
                },
            },
        }

    def agent_workload(self, agent_id: str) -> dict[str, Any]:
        agent = self.get_agent(agent_id)
        tasks = self.list_tasks(agent=agent_id)
        return {
            "agent": agent.to_dict(),
            "workload": agent.workload.to_dict(),
            "tasks": {
                "active": [t.to_dict() for t in tasks if t.status in workload.ACTIVE_STATUSES],
                "completed": [t.to_dict() for t in tasks if t.status == TaskStatus.COMPLETED],
                "blocked": [t.to_dict() for t in tasks if t.status == TaskStatus.BLOCKED],
            },
        }

    def export_project(self) -> dict[str, Any]:
        tracker, agents_doc = self.state.to_documents()
        return {
            "project": tracker["project"],
            "agents": agents_doc,
            "tasks": tracker["tasks"],
            "progress": tracker["progress"],
            "exported": now_iso(),
        }
