"""Entity model: tasks, agents and the project aggregate that holds them."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import StrEnum
from typing import Any, Final

log = logging.getLogger(__name__)

ALGORITHM_VERSION: Final[str] = "2.0.0"
DEFAULT_PHASE: Final[str] = "phase-1"


class TaskStatus(StrEnum):
    """Known task states. Stored statuses are plain strings and may fall outside this set."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AgentType(StrEnum):
    AI = "ai"
    HUMAN = "human"


class AgentStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def now_iso() -> str:
    return datetime.now().isoformat()


def _split_known(cls: type, data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Partition a stored dict into dataclass fields and unknown keys."""
    names = {f.name for f in fields(cls)} - {"extra"}
    known = {k: v for k, v in data.items() if k in names}
    extra = {k: v for k, v in data.items() if k not in names}
    return known, extra


@dataclass
class Assignee:
    """Snapshot of an agent taken when it was assigned to a task.

    Not kept in sync with the Agent record: renaming an agent leaves
    existing snapshots untouched.
    """

    id: str
    name: str
    type: str = AgentType.HUMAN.value
    role: str = "primary"
    assigned_date: str = field(default_factory=now_iso)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Assignee:
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            type=data.get("type") or AgentType.HUMAN.value,
            role=data.get("role") or "primary",
            assigned_date=data.get("assigned_date") or now_iso(),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Task:
    """A unit of work tracked by the coordinator."""

    id: str
    title: str
    description: str = ""
    category: str = "general"
    status: str = TaskStatus.TODO.value
    priority: str = Priority.MEDIUM.value
    risk_level: str = RiskLevel.MEDIUM.value
    phase: str = DEFAULT_PHASE
    assignees: list[Assignee] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)  # advisory inverse edge, maintained by hand
    recommendation_score: int = 0
    completed: str | None = None
    created: str = field(default_factory=now_iso)
    updated: str = field(default_factory=now_iso)
    subtasks: list[Any] = field(default_factory=list)
    files_affected: list[str] = field(default_factory=list)
    completion_criteria: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    estimated_hours: float = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.id in self.dependencies:
            raise ValueError(f"Task {self.id} cannot depend on itself")

    def is_assigned(self, agent_id: str) -> bool:
        return any(a.id == agent_id for a in self.assignees)

    def add_assignee(self, assignee: Assignee) -> bool:
        """Append an assignee. Returns False if that agent was already present."""
        if self.is_assigned(assignee.id):
            return False
        self.assignees.append(assignee)
        self.touch()
        return True

    def remove_assignee(self, agent_id: str) -> bool:
        """Drop an assignee. Returns True if one was removed."""
        before = len(self.assignees)
        self.assignees = [a for a in self.assignees if a.id != agent_id]
        self.touch()
        return len(self.assignees) != before

    def set_status(self, status: str) -> None:
        """Change status; entering ``completed`` stamps the completion time."""
        previous = self.status
        self.status = status
        if status != previous and status == TaskStatus.COMPLETED:
            self.completed = now_iso()
        self.touch()

    def drop_references(self, task_id: str) -> bool:
        """Remove ``task_id`` from dependencies and blocks."""
        deps = [d for d in self.dependencies if d != task_id]
        blocks = [b for b in self.blocks if b != task_id]
        changed = len(deps) != len(self.dependencies) or len(blocks) != len(self.blocks)
        self.dependencies = deps
        self.blocks = blocks
        return changed

    def touch(self) -> None:
        self.updated = now_iso()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        known, extra = _split_known(cls, data)
        known["assignees"] = [Assignee.from_dict(a) for a in known.get("assignees") or []]
        for key in ("dependencies", "blocks", "subtasks", "files_affected",
                    "completion_criteria", "tags"):
            known[key] = list(known.get(key) or [])
        known["recommendation_score"] = known.get("recommendation_score") or 0
        known["title"] = known.get("title") or ""
        return cls(**known, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extra"}
        data["assignees"] = [a.to_dict() for a in self.assignees]
        data["dependencies"] = list(self.dependencies)
        data["blocks"] = list(self.blocks)
        return {**self.extra, **data}


@dataclass
class Workload:
    """Derived counters. Rebuilt from the task collection after every mutation."""

    active_tasks: int = 0
    completed_tasks: int = 0
    total_score: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class Agent:
    """A human or AI participant."""

    id: str
    name: str
    type: str = AgentType.AI.value
    capabilities: list[str] = field(default_factory=list)
    status: str = AgentStatus.ACTIVE.value
    role: str | None = None
    workload: Workload = field(default_factory=Workload)
    created: str = field(default_factory=now_iso)
    updated: str = field(default_factory=now_iso)
    extra: dict[str, Any] = field(default_factory=dict)

    def snapshot(self, role: str = "primary") -> Assignee:
        return Assignee(id=self.id, name=self.name, type=self.type, role=role)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Agent:
        known, extra = _split_known(cls, data)
        workload = known.get("workload") or {}
        known["workload"] = Workload(
            active_tasks=workload.get("active_tasks", 0),
            completed_tasks=workload.get("completed_tasks", 0),
            total_score=workload.get("total_score", 0),
        )
        known["capabilities"] = list(known.get("capabilities") or [])
        known["name"] = known.get("name") or known["id"]
        return cls(**known, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extra"}
        data["workload"] = self.workload.to_dict()
        data["capabilities"] = list(self.capabilities)
        return {**self.extra, **data}


@dataclass
class Notification:
    type: str
    task_id: str
    task_title: str
    assigned_by: str
    assigned_at: str
    priority: str
    message: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Notification:
        known, _ = _split_known(cls, data)
        return cls(**known)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HistoryRecommendation:
    task_id: str
    score: int
    selected: bool = False


@dataclass
class RecommendationHistoryEntry:
    """One recommendation run, kept for auditing."""

    agent_id: str
    date: str
    algorithm_version: str
    recommendations: list[HistoryRecommendation]
    rationale: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecommendationHistoryEntry:
        return cls(
            agent_id=data["agent_id"],
            date=data["date"],
            algorithm_version=data.get("algorithm_version", ALGORITHM_VERSION),
            recommendations=[
                HistoryRecommendation(
                    task_id=r["task_id"], score=r.get("score", 0), selected=r.get("selected", False)
                )
                for r in data.get("recommendations", [])
            ],
            rationale=data.get("rationale", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Progress:
    total_tasks: int = 0
    completed: int = 0
    in_progress: int = 0
    todo: int = 0
    completion_percentage: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _load_task(task_id: str, data: dict[str, Any]) -> Task:
    """Build a stored task, dropping a self-dependency instead of failing the load."""
    dependencies = data.get("dependencies") or []
    if task_id in dependencies:
        log.warning("Task %s lists itself as a dependency; dropping that edge", task_id)
        data = {**data, "dependencies": [d for d in dependencies if d != task_id]}
    return Task.from_dict({**data, "id": task_id})


@dataclass
class ProjectState:
    """In-memory aggregate of the task tracker and agent registry documents."""

    project: dict[str, Any]
    active_phase: str = DEFAULT_PHASE
    tasks: dict[str, Task] = field(default_factory=dict)
    agents: dict[str, Agent] = field(default_factory=dict)
    progress: Progress = field(default_factory=Progress)
    phases: dict[str, Any] = field(default_factory=dict)
    recommendation_history: list[RecommendationHistoryEntry] = field(default_factory=list)
    notifications: dict[str, list[Notification]] = field(default_factory=dict)
    current_state: dict[str, Any] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)
    agent_types: dict[str, Any] = field(default_factory=dict)
    tracker_extra: dict[str, Any] = field(default_factory=dict)
    agents_extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_documents(cls, tracker: dict[str, Any], agents_doc: dict[str, Any]) -> ProjectState:
        tracker = dict(tracker)
        agents_doc = dict(agents_doc)
        current_state = dict(tracker.pop("current_state", None) or {})
        progress = tracker.pop("progress", None) or {}
        state = cls(
            project=dict(tracker.pop("project", None) or {}),
            active_phase=current_state.pop("active_phase", None) or DEFAULT_PHASE,
            tasks={
                task_id: _load_task(task_id, data)
                for task_id, data in (tracker.pop("tasks", None) or {}).items()
            },
            agents={
                agent_id: Agent.from_dict({"id": agent_id, **data})
                for agent_id, data in (agents_doc.pop("registry", None) or {}).items()
            },
            progress=Progress(**{k: progress.get(k, 0) for k in Progress().to_dict()}),
            phases=dict(tracker.pop("phases", None) or {}),
            recommendation_history=[
                RecommendationHistoryEntry.from_dict(e)
                for e in tracker.pop("recommendation_history", None) or []
            ],
            notifications={
                agent_id: [Notification.from_dict(n) for n in queue]
                for agent_id, queue in (tracker.pop("notifications", None) or {}).items()
            },
            current_state=current_state,
            metrics=dict(tracker.pop("metrics", None) or {}),
            agent_types=dict(agents_doc.pop("types", None) or {}),
        )
        tracker.pop("agents", None)
        state.tracker_extra = tracker
        state.agents_extra = agents_doc
        return state

    def to_documents(self) -> tuple[dict[str, Any], dict[str, Any]]:
        """Render back to (tracker, agents) JSON-ready documents."""
        tracker = {
            **self.tracker_extra,
            "project": dict(self.project),
            "progress": self.progress.to_dict(),
            "current_state": {**self.current_state, "active_phase": self.active_phase},
            "phases": self.phases,
            "tasks": {task_id: task.to_dict() for task_id, task in self.tasks.items()},
            "recommendation_history": [e.to_dict() for e in self.recommendation_history],
            "notifications": {
                agent_id: [n.to_dict() for n in queue]
                for agent_id, queue in self.notifications.items()
            },
            "metrics": self.metrics,
        }
        agents_doc = {
            **self.agents_extra,
            "registry": {agent_id: agent.to_dict() for agent_id, agent in self.agents.items()},
            "types": self.agent_types,
        }
        return tracker, agents_doc
