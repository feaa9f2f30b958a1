"""Error taxonomy for task coordination operations."""

from __future__ import annotations


class TaskCoordError(Exception):
    """Base class for all coordination errors."""


class NotFoundError(TaskCoordError):
    """An operation addressed a task or agent id that does not exist."""

    kind = "Entity"

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.kind} {entity_id} not found")


class TaskNotFoundError(NotFoundError):
    kind = "Task"


class AgentNotFoundError(NotFoundError):
    kind = "Agent"


class PreconditionError(TaskCoordError):
    """A check failed before any state was touched."""


class NoCurrentAgentError(PreconditionError):
    def __init__(self) -> None:
        super().__init__(
            "No current agent set. Set TASK_MANAGER_AGENT_ID or pass --agent."
        )


class NotAssignedError(PreconditionError):
    def __init__(self, agent_id: str, task_id: str) -> None:
        self.agent_id = agent_id
        self.task_id = task_id
        super().__init__(f"Agent {agent_id} is not assigned to task {task_id}")


class InvalidTransitionError(PreconditionError):
    def __init__(self, task_id: str, old: str, new: str) -> None:
        self.task_id = task_id
        self.old = old
        self.new = new
        super().__init__(f"Task {task_id}: illegal status transition {old} -> {new}")


class DuplicateAgentError(PreconditionError):
    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id} already exists")


class PhaseIncompleteError(PreconditionError):
    def __init__(self, phase: str, open_tasks: list[str]) -> None:
        self.phase = phase
        self.open_tasks = open_tasks
        super().__init__(
            f"Phase {phase} still has {len(open_tasks)} open task(s): {', '.join(open_tasks)}"
        )


class StoreError(TaskCoordError):
    """Reading or writing a persisted document failed."""
