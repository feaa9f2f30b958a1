"""Eligibility filter - which tasks an agent could legally take next."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from taskcoord.models import Agent, AgentType, Task, TaskStatus

OFFERABLE_STATUSES: Final[frozenset[str]] = frozenset(
    {TaskStatus.TODO.value, TaskStatus.BLOCKED.value}
)

# Task category -> capabilities that qualify an AI agent for it.
CATEGORY_CAPABILITIES: Final[dict[str, frozenset[str]]] = {
    "coding": frozenset({"coding"}),
    "feature": frozenset({"coding"}),
    "testing": frozenset({"testing"}),
    "documentation": frozenset({"documentation"}),
    "analysis": frozenset({"analysis"}),
}


def required_capabilities(task: Task) -> frozenset[str]:
    """Capabilities required by a task's category (empty if unmapped)."""
    return CATEGORY_CAPABILITIES.get(task.category, frozenset())


def dependencies_met(task: Task, tasks: Mapping[str, Task]) -> bool:
    """True if every dependency resolves to a completed task.

    Unknown ids count as unmet, and so does ``cancelled``.
    """
    for dep_id in task.dependencies:
        dep = tasks.get(dep_id)
        if dep is None or dep.status != TaskStatus.COMPLETED:
            return False
    return True


def capability_match(agent: Agent, task: Task) -> bool:
    """Capability gate. Only AI agents that declare capabilities are gated."""
    if agent.type != AgentType.AI or not agent.capabilities:
        return True
    required = required_capabilities(task)
    if not required:
        return True
    return not required.isdisjoint(agent.capabilities)


def is_eligible(agent: Agent, task: Task, tasks: Mapping[str, Task]) -> bool:
    if task.status not in OFFERABLE_STATUSES:
        return False
    if task.is_assigned(agent.id):
        return False
    if not dependencies_met(task, tasks):
        return False
    return capability_match(agent, task)


def eligible_tasks(
    agent_id: str,
    tasks: Mapping[str, Task],
    agents: Mapping[str, Agent],
) -> list[Task]:
    """Tasks ``agent_id`` could take next, in collection order.

    An unknown agent yields an empty list rather than an error.
    """
    agent = agents.get(agent_id)
    if agent is None:
        return []
    return [task for task in tasks.values() if is_eligible(agent, task, tasks)]
