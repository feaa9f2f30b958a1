"""Workload aggregator and project progress counters.

Both are full recomputations over the task collection; nothing is
updated incrementally.
"""

from __future__ import annotations

from collections.abc import Mapping

from taskcoord.models import Agent, Progress, Task, TaskStatus, Workload

# Statuses whose assignees carry the task as active work. Blocked, review
# and cancelled tasks count toward no bucket.
ACTIVE_STATUSES = frozenset({TaskStatus.IN_PROGRESS.value, TaskStatus.TODO.value})


def recompute_workloads(agents: Mapping[str, Agent], tasks: Mapping[str, Task]) -> None:
    """Reset every agent's workload and rebuild it from ``tasks``.

    Assignee snapshots whose agent no longer exists are skipped.
    """
    for agent in agents.values():
        agent.workload = Workload()

    for task in tasks.values():
        for assignee in task.assignees:
            agent = agents.get(assignee.id)
            if agent is None:
                continue
            if task.status == TaskStatus.COMPLETED:
                agent.workload.completed_tasks += 1
            elif task.status in ACTIVE_STATUSES:
                agent.workload.active_tasks += 1
                agent.workload.total_score += task.recommendation_score or 0


def compute_progress(tasks: Mapping[str, Task]) -> Progress:
    total = len(tasks)
    completed = sum(1 for t in tasks.values() if t.status == TaskStatus.COMPLETED)
    in_progress = sum(1 for t in tasks.values() if t.status == TaskStatus.IN_PROGRESS)
    todo = sum(1 for t in tasks.values() if t.status == TaskStatus.TODO)
    return Progress(
        total_tasks=total,
        completed=completed,
        in_progress=in_progress,
        todo=todo,
        completion_percentage=round(completed / total * 100) if total else 0,
    )
