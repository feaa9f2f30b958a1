"""Task coordination engine."""

from taskcoord.engine.eligibility import (
    capability_match,
    dependencies_met,
    eligible_tasks,
    required_capabilities,
)
from taskcoord.engine.lifecycle import TRANSITIONS, can_transition, check_transition
from taskcoord.engine.manager import AgentContext, TaskManager
from taskcoord.engine.recommender import HISTORY_LIMIT, RankedTask, recommend
from taskcoord.engine.workload import compute_progress, recompute_workloads

__all__ = [
    "AgentContext",
    "HISTORY_LIMIT",
    "RankedTask",
    "TRANSITIONS",
    "TaskManager",
    "can_transition",
    "capability_match",
    "check_transition",
    "compute_progress",
    "dependencies_met",
    "eligible_tasks",
    "recommend",
    "recompute_workloads",
    "required_capabilities",
]
