"""Recommendation engine - eligibility, scoring, truncation and audit history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final

from taskcoord.engine.eligibility import eligible_tasks
from taskcoord.errors import AgentNotFoundError
from taskcoord.models import (
    ALGORITHM_VERSION,
    HistoryRecommendation,
    ProjectState,
    RecommendationHistoryEntry,
    Task,
    now_iso,
)
from taskcoord.scoring.task_scorer import ScoreBreakdown, rank, recommendation_reason

log = logging.getLogger(__name__)

HISTORY_LIMIT: Final[int] = 50


@dataclass
class RankedTask:
    """A recommended task with its score and explanation."""

    task: Task
    score: int
    breakdown: ScoreBreakdown
    reason: str

    def to_dict(self) -> dict[str, Any]:
        data = self.task.to_dict()
        data["recommendation_score"] = self.score
        data["score_breakdown"] = self.breakdown.to_dict()
        data["recommendation_reason"] = self.reason
        return data


def append_history(
    state: ProjectState,
    agent_id: str,
    ranked: list[RankedTask],
    limit: int = HISTORY_LIMIT,
) -> RecommendationHistoryEntry:
    """Record a recommendation run, evicting the oldest entries past ``limit``."""
    entry = RecommendationHistoryEntry(
        agent_id=agent_id,
        date=now_iso(),
        algorithm_version=ALGORITHM_VERSION,
        recommendations=[HistoryRecommendation(task_id=r.task.id, score=r.score) for r in ranked],
        rationale=f"Generated {len(ranked)} recommendations for agent {agent_id}",
    )
    state.recommendation_history.append(entry)
    if len(state.recommendation_history) > limit:
        del state.recommendation_history[:-limit]
    return entry


def recommend(state: ProjectState, agent_id: str, limit: int) -> list[RankedTask]:
    """Top ``limit`` eligible tasks for ``agent_id``, highest score first.

    Raises:
        AgentNotFoundError: ``agent_id`` is not registered.
    """
    if agent_id not in state.agents:
        raise AgentNotFoundError(agent_id)
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    candidates = eligible_tasks(agent_id, state.tasks, state.agents)
    ranked_pairs = rank(candidates, state.active_phase)

    # Cache the latest score on every task this run considered.
    for task, task_score in ranked_pairs:
        task.recommendation_score = task_score.total

    ranked = [
        RankedTask(
            task=task,
            score=task_score.total,
            breakdown=task_score.breakdown,
            reason=recommendation_reason(task, state.active_phase),
        )
        for task, task_score in ranked_pairs[:limit]
    ]

    append_history(state, agent_id, ranked)
    state.current_state["next_recommended_tasks"] = [r.task.id for r in ranked]
    log.debug(
        "Recommended %d of %d eligible tasks for %s", len(ranked), len(candidates), agent_id
    )
    return ranked
