"""Task scoring for recommendations."""

from .task_scorer import (
    ScoreBreakdown,
    TaskScore,
    rank,
    recommendation_reason,
    score_task,
)

__all__ = [
    "score_task",
    "rank",
    "recommendation_reason",
    "ScoreBreakdown",
    "TaskScore",
]
