"""Task scorer - additive point tables for ranking recommendations.

Total = priority + dependency + risk + phase, each an integer from a
fixed table:

    priority    critical 10, high 7, medium 5, low 2
    dependency  blocking 8 (task lists anything in ``blocks``), independent 1
    risk        high 8, medium 5, low 2
    phase       active 10 (task phase == project active phase), future 3

Unknown priority or risk values contribute 0. Scoring is a pure function
of the task and the active phase.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Final

from taskcoord.models import RiskLevel, Task

# ═══════════════════════════════════════════════════════════════════════════
# POINT TABLES
# ═══════════════════════════════════════════════════════════════════════════

PRIORITY_POINTS: Final[dict[str, int]] = {"critical": 10, "high": 7, "medium": 5, "low": 2}
DEPENDENCY_POINTS: Final[dict[str, int]] = {"blocking": 8, "independent": 1}
RISK_POINTS: Final[dict[str, int]] = {"high": 8, "medium": 5, "low": 2}
PHASE_POINTS: Final[dict[str, int]] = {"active": 10, "future": 3}

HIGH_PRIORITY_THRESHOLD: Final[int] = 7
FALLBACK_REASON: Final[str] = "Good fit for current workflow"


# ═══════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ScoreBreakdown:
    """Points contributed by each term."""

    priority: int
    dependency: int
    risk: int
    phase: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class TaskScore:
    total: int
    breakdown: ScoreBreakdown


# ═══════════════════════════════════════════════════════════════════════════
# SCORING
# ═══════════════════════════════════════════════════════════════════════════


def priority_points(priority: str) -> int:
    return PRIORITY_POINTS.get(priority, 0)


def dependency_points(task: Task) -> int:
    # Keys off ``blocks`` only. Unmet dependencies are handled by eligibility.
    return DEPENDENCY_POINTS["blocking"] if task.blocks else DEPENDENCY_POINTS["independent"]


def risk_points(risk_level: str) -> int:
    return RISK_POINTS.get(risk_level, 0)


def phase_points(task: Task, active_phase: str) -> int:
    return PHASE_POINTS["active"] if task.phase == active_phase else PHASE_POINTS["future"]


def score_task(task: Task, active_phase: str) -> TaskScore:
    """Score a task against the project's active phase."""
    breakdown = ScoreBreakdown(
        priority=priority_points(task.priority),
        dependency=dependency_points(task),
        risk=risk_points(task.risk_level),
        phase=phase_points(task, active_phase),
    )
    total = round(breakdown.priority + breakdown.dependency + breakdown.risk + breakdown.phase)
    return TaskScore(total=total, breakdown=breakdown)


def rank(tasks: list[Task], active_phase: str) -> list[tuple[Task, TaskScore]]:
    """Score and order tasks by descending total.

    ``sorted`` is stable, so equal totals keep their input order.
    """
    scored = [(task, score_task(task, active_phase)) for task in tasks]
    return sorted(scored, key=lambda pair: pair[1].total, reverse=True)


def recommendation_reason(task: Task, active_phase: str) -> str:
    """Human-readable explanation. Not used for ranking."""
    reasons: list[str] = []

    if priority_points(task.priority) >= HIGH_PRIORITY_THRESHOLD:
        reasons.append(f"High priority ({task.priority})")
    if task.blocks:
        reasons.append(f"Blocks {len(task.blocks)} other task(s)")
    if task.phase == active_phase:
        reasons.append("In active phase")
    if task.risk_level == RiskLevel.HIGH:
        reasons.append("High risk - needs attention")

    return ", ".join(reasons) or FALLBACK_REASON
