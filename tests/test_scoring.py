"""Tests for task scoring."""

from __future__ import annotations

import pytest

from taskcoord.models import Task
from taskcoord.scoring import ScoreBreakdown, TaskScore, rank, recommendation_reason, score_task
from taskcoord.scoring.task_scorer import FALLBACK_REASON

ACTIVE = "phase-1"


# ═══════════════════════════════════════════════════════════════════════════
# POINT TABLES
# ═══════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    ("priority", "points"), [("critical", 10), ("high", 7), ("medium", 5), ("low", 2)]
)
def test_priority_points(priority: str, points: int) -> None:
    result = score_task(Task(id="T", title="t", priority=priority), ACTIVE)
    assert result.breakdown.priority == points


@pytest.mark.parametrize(("risk", "points"), [("high", 8), ("medium", 5), ("low", 2)])
def test_risk_points(risk: str, points: int) -> None:
    result = score_task(Task(id="T", title="t", risk_level=risk), ACTIVE)
    assert result.breakdown.risk == points


def test_unknown_priority_scores_zero() -> None:
    result = score_task(Task(id="T", title="t", priority="urgent"), ACTIVE)
    assert result.breakdown.priority == 0


def test_blocking_task_scores_eight() -> None:
    blocking = score_task(Task(id="T", title="t", blocks=["U", "V"]), ACTIVE)
    independent = score_task(Task(id="T", title="t"), ACTIVE)
    assert blocking.breakdown.dependency == 8
    assert independent.breakdown.dependency == 1


def test_dependency_term_ignores_own_dependencies() -> None:
    with_deps = score_task(Task(id="T", title="t", dependencies=["A", "B"]), ACTIVE)
    without = score_task(Task(id="T", title="t"), ACTIVE)
    assert with_deps.breakdown.dependency == without.breakdown.dependency == 1


def test_phase_points() -> None:
    assert score_task(Task(id="T", title="t", phase=ACTIVE), ACTIVE).breakdown.phase == 10
    assert score_task(Task(id="T", title="t", phase="phase-2"), ACTIVE).breakdown.phase == 3
    assert score_task(Task(id="T", title="t", phase="phase-9"), ACTIVE).breakdown.phase == 3


def test_total_is_sum_of_terms() -> None:
    task = Task(id="T", title="t", priority="high", phase=ACTIVE)
    result = score_task(task, ACTIVE)
    assert isinstance(result, TaskScore)
    assert result.breakdown == ScoreBreakdown(priority=7, dependency=1, risk=5, phase=10)
    assert result.total == 23


def test_scoring_is_deterministic() -> None:
    task = Task(id="T", title="t", priority="critical", risk_level="high", blocks=["U"])
    first = score_task(task, ACTIVE)
    second = score_task(task, ACTIVE)
    assert first == second


def test_critical_outscores_low() -> None:
    critical = score_task(Task(id="A", title="a", priority="critical"), ACTIVE)
    low = score_task(Task(id="B", title="b", priority="low"), ACTIVE)
    assert critical.total > low.total


# ═══════════════════════════════════════════════════════════════════════════
# RANKING
# ═══════════════════════════════════════════════════════════════════════════


def test_rank_orders_descending() -> None:
    tasks = [
        Task(id="low", title="l", priority="low"),
        Task(id="crit", title="c", priority="critical"),
        Task(id="med", title="m", priority="medium"),
    ]
    assert [t.id for t, _ in rank(tasks, ACTIVE)] == ["crit", "med", "low"]


def test_rank_ties_keep_input_order() -> None:
    tasks = [Task(id=f"T{i}", title=str(i)) for i in range(6)]
    assert [t.id for t, _ in rank(tasks, ACTIVE)] == [f"T{i}" for i in range(6)]


# ═══════════════════════════════════════════════════════════════════════════
# REASONS
# ═══════════════════════════════════════════════════════════════════════════


def test_reason_lists_every_applicable_phrase() -> None:
    task = Task(
        id="T", title="t", priority="critical", risk_level="high", blocks=["U", "V"], phase=ACTIVE
    )
    reason = recommendation_reason(task, ACTIVE)
    assert reason == (
        "High priority (critical), Blocks 2 other task(s), In active phase, "
        "High risk - needs attention"
    )


def test_reason_falls_back_to_generic_phrase() -> None:
    task = Task(id="T", title="t", priority="medium", phase="phase-2")
    assert recommendation_reason(task, ACTIVE) == FALLBACK_REASON


def test_reason_skips_medium_priority() -> None:
    task = Task(id="T", title="t", priority="medium", phase=ACTIVE)
    assert recommendation_reason(task, ACTIVE) == "In active phase"
