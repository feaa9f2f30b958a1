"""Task status transitions.

The default mode is permissive: any status string is accepted, matching
how stored trackers have always been edited. Strict mode enforces the
transition table below and rejects unknown statuses.
"""

from __future__ import annotations

from typing import Final

from taskcoord.errors import InvalidTransitionError
from taskcoord.models import TaskStatus

_S = TaskStatus

TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    _S.TODO: frozenset({_S.IN_PROGRESS, _S.BLOCKED}),
    _S.BLOCKED: frozenset({_S.TODO}),
    _S.IN_PROGRESS: frozenset({_S.COMPLETED, _S.BLOCKED}),
    _S.REVIEW: frozenset(),
    _S.COMPLETED: frozenset(),
    _S.CANCELLED: frozenset(),
}


def can_transition(old: str, new: str) -> bool:
    """Whether ``old -> new`` is in the table. Anything may move to cancelled."""
    if old == new:
        return True
    if new == _S.CANCELLED:
        return True
    return new in TRANSITIONS.get(old, frozenset())


def check_transition(task_id: str, old: str, new: str, strict: bool = False) -> None:
    """Raise InvalidTransitionError for an illegal move when ``strict`` is set."""
    if not strict:
        return
    if new not in TRANSITIONS or not can_transition(old, new):
        raise InvalidTransitionError(task_id, old, new)
