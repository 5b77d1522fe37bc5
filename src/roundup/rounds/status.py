"""Round status state machine.

draft -> submitting -> voting -> revealed -> archived

Transitions are strictly forward, one step at a time. ``archived`` is terminal.
"""

from __future__ import annotations

from enum import Enum

from roundup.core.errors import InvalidTransition


class RoundStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTING = "submitting"
    VOTING = "voting"
    REVEALED = "revealed"
    ARCHIVED = "archived"


NEXT_STATUS: dict[RoundStatus, RoundStatus | None] = {
    RoundStatus.DRAFT: RoundStatus.SUBMITTING,
    RoundStatus.SUBMITTING: RoundStatus.VOTING,
    RoundStatus.VOTING: RoundStatus.REVEALED,
    RoundStatus.REVEALED: RoundStatus.ARCHIVED,
    RoundStatus.ARCHIVED: None,
}

CANCELLABLE = frozenset({RoundStatus.DRAFT, RoundStatus.SUBMITTING})
RESULTS_VISIBLE = frozenset({RoundStatus.REVEALED, RoundStatus.ARCHIVED})


def next_status(current: RoundStatus | str) -> RoundStatus | None:
    return NEXT_STATUS[RoundStatus(current)]


def validate_transition(current: RoundStatus | str, target: RoundStatus | str) -> RoundStatus:
    """Return the target status, or raise InvalidTransition."""
    current = RoundStatus(current)
    target = RoundStatus(target)
    expected = NEXT_STATUS[current]
    if target != expected:
        allowed = [expected.value] if expected else []
        raise InvalidTransition(
            f"Invalid transition: {current.value} -> {target.value}",
            current=current.value,
            target=target.value,
            allowed=allowed,
        )
    return target
