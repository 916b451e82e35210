"""Session state definitions and transition table.

The lifecycle is a small acyclic graph: pending → confirmed → in-progress →
completed, with cancellation allowed before a session starts. Creation
(pending) is not a transition; it happens in SessionService.request_session.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from skillswap.models.enums import SessionOperation, SessionStatus


class ActorRule(str, Enum):
    """Who may perform an operation."""

    TUTOR = "tutor"
    PARTICIPANT = "participant"


@dataclass(frozen=True)
class TransitionRule:
    sources: frozenset[SessionStatus]
    target: SessionStatus
    actor: ActorRule

    @property
    def source_values(self) -> list[str]:
        return sorted(s.value for s in self.sources)


INITIAL_STATE = SessionStatus.PENDING

# {operation: rule}
TRANSITIONS: dict[SessionOperation, TransitionRule] = {
    SessionOperation.CONFIRM: TransitionRule(
        sources=frozenset({SessionStatus.PENDING}),
        target=SessionStatus.CONFIRMED,
        actor=ActorRule.TUTOR,
    ),
    SessionOperation.START: TransitionRule(
        sources=frozenset({SessionStatus.CONFIRMED}),
        target=SessionStatus.IN_PROGRESS,
        actor=ActorRule.PARTICIPANT,
    ),
    SessionOperation.COMPLETE: TransitionRule(
        sources=frozenset({SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS}),
        target=SessionStatus.COMPLETED,
        actor=ActorRule.PARTICIPANT,
    ),
    SessionOperation.CANCEL: TransitionRule(
        sources=frozenset({SessionStatus.PENDING, SessionStatus.CONFIRMED}),
        target=SessionStatus.CANCELLED,
        actor=ActorRule.PARTICIPANT,
    ),
}

TERMINAL_STATES: frozenset[SessionStatus] = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.CANCELLED,
    SessionStatus.NO_SHOW,
})

# Statuses in which a session still shows up as "upcoming"
OPEN_STATES: frozenset[SessionStatus] = frozenset({SessionStatus.PENDING, SessionStatus.CONFIRMED})


def allowed_operations(status: SessionStatus) -> list[SessionOperation]:
    """Operations that are legal from ``status`` (ignoring who asks)."""
    return [op for op, rule in TRANSITIONS.items() if status in rule.sources]


def is_terminal(status: SessionStatus) -> bool:
    return status in TERMINAL_STATES
