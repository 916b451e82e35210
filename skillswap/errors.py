"""Domain exceptions raised by the lifecycle core and its collaborators.

Everything a caller may need to map onto a response derives from
SkillSwapError. Best-effort side-effect failures are not exceptions: they
are reported as DependencyFailure records on the operation's outcome.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass


class SkillSwapError(Exception):
    """Base class for domain errors."""


class SessionNotFound(SkillSwapError):
    def __init__(self, session_id: uuid.UUID) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class UserNotFound(SkillSwapError):
    def __init__(self, user_id: uuid.UUID) -> None:
        self.user_id = user_id
        super().__init__(f"User not found or inactive: {user_id}")


class Unauthorized(SkillSwapError):
    """The actor is not allowed to perform this operation on this session."""

    def __init__(self, actor_id: uuid.UUID, operation: str, reason: str) -> None:
        self.actor_id = actor_id
        self.operation = operation
        self.reason = reason
        super().__init__(f"{actor_id} may not {operation}: {reason}")


class InvalidTransition(SkillSwapError):
    """The operation is not legal from the session's current status."""

    def __init__(self, current: str, operation: str, allowed: Iterable[str]) -> None:
        self.current = current
        self.operation = operation
        self.allowed = tuple(sorted(allowed))
        super().__init__(
            f"Cannot {operation} a session that is {current} "
            f"(allowed from: {', '.join(self.allowed)})"
        )


class AlreadyCompleted(SkillSwapError):
    """Completion was requested for a session that is already completed.

    Callers treat this as a no-op success: nothing was re-applied.
    """

    def __init__(self, session_id: uuid.UUID) -> None:
        self.session_id = session_id
        super().__init__(f"Session already completed: {session_id}")


class InvalidSessionRequest(SkillSwapError):
    """A session request failed a business rule (e.g. booking yourself)."""


class ReviewNotAllowed(SkillSwapError):
    """The session is not in a state that can be reviewed."""


class DuplicateReview(SkillSwapError):
    def __init__(self, session_id: uuid.UUID, reviewer_id: uuid.UUID) -> None:
        self.session_id = session_id
        self.reviewer_id = reviewer_id
        super().__init__(f"{reviewer_id} already reviewed session {session_id}")


@dataclass(frozen=True)
class DependencyFailure:
    """A best-effort step failed after the authoritative write succeeded."""

    step: str
    detail: str
