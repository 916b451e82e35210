"""Session lifecycle service — request, confirm, start, complete, cancel.

Each operation reads the session, asks the pure planner for a
TransitionPlan, applies it with a conditional status write and commits.
Only then are the plan's side effects handed to the EffectRunner; their
failures come back as warnings on the outcome and never undo the
transition.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.achievements.catalog import Achievement
from skillswap.effects import EffectRunner, RecordAudit, effect_runner
from skillswap.errors import (
    DependencyFailure,
    InvalidSessionRequest,
    SessionNotFound,
    SkillSwapError,
    Unauthorized,
    UserNotFound,
)
from skillswap.models.enums import SessionOperation, SessionStatus
from skillswap.models.session import Session
from skillswap.schemas.events import EventType
from skillswap.schemas.sessions import SessionRequest
from skillswap.sessions.lifecycle import (
    HistoryEntry,
    SessionSnapshot,
    plan_transition,
    request_effects,
)
from skillswap.sessions.repository import SessionRepository, session_repository
from skillswap.sessions.states import INITIAL_STATE

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Matches the tutor_notes / student_notes column length
MAX_NOTES_LENGTH = 2000


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class TransitionOutcome:
    """Result of a lifecycle operation.

    ``session`` reflects the committed state. ``warnings`` lists the
    best-effort steps that failed after the commit.
    """

    session: Session
    granted_achievements: list[tuple[uuid.UUID, Achievement]] = field(default_factory=list)
    warnings: list[DependencyFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


class SessionService:
    """Lifecycle operations on tutoring sessions."""

    def __init__(
        self,
        repository: SessionRepository | None = None,
        runner: EffectRunner | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._repository = repository or session_repository
        self._runner = runner or effect_runner
        self._clock = clock or _utcnow

    # ── Creation ─────────────────────────────────────────────────────

    async def request_session(
        self,
        db: AsyncSession,
        tutor_id: uuid.UUID,
        student_id: uuid.UUID,
        details: SessionRequest,
    ) -> TransitionOutcome:
        """Create a pending session on behalf of ``student_id``.

        Raises:
            InvalidSessionRequest: the student asked to book themselves.
            UserNotFound: the tutor does not exist or is inactive.
        """
        if tutor_id == student_id:
            msg = "Cannot request a session with yourself"
            raise InvalidSessionRequest(msg)

        if await self._repository.get_active_user(db, tutor_id) is None:
            raise UserNotFound(tutor_id)

        now = self._clock()
        session = Session(
            id=uuid.uuid4(),
            tutor_id=tutor_id,
            student_id=student_id,
            title=details.title,
            description=details.description,
            skill_name=details.skill.name,
            skill_category=details.skill.category.value,
            scheduled_date=details.scheduled_date,
            duration=details.duration,
            timezone=details.timezone,
            format=details.format.value,
            location=details.location,
            meeting_link=details.meeting_link,
            status=INITIAL_STATE.value,
            request_message=details.message,
            requested_at=now,
        )
        history = HistoryEntry(status=INITIAL_STATE, changed_at=now, changed_by=student_id)
        await self._repository.create(db, session, history)
        await db.commit()
        logger.info(
            "Session requested: id=%s tutor=%s student=%s",
            session.id,
            tutor_id,
            student_id,
        )

        report = await self._runner.run(
            db, request_effects(SessionSnapshot.from_model(session), details.message)
        )
        return TransitionOutcome(
            session=await self._reload(db, session.id),
            granted_achievements=report.granted,
            warnings=report.warnings,
        )

    # ── Transitions ──────────────────────────────────────────────────

    async def confirm_session(
        self, db: AsyncSession, session_id: uuid.UUID, actor_id: uuid.UUID
    ) -> TransitionOutcome:
        """Tutor accepts a pending request."""
        return await self._transition(db, session_id, actor_id, SessionOperation.CONFIRM)

    async def start_session(
        self, db: AsyncSession, session_id: uuid.UUID, actor_id: uuid.UUID
    ) -> TransitionOutcome:
        return await self._transition(db, session_id, actor_id, SessionOperation.START)

    async def complete_session(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        actor_id: uuid.UUID,
        tutor_points: int | None = None,
        student_points: int | None = None,
    ) -> TransitionOutcome:
        """Complete a confirmed or in-progress session and award points.

        Raises AlreadyCompleted if the session is already completed; callers
        treat that as a no-op success.
        """
        return await self._transition(
            db,
            session_id,
            actor_id,
            SessionOperation.COMPLETE,
            tutor_points=tutor_points,
            student_points=student_points,
        )

    async def cancel_session(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str | None = None,
    ) -> TransitionOutcome:
        return await self._transition(
            db, session_id, actor_id, SessionOperation.CANCEL, reason=reason
        )

    async def _transition(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        actor_id: uuid.UUID,
        operation: SessionOperation,
        **options: Any,
    ) -> TransitionOutcome:
        # A lost race re-reads and re-plans against the winner's state. The
        # status graph is acyclic, so this settles in fewer rounds than
        # there are statuses.
        for _ in range(len(SessionStatus)):
            session = await self._repository.get(db, session_id)
            if session is None:
                raise SessionNotFound(session_id)

            plan = plan_transition(
                SessionSnapshot.from_model(session),
                operation,
                actor_id,
                now=self._clock(),
                **options,
            )
            if await self._repository.apply(db, plan):
                await db.commit()
                break
            await db.rollback()
        else:
            msg = f"Could not {operation.value} session {session_id}: status kept changing"
            raise SkillSwapError(msg)

        logger.info(
            "Session %s: %s → %s (op=%s actor=%s)",
            session_id,
            plan.from_status.value,
            plan.to_status.value,
            operation.value,
            actor_id,
        )

        report = await self._runner.run(db, plan.effects)
        if report.warnings:
            logger.warning(
                "Session %s %s committed with %d failed follow-up(s): %s",
                session_id,
                operation.value,
                len(report.warnings),
                [w.step for w in report.warnings],
            )
        return TransitionOutcome(
            session=await self._reload(db, session_id),
            granted_achievements=report.granted,
            warnings=report.warnings,
        )

    # ── Notes ────────────────────────────────────────────────────────

    async def update_notes(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        actor_id: uuid.UUID,
        notes: str,
    ) -> Session:
        """Write the actor's own notes field. Never touches status.

        Raises:
            ValueError: notes longer than MAX_NOTES_LENGTH.
            SessionNotFound, Unauthorized: unknown session or non-participant.
        """
        if len(notes) > MAX_NOTES_LENGTH:
            msg = f"notes must be at most {MAX_NOTES_LENGTH} characters, got {len(notes)}"
            raise ValueError(msg)

        session = await self._repository.get(db, session_id)
        if session is None:
            raise SessionNotFound(session_id)

        snapshot = SessionSnapshot.from_model(session)
        role = snapshot.role_of(actor_id)
        if role is None:
            raise Unauthorized(actor_id, "update notes", "not a participant of this session")

        await self._repository.set_notes(db, session_id, f"{role.value}_notes", notes)
        await db.commit()

        await self._runner.run(db, (RecordAudit(
            event_type=EventType.SESSION_NOTES_UPDATED,
            actor_id=actor_id,
            actor_role=role.value,
            target_type="Session",
            target_id=session_id,
            description=f"{role.value.capitalize()} notes updated: {snapshot.title}",
        ),))
        return await self._reload(db, session_id)

    async def _reload(self, db: AsyncSession, session_id: uuid.UUID) -> Session:
        session = await self._repository.get(db, session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session


# Module-level singleton
session_service = SessionService()
