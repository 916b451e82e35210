"""Pure transition planning for tutoring sessions.

``plan_transition`` decides whether an operation is legal and describes
everything it implies: the field changes, the history entry and the ordered
side effects. It performs no I/O, so it is tested without a database; the
SessionService applies the plan and hands the effects to the EffectRunner.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from skillswap.config import settings
from skillswap.effects import (
    Effect,
    EvaluateAchievements,
    IncrementCounters,
    NotifyParticipants,
    RecordAudit,
)
from skillswap.errors import AlreadyCompleted, InvalidTransition, Unauthorized
from skillswap.models.enums import MessageType, ParticipantRole, SessionOperation, SessionStatus
from skillswap.schemas.events import EventType
from skillswap.sessions.states import TRANSITIONS, ActorRule


@dataclass(frozen=True)
class SessionSnapshot:
    """The fields of a session the planner needs."""

    id: uuid.UUID
    tutor_id: uuid.UUID
    student_id: uuid.UUID
    status: SessionStatus
    title: str
    scheduled_date: datetime
    duration: int

    @classmethod
    def from_model(cls, session: Any) -> SessionSnapshot:
        return cls(
            id=session.id,
            tutor_id=session.tutor_id,
            student_id=session.student_id,
            status=SessionStatus(session.status),
            title=session.title,
            scheduled_date=session.scheduled_date,
            duration=session.duration,
        )

    @property
    def participants(self) -> tuple[uuid.UUID, uuid.UUID]:
        return (self.tutor_id, self.student_id)

    def role_of(self, user_id: uuid.UUID) -> ParticipantRole | None:
        if user_id == self.tutor_id:
            return ParticipantRole.TUTOR
        if user_id == self.student_id:
            return ParticipantRole.STUDENT
        return None


@dataclass(frozen=True)
class HistoryEntry:
    status: SessionStatus
    changed_at: datetime
    changed_by: uuid.UUID | None
    reason: str | None = None


@dataclass(frozen=True)
class TransitionPlan:
    """Everything an accepted transition implies."""

    session_id: uuid.UUID
    operation: SessionOperation
    from_status: SessionStatus
    to_status: SessionStatus
    history: HistoryEntry
    changes: Mapping[str, Any] = field(default_factory=dict)
    effects: tuple[Effect, ...] = ()


def format_when(when: datetime) -> str:
    """Human-readable schedule used in notifications."""
    return when.strftime("%a %d %b %Y, %H:%M %Z").strip()


def check_transition(
    snapshot: SessionSnapshot,
    operation: SessionOperation,
    actor_id: uuid.UUID,
) -> ParticipantRole:
    """Validate actor and source state. Returns the actor's role.

    Raises:
        Unauthorized: actor is not a participant, or not the tutor on confirm.
        AlreadyCompleted: completion requested on a completed session.
        InvalidTransition: the operation is not legal from the current status.
    """
    rule = TRANSITIONS[operation]
    role = snapshot.role_of(actor_id)
    if role is None:
        raise Unauthorized(actor_id, operation.value, "not a participant of this session")
    if rule.actor == ActorRule.TUTOR and role != ParticipantRole.TUTOR:
        raise Unauthorized(actor_id, operation.value, "only the tutor can do this")

    if snapshot.status not in rule.sources:
        if operation == SessionOperation.COMPLETE and snapshot.status == SessionStatus.COMPLETED:
            raise AlreadyCompleted(snapshot.id)
        raise InvalidTransition(snapshot.status.value, operation.value, rule.source_values)
    return role


def plan_transition(
    snapshot: SessionSnapshot,
    operation: SessionOperation,
    actor_id: uuid.UUID,
    *,
    now: datetime,
    reason: str | None = None,
    tutor_points: int | None = None,
    student_points: int | None = None,
) -> TransitionPlan:
    """Build the plan for ``operation`` requested by ``actor_id``.

    Args:
        snapshot: Current state of the session.
        operation: confirm / start / complete / cancel.
        actor_id: The user asking.
        now: Clock reading used for every timestamp in the plan.
        reason: Cancellation reason (cancel only).
        tutor_points: Override for the tutor's completion points.
        student_points: Override for the student's completion points.

    Raises:
        Unauthorized, AlreadyCompleted, InvalidTransition: see check_transition.
        ValueError: negative point overrides.
    """
    role = check_transition(snapshot, operation, actor_id)
    target = TRANSITIONS[operation].target
    audit_data: dict[str, Any] = {"from_status": snapshot.status.value, "to_status": target.value}
    changes: dict[str, Any] = {}
    effects: list[Effect] = []
    history_reason: str | None = None

    if operation == SessionOperation.CONFIRM:
        effects.append(NotifyParticipants(
            participants=snapshot.participants,
            text=f"✅ Session confirmed: {snapshot.title}\n\nScheduled for {format_when(snapshot.scheduled_date)}.",
            related_session_id=snapshot.id,
            sender_id=actor_id,
        ))
        effects.append(_audit(EventType.SESSION_CONFIRMED, snapshot, actor_id, role,
                              f"Session confirmed: {snapshot.title}", audit_data))

    elif operation == SessionOperation.START:
        changes["actual_start_time"] = now
        effects.append(_audit(EventType.SESSION_STARTED, snapshot, actor_id, role,
                              f"Session started: {snapshot.title}", audit_data))

    elif operation == SessionOperation.COMPLETE:
        tutor_points = settings.sessions.tutor_points if tutor_points is None else tutor_points
        student_points = settings.sessions.student_points if student_points is None else student_points
        if tutor_points < 0 or student_points < 0:
            msg = f"Points must be non-negative (tutor={tutor_points}, student={student_points})"
            raise ValueError(msg)
        hours = snapshot.duration / 60

        changes.update(
            actual_end_time=now,
            points_awarded_tutor=tutor_points,
            points_awarded_student=student_points,
        )
        effects.extend([
            IncrementCounters(snapshot.tutor_id, {
                "points": tutor_points,
                "sessions_hosted": 1,
                "total_hours_taught": hours,
            }),
            IncrementCounters(snapshot.student_id, {
                "points": student_points,
                "sessions_completed": 1,
                "total_hours_learned": hours,
            }),
            EvaluateAchievements(snapshot.tutor_id, ParticipantRole.TUTOR),
            EvaluateAchievements(snapshot.student_id, ParticipantRole.STUDENT),
            NotifyParticipants(
                participants=snapshot.participants,
                text=f"🎉 Session completed: {snapshot.title}\n\nPlease leave a review.",
                related_session_id=snapshot.id,
                sender_id=actor_id,
            ),
        ])
        audit_data.update(tutor_points=tutor_points, student_points=student_points)
        effects.append(_audit(EventType.SESSION_COMPLETED, snapshot, actor_id, role,
                              f"Session completed: {snapshot.title}", audit_data))

    elif operation == SessionOperation.CANCEL:
        history_reason = reason.strip() if reason and reason.strip() else None
        changes.update(
            cancelled_by=actor_id,
            cancellation_reason=history_reason,
            cancelled_at=now,
        )
        effects.append(NotifyParticipants(
            participants=snapshot.participants,
            text=f"❌ Session cancelled: {snapshot.title}\n\nReason: {history_reason or 'No reason provided'}",
            related_session_id=snapshot.id,
            sender_id=actor_id,
        ))
        audit_data["reason"] = history_reason
        effects.append(_audit(EventType.SESSION_CANCELLED, snapshot, actor_id, role,
                              f"Session cancelled: {snapshot.title}. "
                              f"Reason: {history_reason or 'No reason provided'}", audit_data))

    return TransitionPlan(
        session_id=snapshot.id,
        operation=operation,
        from_status=snapshot.status,
        to_status=target,
        history=HistoryEntry(status=target, changed_at=now, changed_by=actor_id, reason=history_reason),
        changes=changes,
        effects=tuple(effects),
    )


def request_effects(
    snapshot: SessionSnapshot,
    message: str | None,
) -> tuple[Effect, ...]:
    """Follow-ups of a new session request, in execution order."""
    return (
        IncrementCounters(snapshot.student_id, {"sessions_requested": 1}),
        EvaluateAchievements(snapshot.student_id, ParticipantRole.STUDENT),
        NotifyParticipants(
            participants=snapshot.participants,
            text=f"📅 Session request: {snapshot.title}\n\n{message or 'I would like to schedule a session with you.'}",
            related_session_id=snapshot.id,
            sender_id=snapshot.student_id,
            message_type=MessageType.SESSION_REQUEST,
        ),
        _audit(
            EventType.SESSION_REQUESTED,
            snapshot,
            snapshot.student_id,
            ParticipantRole.STUDENT,
            f"Session requested: {snapshot.title}",
            {"tutor_id": str(snapshot.tutor_id), "scheduled_date": snapshot.scheduled_date.isoformat()},
        ),
    )


def _audit(
    event_type: EventType,
    snapshot: SessionSnapshot,
    actor_id: uuid.UUID,
    role: ParticipantRole,
    description: str,
    data: Mapping[str, Any],
) -> RecordAudit:
    return RecordAudit(
        event_type=event_type,
        actor_id=actor_id,
        actor_role=role.value,
        target_type="Session",
        target_id=snapshot.id,
        description=description,
        data=dict(data),
    )
