"""Side-effect descriptions and the runner that executes them.

The lifecycle planner never touches the database: it returns an ordered
tuple of effect descriptions. ``EffectRunner`` executes them one by one
after the authoritative status write has been committed. Every effect is
its own unit of work; a failure is rolled back, logged and reported as a
DependencyFailure, and the runner moves on to the next effect.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.achievements.catalog import DISTINCT_STUDENTS, Achievement
from skillswap.achievements.evaluator import AchievementEvaluator, achievement_evaluator
from skillswap.errors import DependencyFailure
from skillswap.events import emit
from skillswap.messaging.service import ConversationService, conversation_service
from skillswap.models.enums import MessageType, ParticipantRole
from skillswap.schemas.events import EventType, SystemEvent
from skillswap.users.stats import UserStatsRepository, user_stats

logger = logging.getLogger(__name__)


# ── Effect descriptions ──────────────────────────────────────────────


@dataclass(frozen=True)
class IncrementCounters:
    """Add ``amounts`` to a user's aggregate counters."""

    user_id: uuid.UUID
    amounts: Mapping[str, float]
    step: str = "counters"


@dataclass(frozen=True)
class EvaluateAchievements:
    """Grant whatever the user's current counters unlock."""

    user_id: uuid.UUID
    role: ParticipantRole | None = None
    step: str = "achievements"


@dataclass(frozen=True)
class NotifyParticipants:
    """Post a message to the participants' shared conversation."""

    participants: tuple[uuid.UUID, ...]
    text: str
    related_session_id: uuid.UUID | None = None
    sender_id: uuid.UUID | None = None
    message_type: MessageType = MessageType.SESSION_UPDATE
    step: str = "notification"


@dataclass(frozen=True)
class RecordAudit:
    """Emit an audit event (plus one per achievement granted earlier in the run)."""

    event_type: EventType
    actor_id: uuid.UUID | None
    actor_role: str | None
    target_type: str
    target_id: uuid.UUID
    description: str
    data: Mapping[str, Any] = field(default_factory=dict)
    step: str = "audit"


Effect = IncrementCounters | EvaluateAchievements | NotifyParticipants | RecordAudit


@dataclass
class EffectReport:
    """What a run of effects produced."""

    metrics: dict[uuid.UUID, dict[str, Any]] = field(default_factory=dict)
    granted: list[tuple[uuid.UUID, Achievement]] = field(default_factory=list)
    warnings: list[DependencyFailure] = field(default_factory=list)


# ── Runner ───────────────────────────────────────────────────────────


class EffectRunner:
    """Execute effect descriptions as independent best-effort steps."""

    def __init__(
        self,
        stats: UserStatsRepository | None = None,
        evaluator: AchievementEvaluator | None = None,
        conversations: ConversationService | None = None,
        count_students: Callable[[AsyncSession, uuid.UUID], Awaitable[int]] | None = None,
    ) -> None:
        self._stats = stats or user_stats
        self._evaluator = evaluator or achievement_evaluator
        self._conversations = conversations or conversation_service
        if count_students is None:
            from skillswap.sessions.queries import count_distinct_students

            count_students = count_distinct_students
        self._count_students = count_students
        self._handlers: dict[type, Callable[[AsyncSession, Any, EffectReport], Awaitable[None]]] = {
            IncrementCounters: self._increment_counters,
            EvaluateAchievements: self._evaluate_achievements,
            NotifyParticipants: self._notify,
            RecordAudit: self._record_audit,
        }

    async def run(self, db: AsyncSession, effects: tuple[Effect, ...] | list[Effect]) -> EffectReport:
        """Run ``effects`` in order. Never raises for a failing effect."""
        report = EffectReport()
        for effect in effects:
            handler = self._handlers[type(effect)]
            try:
                await handler(db, effect, report)
                await db.commit()
            except Exception as exc:
                await db.rollback()
                logger.exception("Best-effort step '%s' failed: %r", effect.step, effect)
                report.warnings.append(
                    DependencyFailure(step=effect.step, detail=f"{type(exc).__name__}: {exc}")
                )
        return report

    async def _increment_counters(
        self, db: AsyncSession, effect: IncrementCounters, report: EffectReport
    ) -> None:
        report.metrics[effect.user_id] = await self._stats.increment(
            db, effect.user_id, **dict(effect.amounts)
        )

    async def _evaluate_achievements(
        self, db: AsyncSession, effect: EvaluateAchievements, report: EffectReport
    ) -> None:
        # Prefer the values returned by this run's increment; they are the
        # counters as of this completion, not as of a later one.
        metrics = dict(report.metrics.get(effect.user_id) or await self._stats.get_metrics(db, effect.user_id))
        if effect.role == ParticipantRole.TUTOR:
            metrics[DISTINCT_STUDENTS] = await self._count_students(db, effect.user_id)

        granted = await self._evaluator.evaluate_and_grant(db, effect.user_id, metrics)
        report.granted.extend((effect.user_id, achievement) for achievement in granted)

    async def _notify(self, db: AsyncSession, effect: NotifyParticipants, report: EffectReport) -> None:
        await self._conversations.post_system_message(
            db,
            effect.participants,
            effect.text,
            related_session_id=effect.related_session_id,
            sender_id=effect.sender_id,
            message_type=effect.message_type,
        )

    async def _record_audit(self, db: AsyncSession, effect: RecordAudit, report: EffectReport) -> None:
        await emit(SystemEvent(
            event_type=effect.event_type,
            actor_id=str(effect.actor_id) if effect.actor_id else None,
            actor_role=effect.actor_role,
            target_type=effect.target_type,
            target_id=effect.target_id,
            description=effect.description,
            data=dict(effect.data),
            source_module=__name__,
        ))
        for user_id, achievement in report.granted:
            await emit(SystemEvent(
                event_type=EventType.ACHIEVEMENT_GRANTED,
                actor_id="system",
                actor_role="system",
                target_type="User",
                target_id=user_id,
                description=f"Achievement unlocked: {achievement.name}",
                data={"achievement_id": achievement.id, "points": achievement.points},
                source_module=__name__,
            ))


# Module-level singleton
effect_runner = EffectRunner()
