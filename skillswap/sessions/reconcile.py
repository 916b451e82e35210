"""Counter reconciliation — scheduled job that rebuilds User aggregates.

Best-effort counter updates can be lost when a follow-up step fails after
its transition committed. This job recomputes every counter from the
authoritative rows (completed sessions, reviews, granted achievements),
writes the absolute values and re-evaluates achievements. It is never on
the request path.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.achievements.catalog import DISTINCT_STUDENTS
from skillswap.achievements.evaluator import achievement_evaluator
from skillswap.db.engine import async_session_factory
from skillswap.events import emit
from skillswap.models.achievement import UserAchievement
from skillswap.models.enums import SessionStatus
from skillswap.models.review import Review
from skillswap.models.session import Session
from skillswap.models.user import User
from skillswap.schemas.events import EventType, SystemEvent
from skillswap.sessions.queries import count_distinct_students
from skillswap.users.stats import user_stats

logger = logging.getLogger(__name__)


async def compute_counters(db: AsyncSession, user_id: uuid.UUID) -> dict[str, Any]:
    """Counter values implied by the authoritative rows for one user."""
    completed = Session.status == SessionStatus.COMPLETED.value
    as_tutor = completed & (Session.tutor_id == user_id)
    as_student = completed & (Session.student_id == user_id)

    sessions = (await db.execute(
        select(
            func.sum(case((as_tutor, 1), else_=0)).label("hosted"),
            func.sum(case((as_student, 1), else_=0)).label("completed"),
            func.sum(case((Session.student_id == user_id, 1), else_=0)).label("requested"),
            func.sum(case((as_tutor, Session.duration), else_=0)).label("minutes_taught"),
            func.sum(case((as_student, Session.duration), else_=0)).label("minutes_learned"),
            func.sum(case((as_tutor, func.coalesce(Session.points_awarded_tutor, 0)), else_=0)).label(
                "tutor_points"
            ),
            func.sum(case((as_student, func.coalesce(Session.points_awarded_student, 0)), else_=0)).label(
                "student_points"
            ),
        ).where((Session.tutor_id == user_id) | (Session.student_id == user_id))
    )).one()

    reviews = (await db.execute(
        select(
            func.sum(case((Review.reviewer_id == user_id, 1), else_=0)).label("written"),
            func.sum(case((Review.reviewee_id == user_id, 1), else_=0)).label("received"),
            func.sum(case((Review.reviewee_id == user_id, Review.rating), else_=0)).label("rating_total"),
            func.sum(case(((Review.reviewee_id == user_id) & (Review.rating == 5), 1), else_=0)).label(
                "five_star"
            ),
        ).where((Review.reviewer_id == user_id) | (Review.reviewee_id == user_id))
    )).one()

    achievement_points = (await db.execute(
        select(func.coalesce(func.sum(UserAchievement.points), 0)).where(UserAchievement.user_id == user_id)
    )).scalar() or 0

    return {
        "points": (sessions.tutor_points or 0) + (sessions.student_points or 0) + achievement_points,
        "sessions_hosted": sessions.hosted or 0,
        "sessions_completed": sessions.completed or 0,
        "sessions_requested": sessions.requested or 0,
        "total_hours_taught": (sessions.minutes_taught or 0) / 60,
        "total_hours_learned": (sessions.minutes_learned or 0) / 60,
        "reviews_written": reviews.written or 0,
        "review_count": reviews.received or 0,
        "rating_total": reviews.rating_total or 0,
        "five_star_reviews": reviews.five_star or 0,
    }


async def reconcile_user(db: AsyncSession, user_id: uuid.UUID) -> dict[str, tuple[Any, Any]]:
    """Rewrite a user's counters and grant any achievement they now qualify for.

    Returns the drift that was corrected, ``{counter: (stored, recomputed)}``.
    The caller owns the transaction; this commits once after the overwrite
    and once after the achievement pass.
    """
    stored = await user_stats.get_metrics(db, user_id)
    expected = await compute_counters(db, user_id)
    drift = {
        name: (stored[name], value)
        for name, value in expected.items()
        if stored.get(name) != value
    }
    if drift:
        await user_stats.overwrite(db, user_id, **expected)
        await db.commit()
        logger.info("Reconciled counters for user=%s: %s", user_id, drift)

    metrics = {**expected, DISTINCT_STUDENTS: await count_distinct_students(db, user_id)}
    await achievement_evaluator.evaluate_and_grant(db, user_id, metrics)
    await db.commit()
    return drift


async def reconcile_all() -> dict[str, int]:
    """Reconcile every active user, each in its own DB session.

    A failure for one user is logged and counted; the run continues.
    """
    summary = {"users_checked": 0, "users_corrected": 0, "users_failed": 0}

    async with async_session_factory() as db:
        user_ids = list((await db.execute(
            select(User.id).where(User.is_active.is_(True))
        )).scalars().all())

    for user_id in user_ids:
        summary["users_checked"] += 1
        try:
            async with async_session_factory() as db:
                drift = await reconcile_user(db, user_id)
        except Exception:
            logger.exception("Reconciliation failed for user=%s", user_id)
            summary["users_failed"] += 1
            continue

        if drift:
            summary["users_corrected"] += 1
            await emit(SystemEvent(
                event_type=EventType.STATS_RECONCILED,
                actor_id="system",
                actor_role="system",
                target_type="User",
                target_id=user_id,
                description="User counters reconciled",
                data={name: {"stored": old, "recomputed": new} for name, (old, new) in drift.items()},
                source_module="sessions.reconcile",
            ))

    await emit(SystemEvent(
        event_type=EventType.SYSTEM_MAINTENANCE,
        actor_id="system",
        actor_role="system",
        description="Counter reconciliation finished",
        data={"action": "reconcile_counters", **summary},
        source_module="sessions.reconcile",
    ))
    logger.info(
        "Reconciliation complete: checked=%d corrected=%d failed=%d",
        summary["users_checked"],
        summary["users_corrected"],
        summary["users_failed"],
    )
    return summary
