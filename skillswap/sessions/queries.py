"""Read-side session queries: upcoming sessions, per-user statistics, history."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.models.enums import SessionStatus
from skillswap.models.session import Session
from skillswap.models.status_change import SessionStatusChange
from skillswap.sessions.states import OPEN_STATES


def _involves(user_id: uuid.UUID) -> Any:
    return or_(Session.tutor_id == user_id, Session.student_id == user_id)


async def get_upcoming_sessions(db: AsyncSession, user_id: uuid.UUID, limit: int = 10) -> list[Session]:
    """Pending or confirmed sessions in the future, soonest first."""
    result = await db.execute(
        select(Session)
        .where(
            _involves(user_id),
            Session.status.in_([s.value for s in OPEN_STATES]),
            Session.scheduled_date >= datetime.now(UTC),
        )
        .order_by(Session.scheduled_date.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_sessions_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    status: SessionStatus | None = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[Session], int]:
    """Paginated sessions a user takes part in, newest schedule first.

    Returns (sessions, total_count).
    """
    filters = [_involves(user_id)]
    if status is not None:
        filters.append(Session.status == status.value)

    total = (await db.execute(select(func.count(Session.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Session)
        .where(*filters)
        .order_by(Session.scheduled_date.desc())
        .offset((max(page, 1) - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_session_stats(db: AsyncSession, user_id: uuid.UUID) -> dict[str, Any]:
    """Aggregate counts and hours over every session the user takes part in."""
    completed = Session.status == SessionStatus.COMPLETED.value
    result = await db.execute(
        select(
            func.count(Session.id).label("total_sessions"),
            func.sum(case((completed, 1), else_=0)).label("completed_sessions"),
            func.sum(case((Session.status == SessionStatus.CANCELLED.value, 1), else_=0)).label(
                "cancelled_sessions"
            ),
            func.sum(case((completed, Session.duration), else_=0)).label("total_minutes"),
            func.sum(case((Session.tutor_id == user_id, 1), else_=0)).label("tutor_sessions"),
            func.sum(case((Session.student_id == user_id, 1), else_=0)).label("student_sessions"),
        ).where(_involves(user_id))
    )
    row = result.one()
    return {
        "total_sessions": row.total_sessions or 0,
        "completed_sessions": row.completed_sessions or 0,
        "cancelled_sessions": row.cancelled_sessions or 0,
        "total_hours": (row.total_minutes or 0) / 60,
        "tutor_sessions": row.tutor_sessions or 0,
        "student_sessions": row.student_sessions or 0,
    }


async def get_status_history(db: AsyncSession, session_id: uuid.UUID) -> list[SessionStatusChange]:
    """Status history of a session, oldest first."""
    result = await db.execute(
        select(SessionStatusChange)
        .where(SessionStatusChange.session_id == session_id)
        .order_by(SessionStatusChange.changed_at.asc(), SessionStatusChange.created_at.asc())
    )
    return list(result.scalars().all())


async def count_distinct_students(db: AsyncSession, tutor_id: uuid.UUID) -> int:
    """Distinct students a tutor has completed sessions with."""
    result = await db.execute(
        select(func.count(func.distinct(Session.student_id))).where(
            Session.tutor_id == tutor_id,
            Session.status == SessionStatus.COMPLETED.value,
        )
    )
    return int(result.scalar() or 0)
