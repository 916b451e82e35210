"""Persistence for sessions: lookup, creation and the conditional status write.

``apply`` is the only place a session's status changes. It is a
compare-and-swap on the status column followed by the history insert, both
in the caller's transaction, so a reader never sees one without the other.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.models.session import Session
from skillswap.models.status_change import SessionStatusChange
from skillswap.models.user import User
from skillswap.sessions.lifecycle import HistoryEntry, TransitionPlan

logger = logging.getLogger(__name__)

NOTE_FIELDS = frozenset({"tutor_notes", "student_notes"})


class SessionRepository:
    """Stateless session persistence — AsyncSession passed per call."""

    async def get(self, db: AsyncSession, session_id: uuid.UUID) -> Session | None:
        """Load a session, overwriting any stale copy in the identity map."""
        result = await db.execute(
            select(Session)
            .where(Session.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active_user(self, db: AsyncSession, user_id: uuid.UUID) -> User | None:
        result = await db.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, session: Session, history: HistoryEntry) -> Session:
        """Insert a new session together with its initial history entry."""
        db.add(session)
        await db.flush()
        db.add(_history_row(session.id, history))
        await db.flush()
        return session

    async def apply(self, db: AsyncSession, plan: TransitionPlan) -> bool:
        """Conditionally write the plan's status and changes.

        Returns False when the session is no longer in ``plan.from_status``
        (another writer got there first); nothing is written in that case.
        """
        result = await db.execute(
            update(Session)
            .where(
                Session.id == plan.session_id,
                Session.status == plan.from_status.value,
            )
            .values(status=plan.to_status.value, **plan.changes)
            .returning(Session.id)
        )
        if result.scalar_one_or_none() is None:
            logger.info(
                "Conditional update missed: session=%s expected=%s",
                plan.session_id,
                plan.from_status.value,
            )
            return False

        db.add(_history_row(plan.session_id, plan.history))
        await db.flush()
        return True

    async def set_notes(self, db: AsyncSession, session_id: uuid.UUID, field: str, notes: str) -> None:
        if field not in NOTE_FIELDS:
            msg = f"Not a notes field: {field}"
            raise ValueError(msg)
        values: dict[str, Any] = {field: notes}
        await db.execute(update(Session).where(Session.id == session_id).values(**values))


def _history_row(session_id: uuid.UUID, entry: HistoryEntry) -> SessionStatusChange:
    return SessionStatusChange(
        session_id=session_id,
        status=entry.status.value,
        changed_at=entry.changed_at,
        changed_by=entry.changed_by,
        reason=entry.reason,
    )


# Module-level singleton
session_repository = SessionRepository()
