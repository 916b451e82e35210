"""Atomic access to the aggregate counters on User.

Counters are shared by every concurrent completion or review involving the
same user, so they are only changed with ``SET c = c + n`` and the new values
are read back with RETURNING in the same statement.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.errors import UserNotFound
from skillswap.models.user import User

logger = logging.getLogger(__name__)

COUNTER_FIELDS: tuple[str, ...] = (
    "points",
    "sessions_hosted",
    "sessions_completed",
    "sessions_requested",
    "total_hours_taught",
    "total_hours_learned",
    "reviews_written",
    "review_count",
    "rating_total",
    "five_star_reviews",
)


def _check_fields(names: Any) -> None:
    unknown = set(names) - set(COUNTER_FIELDS)
    if unknown:
        msg = f"Unknown counter(s): {sorted(unknown)}"
        raise ValueError(msg)


class UserStatsRepository:
    """Increment, read and overwrite user counters."""

    async def increment(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        **amounts: float,
    ) -> dict[str, Any]:
        """Atomically add ``amounts`` and return every counter after the update.

        Raises:
            UserNotFound: no row matched ``user_id``.
        """
        _check_fields(amounts)
        values = {name: getattr(User, name) + amount for name, amount in amounts.items()}
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .returning(*(getattr(User, name) for name in COUNTER_FIELDS))
        )
        row = result.one_or_none()
        if row is None:
            raise UserNotFound(user_id)
        logger.debug("Incremented counters for user=%s: %s", user_id, amounts)
        return dict(row._mapping)

    async def get_metrics(self, db: AsyncSession, user_id: uuid.UUID) -> dict[str, Any]:
        """Current counters of a user."""
        result = await db.execute(
            select(*(getattr(User, name) for name in COUNTER_FIELDS)).where(User.id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            raise UserNotFound(user_id)
        return dict(row._mapping)

    async def overwrite(self, db: AsyncSession, user_id: uuid.UUID, **values: float) -> None:
        """Write absolute counter values. Only the reconciliation job does this."""
        _check_fields(values)
        await db.execute(update(User).where(User.id == user_id).values(**values))


# Module-level singleton
user_stats = UserStatsRepository()
