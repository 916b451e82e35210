"""Idempotent achievement evaluator.

Grants are keyed by (user_id, achievement_id). The held-set check skips
work for achievements already owned, and the unique constraint plus
``ON CONFLICT DO NOTHING`` makes a concurrent duplicate grant a no-op.
Achievement points are credited only when the insert actually happened.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.achievements.catalog import Achievement, due_achievements
from skillswap.models.achievement import UserAchievement
from skillswap.users.stats import UserStatsRepository, user_stats

logger = logging.getLogger(__name__)


class AchievementEvaluator:
    """Evaluate metrics against the catalog and grant what is due."""

    def __init__(self, stats: UserStatsRepository | None = None) -> None:
        self._stats = stats or user_stats

    async def granted_ids(self, db: AsyncSession, user_id: uuid.UUID) -> set[str]:
        """Ids of achievements the user already holds."""
        result = await db.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars().all())

    async def evaluate_and_grant(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        metrics: Mapping[str, float],
    ) -> list[Achievement]:
        """Grant every due achievement the user does not hold yet.

        Args:
            db: Database session (caller commits).
            user_id: The user to evaluate.
            metrics: Trigger context, metric name → current value.

        Returns:
            Achievements newly granted by this call (empty on a repeat call).
        """
        held = await self.granted_ids(db, user_id)
        granted: list[Achievement] = []
        for achievement in due_achievements(metrics, held):
            if await self._grant(db, user_id, achievement):
                granted.append(achievement)

        if granted:
            logger.info(
                "Achievements granted: user=%s ids=%s",
                user_id,
                [a.id for a in granted],
            )
        return granted

    async def _grant(self, db: AsyncSession, user_id: uuid.UUID, achievement: Achievement) -> bool:
        """Insert the grant row; credit points only if this call created it."""
        result = await db.execute(
            pg_insert(UserAchievement)
            .values(
                user_id=user_id,
                achievement_id=achievement.id,
                points=achievement.points,
                granted_at=datetime.now(UTC),
            )
            .on_conflict_do_nothing(constraint="uq_user_achievements_user_achievement")
            .returning(UserAchievement.id)
        )
        if result.scalar_one_or_none() is None:
            logger.debug("Achievement %s already held by user=%s", achievement.id, user_id)
            return False

        if achievement.points:
            await self._stats.increment(db, user_id, points=achievement.points)
        return True


# Module-level singleton
achievement_evaluator = AchievementEvaluator()
