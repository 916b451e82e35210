"""Review service — one rating per participant per completed session.

The review row is the authoritative write. Counter updates, achievement
evaluation and the audit event that follow are best-effort steps run by
the EffectRunner after the commit.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.achievements.catalog import Achievement
from skillswap.effects import (
    Effect,
    EffectRunner,
    EvaluateAchievements,
    IncrementCounters,
    RecordAudit,
    effect_runner,
)
from skillswap.errors import (
    DependencyFailure,
    DuplicateReview,
    ReviewNotAllowed,
    SessionNotFound,
    Unauthorized,
)
from skillswap.models.enums import ParticipantRole, SessionStatus
from skillswap.models.review import Review
from skillswap.schemas.events import EventType
from skillswap.sessions.lifecycle import SessionSnapshot
from skillswap.sessions.repository import SessionRepository, session_repository

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class ReviewOutcome:
    review: Review
    granted_achievements: list[tuple[uuid.UUID, Achievement]] = field(default_factory=list)
    warnings: list[DependencyFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


def review_effects(
    review_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    reviewer_role: ParticipantRole,
    reviewee_id: uuid.UUID,
    rating: int,
    session_title: str,
) -> tuple[Effect, ...]:
    """Follow-ups of a new review, in execution order."""
    received: dict[str, float] = {"review_count": 1, "rating_total": rating}
    if rating == MAX_RATING:
        received["five_star_reviews"] = 1
    return (
        IncrementCounters(reviewee_id, received),
        IncrementCounters(reviewer_id, {"reviews_written": 1}),
        EvaluateAchievements(reviewee_id),
        EvaluateAchievements(reviewer_id),
        RecordAudit(
            event_type=EventType.REVIEW_CREATED,
            actor_id=reviewer_id,
            actor_role=reviewer_role.value,
            target_type="Review",
            target_id=review_id,
            description=f"{rating}★ review for session: {session_title}",
            data={"reviewee_id": str(reviewee_id), "rating": rating},
        ),
    )


class ReviewService:
    """Submit reviews for completed sessions."""

    def __init__(
        self,
        repository: SessionRepository | None = None,
        runner: EffectRunner | None = None,
    ) -> None:
        self._repository = repository or session_repository
        self._runner = runner or effect_runner

    async def submit_review(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        rating: int,
        comment: str = "",
    ) -> ReviewOutcome:
        """Record ``reviewer_id``'s rating of the other participant.

        Raises:
            ValueError: rating outside 1..5.
            SessionNotFound: no such session.
            ReviewNotAllowed: the session is not completed.
            Unauthorized: the reviewer did not take part in the session.
            DuplicateReview: the reviewer already reviewed this session.
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            msg = f"rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
            raise ValueError(msg)

        session = await self._repository.get(db, session_id)
        if session is None:
            raise SessionNotFound(session_id)

        snapshot = SessionSnapshot.from_model(session)
        if snapshot.status != SessionStatus.COMPLETED:
            msg = f"Only completed sessions can be reviewed (session is {snapshot.status.value})"
            raise ReviewNotAllowed(msg)

        role = snapshot.role_of(reviewer_id)
        if role is None:
            raise Unauthorized(reviewer_id, "review", "not a participant of this session")
        reviewee_id = snapshot.student_id if role == ParticipantRole.TUTOR else snapshot.tutor_id

        result = await db.execute(
            pg_insert(Review)
            .values(
                id=uuid.uuid4(),
                session_id=session_id,
                reviewer_id=reviewer_id,
                reviewee_id=reviewee_id,
                rating=rating,
                comment=comment.strip(),
            )
            .on_conflict_do_nothing(constraint="uq_reviews_session_reviewer")
            .returning(Review.id)
        )
        review_id = result.scalar_one_or_none()
        if review_id is None:
            await db.rollback()
            raise DuplicateReview(session_id, reviewer_id)
        await db.commit()
        logger.info(
            "Review created: id=%s session=%s reviewer=%s rating=%d",
            review_id,
            session_id,
            reviewer_id,
            rating,
        )

        report = await self._runner.run(
            db,
            review_effects(review_id, reviewer_id, role, reviewee_id, rating, snapshot.title),
        )
        review = await db.get(Review, review_id)
        return ReviewOutcome(review=review, granted_achievements=report.granted, warnings=report.warnings)


# Module-level singleton
review_service = ReviewService()
