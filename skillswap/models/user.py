"""User model — a student account that can both teach and learn.

Aggregate counters are denormalized for dashboards and achievement
evaluation. They are only ever changed through atomic increments
(UserStatsRepository) or rewritten wholesale by the reconciliation job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.models.base import Base, TimestampMixin
from skillswap.models.enums import UserRole

if TYPE_CHECKING:
    from skillswap.models.achievement import UserAchievement


class User(TimestampMixin, Base):
    """A SkillSwap member."""

    __tablename__ = "users"

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.STUDENT.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Gamification
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Session counters
    sessions_hosted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sessions_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sessions_requested: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_hours_taught: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_hours_learned: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # Review counters
    reviews_written: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="Reviews received")
    rating_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="Sum of received ratings")
    five_star_reviews: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    achievements: Mapped[list[UserAchievement]] = relationship(
        "UserAchievement", back_populates="user", lazy="selectin"
    )

    @property
    def average_rating(self) -> float:
        """Mean received rating, 0.0 when the user has no reviews yet."""
        if not self.review_count:
            return 0.0
        return self.rating_total / self.review_count

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} points={self.points}>"
