"""Session model — one tutoring engagement between a tutor and a student.

`status` is only ever changed by the lifecycle service through a
conditional update; every change is mirrored by a SessionStatusChange row
written in the same transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.models.base import Base, TimestampMixin
from skillswap.models.enums import SessionFormat, SessionStatus

if TYPE_CHECKING:
    from skillswap.models.status_change import SessionStatusChange
    from skillswap.models.user import User


class Session(TimestampMixin, Base):
    """A tutoring session."""

    __tablename__ = "sessions"

    # Participants
    tutor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )

    # Details
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000))
    skill_name: Mapped[str] = mapped_column(String(100), nullable=False)
    skill_category: Mapped[str] = mapped_column(String(30), nullable=False)

    # Scheduling
    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False, comment="Minutes")
    timezone: Mapped[str] = mapped_column(String(64), default="America/Chicago", nullable=False)
    format: Mapped[str] = mapped_column(String(20), default=SessionFormat.VIRTUAL.value, nullable=False)
    location: Mapped[str | None] = mapped_column(String(200))
    meeting_link: Mapped[str | None] = mapped_column(String(500))

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.PENDING.value, nullable=False, index=True
    )

    # Request
    request_message: Mapped[str | None] = mapped_column(Text)
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Cancellation (only when status == cancelled)
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Notes
    tutor_notes: Mapped[str | None] = mapped_column(String(2000))
    student_notes: Mapped[str | None] = mapped_column(String(2000))

    # Completion tracking
    actual_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Points (only when status == completed)
    points_awarded_tutor: Mapped[int | None] = mapped_column(Integer)
    points_awarded_student: Mapped[int | None] = mapped_column(Integer)

    # Relationships
    tutor: Mapped[User] = relationship("User", foreign_keys=[tutor_id])
    student: Mapped[User] = relationship("User", foreign_keys=[student_id])
    status_history: Mapped[list[SessionStatusChange]] = relationship(
        "SessionStatusChange",
        back_populates="session",
        lazy="selectin",
        order_by="SessionStatusChange.changed_at",
    )

    __table_args__ = (
        CheckConstraint("tutor_id <> student_id", name="ck_sessions_distinct_participants"),
        CheckConstraint("duration BETWEEN 15 AND 180", name="ck_sessions_duration_range"),
        Index("ix_sessions_tutor_scheduled", "tutor_id", "scheduled_date"),
        Index("ix_sessions_student_scheduled", "student_id", "scheduled_date"),
        Index("ix_sessions_status_scheduled", "status", "scheduled_date"),
    )

    @property
    def participants(self) -> tuple[uuid.UUID, uuid.UUID]:
        """(tutor_id, student_id)."""
        return (self.tutor_id, self.student_id)

    @property
    def actual_duration(self) -> int | None:
        """Minutes between actual start and end, if both are known."""
        if self.actual_start_time and self.actual_end_time:
            return round((self.actual_end_time - self.actual_start_time).total_seconds() / 60)
        return None

    def __repr__(self) -> str:
        return f"<Session id={self.id} status={self.status} title={self.title!r}>"
