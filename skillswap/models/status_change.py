"""SessionStatusChange — append-only status history of a session."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from skillswap.models.session import Session


class SessionStatusChange(TimestampMixin, Base):
    """One entry per status a session entered, including creation."""

    __tablename__ = "session_status_changes"

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sessions.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    changed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    reason: Mapped[str | None] = mapped_column(Text)

    session: Mapped[Session] = relationship("Session", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<SessionStatusChange session={self.session_id} status={self.status}>"
