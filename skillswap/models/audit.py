"""AuditLog model — immutable audit trail for every system event.

Every lifecycle action emits a SystemEvent which is persisted here.
This table is append-only apart from the retention purge.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillswap.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_log"

    # Who
    actor_id: Mapped[str | None] = mapped_column(String(100), comment="User ID or 'system'")
    actor_role: Mapped[str | None] = mapped_column(String(50), comment="tutor, student, admin, system")

    # What
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(1000))

    # On what
    target_type: Mapped[str | None] = mapped_column(String(30), comment="Session, Review, User, ...")
    target_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB)

    __table_args__ = (
        Index("ix_audit_log_category_created", "category", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog action={self.action} target={self.target_id}>"
