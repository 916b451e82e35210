"""Conversation models — a message thread between a fixed set of users.

`participant_key` is the sorted, colon-joined participant ids, so the
same pair of users always resolves to the same conversation.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from skillswap.models.message import Message


class Conversation(TimestampMixin, Base):
    """A thread between users, optionally tied to a session."""

    __tablename__ = "conversations"

    participant_key: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    related_session_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sessions.id")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Last message preview (denormalized)
    last_message_preview: Mapped[str | None] = mapped_column(String(100))
    last_message_sender_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)

    # Relationships
    participants: Mapped[list[ConversationParticipant]] = relationship(
        "ConversationParticipant", back_populates="conversation", lazy="selectin"
    )
    messages: Mapped[list[Message]] = relationship("Message", back_populates="conversation")

    def __repr__(self) -> str:
        return f"<Conversation id={self.id} key={self.participant_key}>"


class ConversationParticipant(TimestampMixin, Base):
    """Per-user state within a conversation (unread counter, archive, mute)."""

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("conversations.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    unread_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    muted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participants_member"),
    )

    def __repr__(self) -> str:
        return f"<ConversationParticipant conv={self.conversation_id} user={self.user_id} unread={self.unread_count}>"
