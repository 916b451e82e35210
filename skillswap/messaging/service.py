"""Conversation service — threads between users and system notifications.

The lifecycle core uses ``post_system_message`` as its notification sink:
status changes are announced in the tutor/student conversation. Unread
counters live on ConversationParticipant rows and are changed with atomic
increments, never read-modify-write.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.models.conversation import Conversation, ConversationParticipant
from skillswap.models.enums import MessageType
from skillswap.models.message import Message

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100
MAX_MESSAGE_LENGTH = 5000


def participant_key(participants: Iterable[uuid.UUID]) -> str:
    """Order-independent key for a participant set."""
    ids = sorted({str(p) for p in participants})
    if len(ids) < 2:
        msg = "A conversation needs at least two distinct participants"
        raise ValueError(msg)
    return ":".join(ids)


class ConversationService:
    """Stateless conversation operations — AsyncSession passed per call."""

    async def get_or_create(
        self,
        db: AsyncSession,
        participants: Iterable[uuid.UUID],
        related_session_id: uuid.UUID | None = None,
    ) -> Conversation:
        """Return the conversation for ``participants``, creating it if needed.

        Creation is race-safe: a concurrent creator loses the insert on the
        unique ``participant_key`` and both callers read the same row.
        """
        members = sorted(set(participants), key=str)
        key = participant_key(members)

        await db.execute(
            pg_insert(Conversation)
            .values(participant_key=key, related_session_id=related_session_id, is_active=True)
            .on_conflict_do_nothing(index_elements=["participant_key"])
        )
        result = await db.execute(select(Conversation).where(Conversation.participant_key == key))
        conversation = result.scalar_one()

        await db.execute(
            pg_insert(ConversationParticipant)
            .values([
                {"conversation_id": conversation.id, "user_id": user_id, "unread_count": 0}
                for user_id in members
            ])
            .on_conflict_do_nothing(constraint="uq_conversation_participants_member")
        )
        return conversation

    async def post_system_message(
        self,
        db: AsyncSession,
        participants: Iterable[uuid.UUID],
        text: str,
        related_session_id: uuid.UUID | None = None,
        sender_id: uuid.UUID | None = None,
        message_type: MessageType = MessageType.SESSION_UPDATE,
    ) -> Message:
        """Store a message in the participants' conversation and bump unread counts.

        Every participant except the sender gets ``unread_count + 1``; a
        message without a sender counts as unread for everyone.
        """
        members = list(participants)
        conversation = await self.get_or_create(db, members, related_session_id)
        content = text[:MAX_MESSAGE_LENGTH]
        if len(text) > MAX_MESSAGE_LENGTH:
            logger.warning(
                "Message truncated from %d to %d characters (session=%s)",
                len(text),
                MAX_MESSAGE_LENGTH,
                related_session_id,
            )
        now = datetime.now(UTC)

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            content=content,
            message_type=message_type.value,
            related_session_id=related_session_id,
        )
        db.add(message)

        conversation.last_message_preview = content[:PREVIEW_LENGTH]
        conversation.last_message_sender_id = sender_id
        conversation.last_message_at = now

        recipients = [m for m in members if m != sender_id]
        if recipients:
            await db.execute(
                update(ConversationParticipant)
                .where(
                    ConversationParticipant.conversation_id == conversation.id,
                    ConversationParticipant.user_id.in_(recipients),
                )
                .values(unread_count=ConversationParticipant.unread_count + 1)
            )
        await db.flush()

        logger.info(
            "Message posted: conversation=%s type=%s session=%s",
            conversation.id,
            message_type.value,
            related_session_id,
        )
        return message

    async def mark_read(self, db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Reset the user's unread counter in a conversation."""
        await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .values(unread_count=0)
        )

    async def unread_total(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        """Unread messages across all of a user's non-archived conversations."""
        result = await db.execute(
            select(func.coalesce(func.sum(ConversationParticipant.unread_count), 0)).where(
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.archived.is_(False),
            )
        )
        return int(result.scalar() or 0)


# Module-level singleton
conversation_service = ConversationService()
