"""SQLAlchemy ORM models for SkillSwap.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from skillswap.models.achievement import UserAchievement
from skillswap.models.audit import AuditLog
from skillswap.models.base import Base
from skillswap.models.conversation import Conversation, ConversationParticipant
from skillswap.models.enums import (
    MessageType,
    ParticipantRole,
    SessionFormat,
    SessionOperation,
    SessionStatus,
    SkillCategory,
    UserRole,
)
from skillswap.models.message import Message
from skillswap.models.review import Review
from skillswap.models.session import Session
from skillswap.models.status_change import SessionStatusChange
from skillswap.models.user import User

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "Session",
    "SessionStatusChange",
    "UserAchievement",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "Review",
    "AuditLog",
    # Enums
    "SessionStatus",
    "SessionOperation",
    "SkillCategory",
    "SessionFormat",
    "ParticipantRole",
    "UserRole",
    "MessageType",
]
