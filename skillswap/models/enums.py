"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; values match what is
stored in the database.
"""

from __future__ import annotations

from enum import Enum


class SessionStatus(str, Enum):
    """Tutoring session lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class SessionOperation(str, Enum):
    """Operations that move a session between states."""

    CONFIRM = "confirm"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class SkillCategory(str, Enum):
    """Closed set of skill categories a session can be about."""

    ACADEMICS = "academics"
    ARTS = "arts"
    TECHNOLOGY = "technology"
    MUSIC = "music"
    SPORTS = "sports"
    LANGUAGES = "languages"
    LIFE_SKILLS = "life-skills"
    OTHER = "other"


class SessionFormat(str, Enum):
    """Where the session happens."""

    IN_PERSON = "in-person"
    VIRTUAL = "virtual"
    HYBRID = "hybrid"


class ParticipantRole(str, Enum):
    """Which side of a session a user is on."""

    TUTOR = "tutor"
    STUDENT = "student"


class UserRole(str, Enum):
    """Platform role of an account."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class MessageType(str, Enum):
    """Kind of message in a conversation."""

    TEXT = "text"
    SESSION_REQUEST = "session-request"
    SESSION_UPDATE = "session-update"
    SYSTEM = "system"
