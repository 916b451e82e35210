"""SystemEvent schema — the event type that flows through the system.

Every lifecycle action emits a SystemEvent. Subscribers (the audit logger
first of all) consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system.

    The part before the dot is the audit category.
    """

    # Session lifecycle
    SESSION_REQUESTED = "session.requested"
    SESSION_CONFIRMED = "session.confirmed"
    SESSION_STARTED = "session.started"
    SESSION_COMPLETED = "session.completed"
    SESSION_CANCELLED = "session.cancelled"
    SESSION_NOTES_UPDATED = "session.notes_updated"

    # Gamification
    ACHIEVEMENT_GRANTED = "user.achievement_granted"
    STATS_RECONCILED = "user.stats_reconciled"

    # Reviews
    REVIEW_CREATED = "review.created"

    # System
    SYSTEM_MAINTENANCE = "system.maintenance"

    @property
    def category(self) -> str:
        """Audit category: session, user, review, system."""
        return self.value.split(".", 1)[0]


class SystemEvent(BaseModel):
    """Core event that flows through the SkillSwap system.

    Immutable once created. Consumed by:
    - audit_on_event → writes to audit_log table
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Who
    actor_id: str | None = None
    actor_role: str | None = None

    # On what (system events have no target)
    target_type: str | None = None
    target_id: uuid.UUID | None = None

    # Human-readable summary for the audit trail
    description: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
