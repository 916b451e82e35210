"""Audit log subscriber — persists every SystemEvent to the audit_log table.

Registered as a global subscriber (receives ALL events). This is the
audit sink of the lifecycle core: fire-and-forget from the caller's side.

Never raises — failures are logged but never propagate to the event system.
"""

from __future__ import annotations

import logging

from skillswap.db.engine import async_session_factory
from skillswap.models.audit import AuditLog
from skillswap.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


def build_audit_entry(event: SystemEvent) -> AuditLog:
    """Map a SystemEvent onto an AuditLog row."""
    return AuditLog(
        actor_id=event.actor_id,
        actor_role=event.actor_role,
        action=event.event_type.value,
        category=event.event_type.category,
        description=event.description,
        target_type=event.target_type,
        target_id=event.target_id,
        details={**event.data, "event_id": str(event.id), "source_module": event.source_module},
        created_at=event.timestamp,
    )


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table.

    Called by the event system for every emitted event.
    Failures are logged and swallowed — audit logging must never
    crash the main application flow.
    """
    try:
        async with async_session_factory() as db:
            db.add(build_audit_entry(event))
            await db.commit()
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (target=%s)",
            event.event_type.value,
            event.target_id,
        )
