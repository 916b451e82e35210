"""Audit retention — scheduled job that purges old audit rows.

Audit entries older than AUDIT_RETENTION_DAYS are deleted. Sessions,
reviews and status history are never touched by this job.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.config import settings
from skillswap.db.engine import async_session_factory
from skillswap.events import emit
from skillswap.models.audit import AuditLog
from skillswap.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


async def enforce_audit_retention() -> int:
    """Purge expired audit rows. Returns the number deleted.

    Safe to call on every schedule tick: idempotent, cutoff-based.
    """
    try:
        async with async_session_factory() as db:
            deleted = await _delete_expired_audit_logs(db)
            await db.commit()
    except Exception:
        logger.exception("Audit retention job failed")
        return 0

    await emit(SystemEvent(
        event_type=EventType.SYSTEM_MAINTENANCE,
        actor_id="system",
        actor_role="system",
        description=f"Audit retention purged {deleted} entries",
        data={"action": "audit_retention", "audit_logs_deleted": deleted},
        source_module="security.retention",
    ))
    return deleted


async def _delete_expired_audit_logs(db: AsyncSession) -> int:
    """Delete audit rows older than the configured retention window."""
    cutoff = datetime.now(UTC) - timedelta(days=settings.audit.audit_retention_days)

    del_result = await db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff))
    count = del_result.rowcount  # type: ignore[attr-defined]
    if count > 0:
        logger.info("Deleted %d audit log entries (cutoff=%s)", count, cutoff.date())
    return count
