"""Shared fixtures: in-memory session store, recording effect runner, mock DB."""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

import skillswap.models  # noqa: F401  (registers every mapper)
from skillswap.effects import EffectReport
from skillswap.errors import DependencyFailure
from skillswap.models.enums import SessionStatus
from skillswap.sessions.lifecycle import HistoryEntry, SessionSnapshot, TransitionPlan

SESSION_FIELDS = (
    "id",
    "tutor_id",
    "student_id",
    "status",
    "title",
    "scheduled_date",
    "duration",
    "request_message",
    "requested_at",
    "cancelled_by",
    "cancellation_reason",
    "cancelled_at",
    "tutor_notes",
    "student_notes",
    "actual_start_time",
    "actual_end_time",
    "points_awarded_tutor",
    "points_awarded_student",
)

NOW = datetime(2026, 3, 1, 18, 0, tzinfo=UTC)


class FakeSessionRepository:
    """In-memory stand-in for SessionRepository with the same conditional write.

    ``get`` hands out a copy and then yields to the event loop, so two
    concurrent callers both read the same status before either writes.
    """

    def __init__(self) -> None:
        self.rows: dict[uuid.UUID, dict[str, Any]] = {}
        self.history: dict[uuid.UUID, list[HistoryEntry]] = {}
        self.active_users: set[uuid.UUID] = set()
        self.missed_writes = 0

    def add(self, **fields: Any) -> uuid.UUID:
        row = {name: None for name in SESSION_FIELDS}
        row.update(
            id=uuid.uuid4(),
            title="Guitar basics",
            scheduled_date=NOW + timedelta(days=2),
            duration=60,
        )
        row.update(fields)
        self.rows[row["id"]] = row
        self.history.setdefault(row["id"], [])
        return row["id"]

    async def get(self, db: Any, session_id: uuid.UUID) -> SimpleNamespace | None:
        row = self.rows.get(session_id)
        if row is None:
            return None
        snapshot = SimpleNamespace(**row)
        await asyncio.sleep(0)
        return snapshot

    async def get_active_user(self, db: Any, user_id: uuid.UUID) -> Any:
        return SimpleNamespace(id=user_id) if user_id in self.active_users else None

    async def create(self, db: Any, session: Any, history: HistoryEntry) -> Any:
        self.rows[session.id] = {name: getattr(session, name) for name in SESSION_FIELDS}
        self.history[session.id] = [history]
        return session

    async def apply(self, db: Any, plan: TransitionPlan) -> bool:
        row = self.rows[plan.session_id]
        if row["status"] != plan.from_status.value:
            self.missed_writes += 1
            return False
        row["status"] = plan.to_status.value
        row.update(plan.changes)
        self.history[plan.session_id].append(plan.history)
        return True

    async def set_notes(self, db: Any, session_id: uuid.UUID, field: str, notes: str) -> None:
        self.rows[session_id][field] = notes


class RecordingRunner:
    """EffectRunner stand-in that records every batch it is given."""

    def __init__(self, warnings: list[DependencyFailure] | None = None) -> None:
        self.batches: list[tuple[Any, ...]] = []
        self._warnings = warnings or []

    async def run(self, db: Any, effects: Any) -> EffectReport:
        self.batches.append(tuple(effects))
        return EffectReport(warnings=list(self._warnings))

    @property
    def effects(self) -> list[Any]:
        return [effect for batch in self.batches for effect in batch]


def make_snapshot(status: SessionStatus = SessionStatus.PENDING, **overrides: Any) -> SessionSnapshot:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "tutor_id": uuid.uuid4(),
        "student_id": uuid.uuid4(),
        "status": status,
        "title": "Intro to calculus",
        "scheduled_date": NOW + timedelta(days=1),
        "duration": 90,
    }
    fields.update(overrides)
    return SessionSnapshot(**fields)


@pytest.fixture
def mock_db() -> MagicMock:
    """Mock AsyncSession: awaitable execute/commit/rollback/flush, sync add."""
    db = MagicMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.get = AsyncMock()
    return db


@pytest.fixture
def repository() -> FakeSessionRepository:
    return FakeSessionRepository()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()
