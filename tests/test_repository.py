"""Tests for SessionRepository and the read-side queries."""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from conftest import NOW, make_snapshot
from skillswap.models.audit import AuditLog
from skillswap.models.enums import SessionOperation, SessionStatus
from skillswap.models.session import Session
from skillswap.models.status_change import SessionStatusChange
from skillswap.sessions.lifecycle import plan_transition
from skillswap.sessions.queries import (
    count_distinct_students,
    get_session_stats,
    get_sessions_for_user,
    get_status_history,
    get_upcoming_sessions,
)
from skillswap.sessions.repository import SessionRepository


def _returning(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestApply:
    @pytest.mark.asyncio()
    async def test_hit_writes_history(self, mock_db):
        snapshot = make_snapshot(SessionStatus.PENDING)
        plan = plan_transition(snapshot, SessionOperation.CANCEL, snapshot.tutor_id, now=NOW, reason="busy")
        mock_db.execute.return_value = _returning(snapshot.id)

        assert await SessionRepository().apply(mock_db, plan) is True

        history = mock_db.add.call_args.args[0]
        assert isinstance(history, SessionStatusChange)
        assert history.session_id == snapshot.id
        assert history.status == "cancelled"
        assert history.changed_by == snapshot.tutor_id
        assert history.reason == "busy"
        mock_db.flush.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_miss_writes_nothing(self, mock_db):
        snapshot = make_snapshot(SessionStatus.PENDING)
        plan = plan_transition(snapshot, SessionOperation.CONFIRM, snapshot.tutor_id, now=NOW)
        mock_db.execute.return_value = _returning(None)

        assert await SessionRepository().apply(mock_db, plan) is False
        mock_db.add.assert_not_called()


class TestSetNotes:
    @pytest.mark.asyncio()
    async def test_rejects_other_columns(self, mock_db):
        with pytest.raises(ValueError):
            await SessionRepository().set_notes(mock_db, uuid.uuid4(), "status", "completed")
        mock_db.execute.assert_not_awaited()


class TestQueries:
    @pytest.mark.asyncio()
    async def test_session_stats_defaults_to_zero(self, mock_db):
        row = MagicMock(
            total_sessions=3,
            completed_sessions=2,
            cancelled_sessions=None,
            total_minutes=150,
            tutor_sessions=1,
            student_sessions=2,
        )
        result = MagicMock()
        result.one.return_value = row
        mock_db.execute.return_value = result

        stats = await get_session_stats(mock_db, uuid.uuid4())

        assert stats == {
            "total_sessions": 3,
            "completed_sessions": 2,
            "cancelled_sessions": 0,
            "total_hours": 2.5,
            "tutor_sessions": 1,
            "student_sessions": 2,
        }

    @pytest.mark.asyncio()
    async def test_count_distinct_students(self, mock_db):
        result = MagicMock()
        result.scalar.return_value = None
        mock_db.execute.return_value = result

        assert await count_distinct_students(mock_db, uuid.uuid4()) == 0


# ── Listing queries ──────────────────────────────────────────────────


def _compiled(db, call: int = -1) -> tuple[str, dict]:
    """SQL text and bound parameters of the statement passed to ``db.execute``."""
    statement = db.execute.call_args_list[call].args[0]
    compiled = statement.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


def _listing(rows: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


def _count(total: int) -> MagicMock:
    result = MagicMock()
    result.scalar.return_value = total
    return result


class TestSessionsForUser:
    @pytest.mark.asyncio()
    async def test_returns_rows_and_total(self, mock_db):
        rows = [MagicMock(), MagicMock()]
        mock_db.execute.side_effect = [_count(12), _listing(rows)]

        sessions, total = await get_sessions_for_user(mock_db, uuid.uuid4(), page=3, per_page=5)

        assert (sessions, total) == (rows, 12)
        sql, params = _compiled(mock_db)
        assert "ORDER BY sessions.scheduled_date DESC" in sql
        assert 10 in params.values()
        assert 5 in params.values()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("page", [0, -2])
    async def test_page_below_one_is_first_page(self, mock_db, page):
        mock_db.execute.side_effect = [_count(0), _listing([])]

        await get_sessions_for_user(mock_db, uuid.uuid4(), page=page, per_page=10)

        sql, params = _compiled(mock_db)
        assert "OFFSET" in sql
        assert sorted(v for v in params.values() if isinstance(v, int)) == [0, 10]

    @pytest.mark.asyncio()
    async def test_status_filter_applies_to_count_and_page(self, mock_db):
        mock_db.execute.side_effect = [_count(1), _listing([])]

        await get_sessions_for_user(mock_db, uuid.uuid4(), status=SessionStatus.COMPLETED)

        for call in (0, 1):
            sql, params = _compiled(mock_db, call)
            assert "sessions.status =" in sql
            assert "completed" in params.values()

    @pytest.mark.asyncio()
    async def test_no_status_filter_by_default(self, mock_db):
        mock_db.execute.side_effect = [_count(0), _listing([])]

        await get_sessions_for_user(mock_db, uuid.uuid4())

        sql, _ = _compiled(mock_db, 0)
        assert "sessions.status" not in sql


class TestUpcomingSessions:
    @pytest.mark.asyncio()
    async def test_open_states_soonest_first(self, mock_db):
        rows = [MagicMock()]
        mock_db.execute.return_value = _listing(rows)

        assert await get_upcoming_sessions(mock_db, uuid.uuid4(), limit=3) == rows

        sql, params = _compiled(mock_db)
        assert "sessions.status IN" in sql
        assert "sessions.scheduled_date >=" in sql
        assert "ORDER BY sessions.scheduled_date ASC" in sql
        statuses = next(v for v in params.values() if isinstance(v, list))
        assert set(statuses) == {"pending", "confirmed"}
        assert 3 in params.values()


class TestStatusHistory:
    @pytest.mark.asyncio()
    async def test_oldest_first(self, mock_db):
        session_id = uuid.uuid4()
        rows = [MagicMock(), MagicMock()]
        mock_db.execute.return_value = _listing(rows)

        assert await get_status_history(mock_db, session_id) == rows

        sql, params = _compiled(mock_db)
        assert (
            "ORDER BY session_status_changes.changed_at ASC, session_status_changes.created_at ASC"
            in sql
        )
        assert session_id in params.values()


# ── Column types ─────────────────────────────────────────────────────


class TestColumnTypes:
    @pytest.mark.parametrize(
        "column",
        [
            Session.__table__.c.created_at,
            Session.__table__.c.scheduled_date,
            Session.__table__.c.actual_start_time,
            SessionStatusChange.__table__.c.changed_at,
            AuditLog.__table__.c.created_at,
        ],
        ids=lambda c: f"{c.table.name}.{c.name}",
    )
    def test_datetimes_are_timezone_aware(self, column):
        assert column.type.timezone is True

    def test_ids_are_native_uuids(self):
        for column in (
            Session.__table__.c.id,
            Session.__table__.c.tutor_id,
            SessionStatusChange.__table__.c.session_id,
        ):
            assert isinstance(column.type, postgresql.UUID)
            assert column.type.as_uuid is True
