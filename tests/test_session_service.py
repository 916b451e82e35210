"""Tests for SessionService.

Covers:
- Session requests (self-booking, unknown tutor, initial history, follow-ups)
- Full lifecycle walk with history entries
- Degraded outcomes when follow-ups fail
- Concurrent completion applies exactly once
- Notes updates
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta

import pytest

from conftest import NOW, FakeSessionRepository, RecordingRunner
from skillswap.effects import EvaluateAchievements, IncrementCounters, NotifyParticipants, RecordAudit
from skillswap.errors import (
    AlreadyCompleted,
    DependencyFailure,
    InvalidSessionRequest,
    InvalidTransition,
    SessionNotFound,
    Unauthorized,
    UserNotFound,
)
from skillswap.models.enums import SessionStatus, SkillCategory
from skillswap.schemas.events import EventType
from skillswap.schemas.sessions import SessionRequest, SkillRef
from skillswap.sessions.service import MAX_NOTES_LENGTH, SessionService


# ── Helpers ──────────────────────────────────────────────────────────


def _make_service(repository: FakeSessionRepository, runner: RecordingRunner) -> SessionService:
    return SessionService(repository=repository, runner=runner, clock=lambda: NOW)


def _make_request(**overrides) -> SessionRequest:
    fields = {
        "title": "Guitar basics",
        "skill": SkillRef(name="Guitar", category=SkillCategory.MUSIC),
        "scheduled_date": NOW + timedelta(days=3),
        "duration": 45,
        "message": "Can we start with chords?",
    }
    fields.update(overrides)
    return SessionRequest(**fields)


def _statuses(repository: FakeSessionRepository, session_id: uuid.UUID) -> list[SessionStatus]:
    return [entry.status for entry in repository.history[session_id]]


# ── Requests ─────────────────────────────────────────────────────────


class TestRequestSession:
    @pytest.mark.asyncio()
    async def test_self_booking_rejected(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        user_id = uuid.uuid4()
        repository.active_users.add(user_id)

        with pytest.raises(InvalidSessionRequest):
            await service.request_session(mock_db, user_id, user_id, _make_request())
        assert repository.rows == {}

    @pytest.mark.asyncio()
    async def test_unknown_tutor_rejected(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        with pytest.raises(UserNotFound):
            await service.request_session(mock_db, uuid.uuid4(), uuid.uuid4(), _make_request())
        assert repository.rows == {}
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_request_creates_pending_session(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        repository.active_users.add(tutor_id)

        outcome = await service.request_session(mock_db, tutor_id, student_id, _make_request())

        session = outcome.session
        assert session.status == SessionStatus.PENDING.value
        assert session.tutor_id == tutor_id
        assert session.student_id == student_id
        assert session.duration == 45
        assert session.request_message == "Can we start with chords?"
        assert session.requested_at == NOW
        assert _statuses(repository, session.id) == [SessionStatus.PENDING]
        assert repository.history[session.id][0].changed_by == student_id
        mock_db.commit.assert_awaited_once()
        assert not outcome.degraded

    @pytest.mark.asyncio()
    async def test_request_follow_ups(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        repository.active_users.add(tutor_id)

        await service.request_session(mock_db, tutor_id, student_id, _make_request())

        assert [type(e) for e in runner.effects] == [
            IncrementCounters,
            EvaluateAchievements,
            NotifyParticipants,
            RecordAudit,
        ]
        assert runner.effects[0].amounts == {"sessions_requested": 1}
        assert runner.effects[3].event_type == EventType.SESSION_REQUESTED


# ── Lifecycle ────────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio()
    async def test_happy_path_history(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="pending")

        await service.confirm_session(mock_db, session_id, tutor_id)
        started = await service.start_session(mock_db, session_id, student_id)
        assert started.session.actual_start_time == NOW

        outcome = await service.complete_session(mock_db, session_id, tutor_id)

        assert outcome.session.status == SessionStatus.COMPLETED.value
        assert outcome.session.points_awarded_tutor == 20
        assert outcome.session.points_awarded_student == 10
        assert outcome.session.actual_end_time == NOW
        assert _statuses(repository, session_id) == [
            SessionStatus.CONFIRMED,
            SessionStatus.IN_PROGRESS,
            SessionStatus.COMPLETED,
        ]
        assert mock_db.commit.await_count == 3

    @pytest.mark.asyncio()
    async def test_complete_directly_from_confirmed(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="confirmed")

        outcome = await service.complete_session(mock_db, session_id, student_id, tutor_points=30)

        assert outcome.session.status == "completed"
        assert outcome.session.points_awarded_tutor == 30
        assert outcome.session.actual_start_time is None

    @pytest.mark.asyncio()
    async def test_student_confirm_leaves_session_untouched(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="pending")

        with pytest.raises(Unauthorized):
            await service.confirm_session(mock_db, session_id, student_id)

        assert repository.rows[session_id]["status"] == "pending"
        assert repository.history[session_id] == []
        assert runner.batches == []

    @pytest.mark.asyncio()
    async def test_cancel_with_reason(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="confirmed")

        outcome = await service.cancel_session(mock_db, session_id, student_id, reason="Feeling sick")

        assert outcome.session.status == "cancelled"
        assert outcome.session.cancelled_by == student_id
        assert outcome.session.cancellation_reason == "Feeling sick"
        assert outcome.session.cancelled_at == NOW
        assert repository.history[session_id][-1].reason == "Feeling sick"

    @pytest.mark.asyncio()
    async def test_cancel_after_start_is_invalid(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="in-progress")

        with pytest.raises(InvalidTransition):
            await service.cancel_session(mock_db, session_id, tutor_id)
        assert repository.rows[session_id]["status"] == "in-progress"

    @pytest.mark.asyncio()
    async def test_missing_session(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        with pytest.raises(SessionNotFound):
            await service.start_session(mock_db, uuid.uuid4(), uuid.uuid4())

    @pytest.mark.asyncio()
    async def test_second_completion_is_already_completed(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="in-progress")

        await service.complete_session(mock_db, session_id, tutor_id)
        with pytest.raises(AlreadyCompleted):
            await service.complete_session(mock_db, session_id, student_id)

        assert _statuses(repository, session_id) == [SessionStatus.COMPLETED]
        assert len(runner.batches) == 1


# ── Degraded outcomes ────────────────────────────────────────────────


class TestDegradedOutcome:
    @pytest.mark.asyncio()
    async def test_failed_follow_up_keeps_transition(self, repository, mock_db):
        warning = DependencyFailure(step="notification", detail="RuntimeError: smtp down")
        runner = RecordingRunner(warnings=[warning])
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="pending")

        outcome = await service.confirm_session(mock_db, session_id, tutor_id)

        assert outcome.session.status == "confirmed"
        assert outcome.degraded
        assert outcome.warnings == [warning]


# ── Concurrency ──────────────────────────────────────────────────────


class TestConcurrentCompletion:
    @pytest.mark.asyncio()
    async def test_two_completions_apply_once(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="in-progress")

        results = await asyncio.gather(
            service.complete_session(mock_db, session_id, tutor_id),
            service.complete_session(mock_db, session_id, student_id),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyCompleted)

        assert repository.missed_writes == 1
        assert _statuses(repository, session_id) == [SessionStatus.COMPLETED]
        increments = [e for e in runner.effects if isinstance(e, IncrementCounters)]
        assert [e.user_id for e in increments] == [tutor_id, student_id]


# ── Notes ────────────────────────────────────────────────────────────


class TestUpdateNotes:
    @pytest.mark.asyncio()
    async def test_tutor_and_student_fields(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="confirmed")

        await service.update_notes(mock_db, session_id, tutor_id, "Bring a capo")
        session = await service.update_notes(mock_db, session_id, student_id, "Practice G chord")

        assert session.tutor_notes == "Bring a capo"
        assert session.student_notes == "Practice G chord"
        assert session.status == "confirmed"
        assert repository.history[session_id] == []
        assert runner.effects[0].event_type == EventType.SESSION_NOTES_UPDATED

    @pytest.mark.asyncio()
    async def test_stranger_cannot_write_notes(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        session_id = repository.add(tutor_id=uuid.uuid4(), student_id=uuid.uuid4(), status="pending")

        with pytest.raises(Unauthorized):
            await service.update_notes(mock_db, session_id, uuid.uuid4(), "hi")
        assert repository.rows[session_id]["tutor_notes"] is None


# ── Scenarios ────────────────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio()
    async def test_request_confirm_complete(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        repository.active_users.add(tutor_id)

        created = await service.request_session(
            mock_db, tutor_id, student_id,
            _make_request(title="Algebra 2", skill=SkillRef(name="Algebra 2", category=SkillCategory.ACADEMICS),
                          duration=60),
        )
        session_id = created.session.id
        assert created.session.status == "pending"
        assert _statuses(repository, session_id) == [SessionStatus.PENDING]

        runner.batches.clear()
        confirmed = await service.confirm_session(mock_db, session_id, tutor_id)
        assert confirmed.session.status == "confirmed"
        assert len(repository.history[session_id]) == 2
        notification = runner.effects[0]
        assert isinstance(notification, NotifyParticipants)
        assert set(notification.participants) == {tutor_id, student_id}

        runner.batches.clear()
        completed = await service.complete_session(mock_db, session_id, student_id)
        assert completed.session.status == "completed"
        assert (completed.session.points_awarded_tutor, completed.session.points_awarded_student) == (20, 10)
        increments = {e.user_id: e.amounts for e in runner.effects if isinstance(e, IncrementCounters)}
        assert increments[tutor_id]["sessions_hosted"] == 1
        assert increments[student_id]["sessions_completed"] == 1
        assert len(repository.history[session_id]) == 3

    @pytest.mark.asyncio()
    async def test_student_cancels_pending(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="pending")

        outcome = await service.cancel_session(mock_db, session_id, student_id, reason="schedule conflict")

        assert outcome.session.status == "cancelled"
        assert outcome.session.cancellation_reason == "schedule conflict"
        assert outcome.session.cancelled_by == student_id

    @pytest.mark.asyncio()
    async def test_cancel_completed_is_invalid(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="completed")

        with pytest.raises(InvalidTransition):
            await service.cancel_session(mock_db, session_id, tutor_id)
        assert repository.rows[session_id]["status"] == "completed"


# ── Free-text bounds ─────────────────────────────────────────────────


class TestFreeTextBounds:
    @pytest.mark.asyncio()
    async def test_long_cancel_reason_stored(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id, student_id = uuid.uuid4(), uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=student_id, status="pending")
        reason = "r" * 600

        outcome = await service.cancel_session(mock_db, session_id, tutor_id, reason=reason)

        assert outcome.session.cancellation_reason == reason
        assert repository.history[session_id][-1].reason == reason

    @pytest.mark.asyncio()
    async def test_oversized_notes_rejected(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        tutor_id = uuid.uuid4()
        session_id = repository.add(tutor_id=tutor_id, student_id=uuid.uuid4(), status="confirmed")

        with pytest.raises(ValueError, match="at most 2000"):
            await service.update_notes(mock_db, session_id, tutor_id, "n" * (MAX_NOTES_LENGTH + 1))

        assert repository.rows[session_id]["tutor_notes"] is None
        mock_db.commit.assert_not_awaited()
        assert runner.batches == []

    @pytest.mark.asyncio()
    async def test_notes_at_limit_accepted(self, repository, runner, mock_db):
        service = _make_service(repository, runner)
        student_id = uuid.uuid4()
        session_id = repository.add(tutor_id=uuid.uuid4(), student_id=student_id, status="confirmed")

        session = await service.update_notes(mock_db, session_id, student_id, "n" * MAX_NOTES_LENGTH)

        assert len(session.student_notes) == MAX_NOTES_LENGTH
