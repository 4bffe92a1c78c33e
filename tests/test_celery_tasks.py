"""Tests for the Celery worker: beat schedule, task registration, eager task runs."""
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from mentor_match.core.config import settings
from mentor_match.core.database import Base
from mentor_match.models import (
    MatchStatus,
    MatchType,
    MenteeRegistration,
    MentoringProgram,
    MentorMenteeMatch,
    MentorRegistration,
    RegistrationStatus,
)
from mentor_match.modules.matching import tasks
from mentor_match.modules.matching.service import MatchingConfig, MatchingService
from mentor_match.worker import celery_app
from tests.conftest import NOW, TENANT_ID, FrozenClock, RecordingNotifier


# ── Worker configuration ────────────────────────────────────────────────────


def test_beat_schedules_the_expiry_sweep() -> None:
    entry = celery_app.conf.beat_schedule["sweep-expired-matches"]
    assert entry["task"] == tasks.sweep_expired_matches.name
    assert entry["schedule"] == settings.MATCHING_SWEEP_INTERVAL_SECONDS


def test_tasks_registered_on_worker_app() -> None:
    assert "mentor_match.modules.matching.tasks.sweep_expired_matches" in celery_app.tasks
    assert "mentor_match.modules.matching.tasks.initiate_matching" in celery_app.tasks


def test_serialization_is_json_only() -> None:
    assert celery_app.conf.task_serializer == "json"
    assert celery_app.conf.accept_content == ["json"]


# ── Eager runs against a throwaway database ─────────────────────────────────


class _Store:
    """Seeds a SQLite file synchronously; tasks then read it through aiosqlite."""

    def __init__(self, path) -> None:
        self.path = path
        self.engine = create_engine(f"sqlite:///{path}")
        Base.metadata.create_all(self.engine)
        self._created_at = NOW - timedelta(days=10)

    def add(self, obj):
        with Session(self.engine, expire_on_commit=False) as session, session.begin():
            session.add(obj)
        return obj

    def registration(self, model, program, **values):
        self._created_at += timedelta(minutes=1)
        return self.add(
            model(
                tenant_id=TENANT_ID,
                program_id=program.id,
                user_id=uuid.uuid4(),
                status=RegistrationStatus.APPROVED,
                full_name="Someone",
                created_at=self._created_at,
                **values,
            )
        )

    def matches(self, **filters) -> list[MentorMenteeMatch]:
        with Session(self.engine) as session:
            return list(session.scalars(select(MentorMenteeMatch).filter_by(**filters)))


@pytest.fixture
def store(tmp_path):
    store = _Store(tmp_path / "tasks.db")
    yield store
    store.engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def patched_service(store, notifier, monkeypatch):
    """Point the tasks' per-run service at the test database and a frozen clock."""

    @asynccontextmanager
    async def _service():
        engine = create_async_engine(f"sqlite+aiosqlite:///{store.path}", poolclass=NullPool)
        try:
            yield MatchingService(
                async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
                MatchingConfig(),
                notifier=notifier,
                clock=FrozenClock(NOW),
            )
        finally:
            await engine.dispose()

    monkeypatch.setattr(tasks, "_matching_service", _service)


@pytest.fixture
def program(store) -> MentoringProgram:
    return store.add(
        MentoringProgram(
            tenant_id=TENANT_ID,
            name="Autumn Mentoring",
            registration_end_date_mentee=NOW - timedelta(days=2),
            registration_end_date_mentor=NOW - timedelta(days=2),
            matching_end_date=NOW + timedelta(days=20),
        )
    )


class TestSweepTask:
    def test_sweep_expires_and_reassigns(self, store, patched_service, notifier, program):
        first = store.registration(MentorRegistration, program)
        second = store.registration(MentorRegistration, program)
        mentee = store.registration(
            MenteeRegistration,
            program,
            preferred_mentors=[str(first.user_id), str(second.user_id)],
        )
        overdue = store.add(
            MentorMenteeMatch(
                tenant_id=TENANT_ID,
                program_id=program.id,
                mentee_id=mentee.user_id,
                mentee_registration_id=mentee.id,
                mentor_id=first.user_id,
                mentor_registration_id=first.id,
                score=40.0,
                score_breakdown={},
                match_type=MatchType.PREFERRED,
                preferred_choice_order=1,
                status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
                mentee_selected_mentors=list(mentee.preferred_mentors),
                matched_at=NOW - timedelta(days=4),
                auto_reject_at=NOW - timedelta(days=1),
            )
        )

        result = tasks.sweep_expired_matches.apply().get()

        assert result == {"expired": 1, "reassigned": 1, "manual_required": 0, "errors": 0}
        [expired] = store.matches(id=overdue.id)
        assert expired.status == MatchStatus.AUTO_REJECTED
        [replacement] = store.matches(status=MatchStatus.PENDING_MENTOR_ACCEPTANCE)
        assert replacement.mentor_id == second.user_id
        assert replacement.preferred_choice_order == 2
        assert notifier.mentor_notified == [replacement.id]

    def test_sweep_with_nothing_due(self, store, patched_service, program):
        result = tasks.sweep_expired_matches.apply().get()
        assert result["expired"] == 0


class TestInitiateTask:
    def test_matches_every_approved_mentee(self, store, patched_service, program):
        store.registration(MentorRegistration, program, industry="Technology")
        for _ in range(3):
            store.registration(MenteeRegistration, program, industry="Technology")

        result = tasks.initiate_matching.apply(args=[str(program.id)]).get()

        assert result["total_mentees"] == 3
        assert result["pending"] == 3
        assert len(store.matches(match_type=MatchType.ALGORITHM)) == 3

    def test_window_flag_is_passed_through(self, store, patched_service):
        closed = store.add(
            MentoringProgram(
                tenant_id=TENANT_ID,
                name="Finished",
                registration_end_date_mentee=NOW - timedelta(days=60),
                registration_end_date_mentor=NOW - timedelta(days=60),
                matching_end_date=NOW - timedelta(days=30),
            )
        )
        store.registration(MentorRegistration, closed)
        store.registration(MenteeRegistration, closed)

        failed = tasks.initiate_matching.apply(args=[str(closed.id)])
        assert failed.failed()

        forced = tasks.initiate_matching.apply(
            args=[str(closed.id)], kwargs={"enforce_window": False}
        ).get()
        assert forced["pending"] == 1
