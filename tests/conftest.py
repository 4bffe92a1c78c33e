"""Shared test fixtures for the matching engine test suite."""

import uuid
from collections.abc import AsyncGenerator, Sequence
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

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
from mentor_match.modules.matching.service import MatchingConfig, MatchingService

TENANT_ID = uuid.UUID("00000000-0000-0001-0000-000000000001")
OTHER_TENANT_ID = uuid.UUID("00000000-0000-0001-0000-000000000099")
COORDINATOR_ID = uuid.UUID("00000000-0000-0001-0000-000000000002")

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ── Database ─────────────────────────────────────────────────────────────────


def make_sqlite_engine(path: Path) -> AsyncEngine:
    """File-backed SQLite engine whose transactions take the write lock up front.

    BEGIN IMMEDIATE serialises writers the way the mentor row lock does on
    PostgreSQL, so concurrent acceptance tests exercise the capacity re-check.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", connect_args={"timeout": 30})

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    engine = make_sqlite_engine(tmp_path / "matching.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Collaborator fakes ───────────────────────────────────────────────────────


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.mentor_notified: list[uuid.UUID] = []
        self.mentee_notified: list[uuid.UUID] = []
        self.manual_required: list[tuple[uuid.UUID, uuid.UUID]] = []

    async def notify_mentor_of_match(self, match_id: uuid.UUID) -> None:
        self.mentor_notified.append(match_id)
        if self.fail:
            raise RuntimeError("mail server down")

    async def notify_mentee_of_acceptance(self, match_id: uuid.UUID) -> None:
        self.mentee_notified.append(match_id)
        if self.fail:
            raise RuntimeError("mail server down")

    async def notify_coordinators_manual_matching_required(
        self, program_id: uuid.UUID, mentee_registration_id: uuid.UUID
    ) -> None:
        self.manual_required.append((program_id, mentee_registration_id))
        if self.fail:
            raise RuntimeError("mail server down")


class RecordingSpaces:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.created: list[uuid.UUID] = []

    async def create_collaboration_space(self, match_id: uuid.UUID) -> str | None:
        self.created.append(match_id)
        if self.fail:
            raise RuntimeError("chat service down")
        return f"space-{match_id.hex[:8]}"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def spaces() -> RecordingSpaces:
    return RecordingSpaces()


@pytest.fixture
def service(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: RecordingNotifier,
    spaces: RecordingSpaces,
    clock: FrozenClock,
) -> MatchingService:
    return MatchingService(
        session_factory,
        MatchingConfig(max_mentees_per_mentor=20, auto_reject_days=3, batch_concurrency=4),
        notifier=notifier,
        spaces=spaces,
        clock=clock,
    )


# ── Seed data ────────────────────────────────────────────────────────────────


class Seeder:
    """Writes programs, registrations and matches straight into the store.

    Registrations get strictly increasing created_at values so mentor order
    (and therefore tie-breaking) is deterministic.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._created_at = NOW - timedelta(days=30)

    def _next_created_at(self) -> datetime:
        self._created_at += timedelta(minutes=1)
        return self._created_at

    async def _add(self, obj):
        async with self.session_factory.begin() as session:
            session.add(obj)
        return obj

    async def program(self, **overrides) -> MentoringProgram:
        values = dict(
            tenant_id=TENANT_ID,
            name="Spring Mentoring 2026",
            registration_end_date_mentee=NOW - timedelta(days=5),
            registration_end_date_mentor=NOW - timedelta(days=5),
            matching_end_date=NOW + timedelta(days=30),
            coordinator_ids=[str(COORDINATOR_ID)],
        )
        values.update(overrides)
        return await self._add(MentoringProgram(**values))

    async def mentor(
        self,
        program: MentoringProgram,
        *,
        status: RegistrationStatus = RegistrationStatus.APPROVED,
        **profile,
    ) -> MentorRegistration:
        return await self._add(
            MentorRegistration(
                tenant_id=program.tenant_id,
                program_id=program.id,
                user_id=profile.pop("user_id", uuid.uuid4()),
                status=status,
                full_name=profile.pop("full_name", "Mentor"),
                created_at=self._next_created_at(),
                **profile,
            )
        )

    async def mentee(
        self,
        program: MentoringProgram,
        *,
        preferences: Sequence[MentorRegistration] = (),
        status: RegistrationStatus = RegistrationStatus.APPROVED,
        **profile,
    ) -> MenteeRegistration:
        return await self._add(
            MenteeRegistration(
                tenant_id=program.tenant_id,
                program_id=program.id,
                user_id=profile.pop("user_id", uuid.uuid4()),
                status=status,
                full_name=profile.pop("full_name", "Mentee"),
                preferred_mentors=[str(m.user_id) for m in preferences],
                created_at=self._next_created_at(),
                **profile,
            )
        )

    async def match(
        self,
        program: MentoringProgram,
        mentee: MenteeRegistration,
        mentor: MentorRegistration,
        *,
        status: MatchStatus = MatchStatus.ACCEPTED,
        match_type: MatchType = MatchType.ALGORITHM,
        preferred_choice_order: int | None = None,
        auto_reject_at: datetime | None = None,
        score: float = 50.0,
    ) -> MentorMenteeMatch:
        return await self._add(
            MentorMenteeMatch(
                tenant_id=program.tenant_id,
                program_id=program.id,
                mentee_id=mentee.user_id,
                mentee_registration_id=mentee.id,
                mentor_id=mentor.user_id,
                mentor_registration_id=mentor.id,
                score=score,
                score_breakdown={"industry": 0, "programme": 0, "skills": 0, "preference": 0},
                match_type=match_type,
                preferred_choice_order=preferred_choice_order,
                status=status,
                mentee_selected_mentors=list(mentee.preferred_mentors),
                matched_at=NOW - timedelta(days=1),
                auto_reject_at=auto_reject_at,
            )
        )


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)


# ── HTTP client ──────────────────────────────────────────────────────────────


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    from mentor_match.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
