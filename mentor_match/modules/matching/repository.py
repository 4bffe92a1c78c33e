"""Match store access for the matching engine.

Reads return immutable candidate projections; writes are conditional so that
state transitions and the one-active-match rule hold under concurrency.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_match.models.base import utcnow
from mentor_match.models.enums import (
    ACTIVE_MATCH_STATUSES,
    MatchStatus,
    MatchType,
    RegistrationStatus,
)
from mentor_match.models.matching import MentorMenteeMatch
from mentor_match.models.mentoring import MenteeRegistration, MentoringProgram, MentorRegistration
from mentor_match.modules.matching.algorithm import MenteeCandidate, MentorCandidate
from mentor_match.modules.matching.exceptions import ActiveMatchExists, NotFound

logger = structlog.get_logger()


def mentee_candidate(reg: MenteeRegistration) -> MenteeCandidate:
    return MenteeCandidate(
        mentee_id=reg.user_id,
        registration_id=reg.id,
        preferred_mentor_ids=tuple(uuid.UUID(str(m)) for m in reg.preferred_mentors or []),
        company=reg.company,
        industry=reg.industry,
        programme=reg.programme,
        interests=tuple(reg.areas_of_mentoring or []),
    )


def mentor_candidate(reg: MentorRegistration, accepted_count: int = 0) -> MentorCandidate:
    return MentorCandidate(
        mentor_id=reg.user_id,
        registration_id=reg.id,
        company=reg.company,
        industry=reg.industry,
        programme=reg.programme,
        areas=tuple(reg.areas_of_mentoring or []),
        accepted_count=accepted_count,
    )


class MatchingRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Programs & registrations ──────────────────────────────────────────────

    async def get_program(
        self, program_id: uuid.UUID, tenant_id: uuid.UUID | None = None
    ) -> MentoringProgram:
        stmt = select(MentoringProgram).where(
            MentoringProgram.id == program_id,
            MentoringProgram.is_deleted.is_(False),
        )
        if tenant_id is not None:
            stmt = stmt.where(MentoringProgram.tenant_id == tenant_id)
        program = (await self.db.execute(stmt)).scalar_one_or_none()
        if program is None:
            raise NotFound("Program", program_id)
        return program

    async def get_approved_mentors(self, program_id: uuid.UUID) -> list[MentorCandidate]:
        """Approved mentors in registration order, with their accepted counts."""
        regs = (
            await self.db.execute(
                select(MentorRegistration)
                .where(
                    MentorRegistration.program_id == program_id,
                    MentorRegistration.status == RegistrationStatus.APPROVED,
                    MentorRegistration.is_deleted.is_(False),
                )
                .order_by(MentorRegistration.created_at.asc(), MentorRegistration.id.asc())
            )
        ).scalars().all()
        counts = await self.get_accepted_counts(program_id)
        return [mentor_candidate(r, counts.get(r.user_id, 0)) for r in regs]

    async def get_mentor_registration(
        self, program_id: uuid.UUID, mentor_id: uuid.UUID
    ) -> MentorRegistration:
        reg = (
            await self.db.execute(
                select(MentorRegistration).where(
                    MentorRegistration.program_id == program_id,
                    MentorRegistration.user_id == mentor_id,
                    MentorRegistration.status == RegistrationStatus.APPROVED,
                    MentorRegistration.is_deleted.is_(False),
                )
            )
        ).scalar_one_or_none()
        if reg is None:
            raise NotFound("Mentor registration", mentor_id)
        return reg

    async def get_mentee_registration(
        self, program_id: uuid.UUID, registration_id: uuid.UUID
    ) -> MenteeRegistration:
        reg = (
            await self.db.execute(
                select(MenteeRegistration).where(
                    MenteeRegistration.id == registration_id,
                    MenteeRegistration.program_id == program_id,
                    MenteeRegistration.status == RegistrationStatus.APPROVED,
                    MenteeRegistration.is_deleted.is_(False),
                )
            )
        ).scalar_one_or_none()
        if reg is None:
            raise NotFound("Mentee registration", registration_id)
        return reg

    async def list_approved_mentees(self, program_id: uuid.UUID) -> list[MenteeRegistration]:
        result = await self.db.execute(
            select(MenteeRegistration)
            .where(
                MenteeRegistration.program_id == program_id,
                MenteeRegistration.status == RegistrationStatus.APPROVED,
                MenteeRegistration.is_deleted.is_(False),
            )
            .order_by(MenteeRegistration.created_at.asc(), MenteeRegistration.id.asc())
        )
        return list(result.scalars().all())

    async def lock_mentor_registration(self, registration_id: uuid.UUID) -> None:
        """Take a write lock on the mentor's registration row for this transaction."""
        result = await self.db.execute(
            update(MentorRegistration)
            .where(MentorRegistration.id == registration_id)
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("Mentor registration", registration_id)

    # ── Capacity ──────────────────────────────────────────────────────────────

    async def get_accepted_count(self, program_id: uuid.UUID, mentor_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(MentorMenteeMatch.id)).where(
                MentorMenteeMatch.program_id == program_id,
                MentorMenteeMatch.mentor_id == mentor_id,
                MentorMenteeMatch.status == MatchStatus.ACCEPTED,
            )
        )
        return result.scalar_one()

    async def get_accepted_counts(self, program_id: uuid.UUID) -> dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(MentorMenteeMatch.mentor_id, func.count(MentorMenteeMatch.id))
            .where(
                MentorMenteeMatch.program_id == program_id,
                MentorMenteeMatch.status == MatchStatus.ACCEPTED,
            )
            .group_by(MentorMenteeMatch.mentor_id)
        )
        return {mentor_id: count for mentor_id, count in result.all()}

    # ── Matches ───────────────────────────────────────────────────────────────

    async def get_match(
        self, match_id: uuid.UUID, tenant_id: uuid.UUID | None = None
    ) -> MentorMenteeMatch:
        stmt = select(MentorMenteeMatch).where(MentorMenteeMatch.id == match_id)
        if tenant_id is not None:
            stmt = stmt.where(MentorMenteeMatch.tenant_id == tenant_id)
        match = (
            await self.db.execute(stmt.execution_options(populate_existing=True))
        ).scalar_one_or_none()
        if match is None:
            raise NotFound("Match", match_id)
        return match

    async def get_active_match(
        self, program_id: uuid.UUID, mentee_id: uuid.UUID
    ) -> MentorMenteeMatch | None:
        result = await self.db.execute(
            select(MentorMenteeMatch).where(
                MentorMenteeMatch.program_id == program_id,
                MentorMenteeMatch.mentee_id == mentee_id,
                MentorMenteeMatch.status.in_(ACTIVE_MATCH_STATUSES),
            )
        )
        return result.scalar_one_or_none()

    async def attempted_mentor_ids(
        self,
        program_id: uuid.UUID,
        mentee_id: uuid.UUID,
        statuses: tuple[MatchStatus, ...] | None = None,
    ) -> set[uuid.UUID]:
        stmt = select(MentorMenteeMatch.mentor_id).where(
            MentorMenteeMatch.program_id == program_id,
            MentorMenteeMatch.mentee_id == mentee_id,
        )
        if statuses:
            stmt = stmt.where(MentorMenteeMatch.status.in_(statuses))
        return set((await self.db.execute(stmt)).scalars().all())

    async def add_match(self, match: MentorMenteeMatch) -> MentorMenteeMatch:
        """Insert a match; the partial unique index rejects a second active one."""
        self.db.add(match)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            if "unique" in str(exc.orig).lower():
                raise ActiveMatchExists(match.program_id, match.mentee_id) from exc
            raise
        return match

    async def transition(
        self,
        match_id: uuid.UUID,
        from_status: MatchStatus,
        to_status: MatchStatus,
        *,
        expired_before: datetime | None = None,
        **values: Any,
    ) -> bool:
        """Compare-and-set the status. Returns False if the row was not in ``from_status``."""
        stmt = (
            update(MentorMenteeMatch)
            .where(
                MentorMenteeMatch.id == match_id,
                MentorMenteeMatch.status == from_status,
            )
            .values(status=to_status, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if expired_before is not None:
            stmt = stmt.where(MentorMenteeMatch.auto_reject_at < expired_before)
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def set_collaboration_space(self, match_id: uuid.UUID, space_id: str) -> None:
        await self.db.execute(
            update(MentorMenteeMatch)
            .where(MentorMenteeMatch.id == match_id)
            .values(collaboration_space_id=space_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def expired_pending_match_ids(self, now: datetime) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(MentorMenteeMatch.id)
            .where(
                MentorMenteeMatch.status == MatchStatus.PENDING_MENTOR_ACCEPTANCE,
                MentorMenteeMatch.auto_reject_at < now,
            )
            .order_by(MentorMenteeMatch.auto_reject_at.asc())
        )
        return list(result.scalars().all())

    async def list_matches(
        self,
        *,
        tenant_id: uuid.UUID | None = None,
        program_id: uuid.UUID | None = None,
        status: MatchStatus | None = None,
        mentor_id: uuid.UUID | None = None,
        mentee_id: uuid.UUID | None = None,
        match_type: MatchType | None = None,
    ) -> list[MentorMenteeMatch]:
        stmt = select(MentorMenteeMatch).order_by(
            MentorMenteeMatch.matched_at.desc(), MentorMenteeMatch.id.asc()
        )
        if tenant_id is not None:
            stmt = stmt.where(MentorMenteeMatch.tenant_id == tenant_id)
        if program_id is not None:
            stmt = stmt.where(MentorMenteeMatch.program_id == program_id)
        if status is not None:
            stmt = stmt.where(MentorMenteeMatch.status == status)
        if mentor_id is not None:
            stmt = stmt.where(MentorMenteeMatch.mentor_id == mentor_id)
        if mentee_id is not None:
            stmt = stmt.where(MentorMenteeMatch.mentee_id == mentee_id)
        if match_type is not None:
            stmt = stmt.where(MentorMenteeMatch.match_type == match_type)
        return list((await self.db.execute(stmt)).scalars().all())

    async def list_unmatched_mentees(self, program_id: uuid.UUID) -> list[MenteeRegistration]:
        active = select(MentorMenteeMatch.mentee_registration_id).where(
            MentorMenteeMatch.program_id == program_id,
            MentorMenteeMatch.status.in_(ACTIVE_MATCH_STATUSES),
        )
        result = await self.db.execute(
            select(MenteeRegistration)
            .where(
                MenteeRegistration.program_id == program_id,
                MenteeRegistration.status == RegistrationStatus.APPROVED,
                MenteeRegistration.is_deleted.is_(False),
                MenteeRegistration.id.not_in(active),
            )
            .order_by(MenteeRegistration.created_at.asc(), MenteeRegistration.id.asc())
        )
        return list(result.scalars().all())

    async def count_approved_mentees(self, program_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(MenteeRegistration.id)).where(
                MenteeRegistration.program_id == program_id,
                MenteeRegistration.status == RegistrationStatus.APPROVED,
                MenteeRegistration.is_deleted.is_(False),
            )
        )
        return result.scalar_one()
