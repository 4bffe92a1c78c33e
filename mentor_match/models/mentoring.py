"""Mentoring program and registration models.

Owned by the registration/approval workflow; the matching engine reads them and
only ever writes ``MenteeRegistration.preferred_mentors`` (preference submission)
and ``MentorRegistration.updated_at`` (row lock taken on acceptance).
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mentor_match.models.base import BaseModel, TenantMixin
from mentor_match.models.enums import RegistrationStatus, enum_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


class MentoringProgram(BaseModel, TenantMixin):
    __tablename__ = "mentoring_programs"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    registration_end_date_mentee: Mapped[datetime] = mapped_column(nullable=False)
    registration_end_date_mentor: Mapped[datetime] = mapped_column(nullable=False)
    matching_end_date: Mapped[datetime] = mapped_column(nullable=False)
    # Per-program override of MATCHING_MAX_MENTEES_PER_MENTOR
    max_mentees_per_mentor: Mapped[int | None] = mapped_column(Integer)
    coordinator_ids: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<MentoringProgram(id={self.id}, name={self.name!r})>"


class _RegistrationColumns:
    program_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mentoring_programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[RegistrationStatus] = mapped_column(
        enum_column(RegistrationStatus),
        nullable=False,
        default=RegistrationStatus.SUBMITTED,
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(320))
    company: Mapped[str | None] = mapped_column(String(200))
    industry: Mapped[str | None] = mapped_column(String(200))
    programme: Mapped[str | None] = mapped_column(String(200))
    areas_of_mentoring: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)


class MentorRegistration(BaseModel, TenantMixin, _RegistrationColumns):
    __tablename__ = "mentor_registrations"
    __table_args__ = (
        Index("ix_mentor_registrations_program_status", "program_id", "status"),
        Index("uq_mentor_registrations_program_user", "program_id", "user_id", unique=True),
    )


class MenteeRegistration(BaseModel, TenantMixin, _RegistrationColumns):
    __tablename__ = "mentee_registrations"
    __table_args__ = (
        Index("ix_mentee_registrations_program_status", "program_id", "status"),
        Index("uq_mentee_registrations_program_user", "program_id", "user_id", unique=True),
    )

    # Ordered mentor user ids (as strings), first choice first
    preferred_mentors: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
