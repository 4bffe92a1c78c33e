"""Matching model: MentorMenteeMatch."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mentor_match.models.base import BaseModel, TenantMixin, utcnow
from mentor_match.models.enums import ACTIVE_MATCH_STATUSES, MatchStatus, MatchType, enum_column
from mentor_match.models.mentoring import JSONType

# One live match per mentee per program. Rows in terminal states stay for audit.
_ACTIVE_PREDICATE = text("status IN ('pending_mentor_acceptance', 'accepted')")


class MentorMenteeMatch(BaseModel, TenantMixin):
    __tablename__ = "mentor_mentee_matches"
    __table_args__ = (
        Index("ix_mentor_mentee_matches_program_id", "program_id"),
        Index("ix_mentor_mentee_matches_mentee_id", "mentee_id"),
        Index("ix_mentor_mentee_matches_mentor_id", "mentor_id"),
        Index("ix_mentor_mentee_matches_status", "status"),
        Index("ix_mentor_mentee_matches_auto_reject_at", "auto_reject_at"),
        Index("ix_mentor_mentee_matches_program_mentor_status", "program_id", "mentor_id", "status"),
        Index(
            "uq_mentor_mentee_matches_active_mentee",
            "program_id",
            "mentee_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_mentor_mentee_matches_score"),
        CheckConstraint(
            "(match_type = 'preferred' AND preferred_choice_order BETWEEN 1 AND 3)"
            " OR (match_type <> 'preferred' AND preferred_choice_order IS NULL)",
            name="ck_mentor_mentee_matches_preferred_order",
        ),
    )

    program_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mentoring_programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    mentee_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    mentee_registration_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mentee_registrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    mentor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    mentor_registration_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mentor_registrations.id", ondelete="CASCADE"),
        nullable=False,
    )

    score: Mapped[float] = mapped_column(Float, nullable=False)
    score_breakdown: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    match_type: Mapped[MatchType] = mapped_column(enum_column(MatchType), nullable=False)
    preferred_choice_order: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[MatchStatus] = mapped_column(
        enum_column(MatchStatus),
        nullable=False,
        default=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
    )
    # Mentee's preference list (mentor user ids as strings) when this row was created
    mentee_selected_mentors: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)

    matched_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    mentor_response_at: Mapped[datetime | None] = mapped_column()
    auto_reject_at: Mapped[datetime | None] = mapped_column()
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    matched_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    collaboration_space_id: Mapped[str | None] = mapped_column(String(100))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_MATCH_STATUSES

    def __repr__(self) -> str:
        return (
            f"<MentorMenteeMatch(id={self.id}, score={self.score}, "
            f"type={self.match_type.value}, status={self.status.value})>"
        )
