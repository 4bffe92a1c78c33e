"""SQLAlchemy models package; import all models so Base.metadata is populated."""

from mentor_match.models.base import BaseModel, ModelMixin, TenantMixin, utcnow
from mentor_match.models.enums import (
    ACTIVE_MATCH_STATUSES,
    MatchStatus,
    MatchType,
    RegistrationStatus,
    UserRole,
)
from mentor_match.models.matching import MentorMenteeMatch
from mentor_match.models.mentoring import MenteeRegistration, MentoringProgram, MentorRegistration

__all__ = [
    "ACTIVE_MATCH_STATUSES",
    "BaseModel",
    "MatchStatus",
    "MatchType",
    "MenteeRegistration",
    "MentorMenteeMatch",
    "MentorRegistration",
    "MentoringProgram",
    "ModelMixin",
    "RegistrationStatus",
    "TenantMixin",
    "UserRole",
    "utcnow",
]
