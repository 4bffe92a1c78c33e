"""Enums for the mentoring domain models.

Stored by value (see ``enum_column``) so partial-index predicates and raw SQL can
refer to the lowercase strings.
"""

import enum

from sqlalchemy import Enum


def enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=40,
        validate_strings=True,
    )


# ── Users ────────────────────────────────────────────────────────────────────


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    MENTOR = "mentor"
    MENTEE = "mentee"


# ── Registrations ────────────────────────────────────────────────────────────


class RegistrationStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# ── Matching ─────────────────────────────────────────────────────────────────


class MatchStatus(str, enum.Enum):
    PENDING_MENTOR_ACCEPTANCE = "pending_mentor_acceptance"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    AUTO_REJECTED = "auto_rejected"


ACTIVE_MATCH_STATUSES = (MatchStatus.PENDING_MENTOR_ACCEPTANCE, MatchStatus.ACCEPTED)


class MatchType(str, enum.Enum):
    PREFERRED = "preferred"
    ALGORITHM = "algorithm"
    MANUAL = "manual"
