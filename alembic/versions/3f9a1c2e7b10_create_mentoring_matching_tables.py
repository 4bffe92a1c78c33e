"""Create mentoring program, registration and match tables.

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3f9a1c2e7b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ACTIVE_PREDICATE = sa.text("status IN ('pending_mentor_acceptance', 'accepted')")


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def _registration_columns() -> list[sa.Column]:
    return [
        sa.Column("program_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("company", sa.String(200), nullable=True),
        sa.Column("industry", sa.String(200), nullable=True),
        sa.Column("programme", sa.String(200), nullable=True),
        sa.Column("areas_of_mentoring", postgresql.JSONB(), nullable=False),
    ]


def upgrade() -> None:
    # ── Programs ──────────────────────────────────────────────────────────────
    op.create_table(
        "mentoring_programs",
        *_base_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("registration_end_date_mentee", sa.DateTime(), nullable=False),
        sa.Column("registration_end_date_mentor", sa.DateTime(), nullable=False),
        sa.Column("matching_end_date", sa.DateTime(), nullable=False),
        sa.Column("max_mentees_per_mentor", sa.Integer(), nullable=True),
        sa.Column("coordinator_ids", postgresql.JSONB(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mentoring_programs_tenant_id", "mentoring_programs", ["tenant_id"])

    # ── Registrations ─────────────────────────────────────────────────────────
    op.create_table(
        "mentor_registrations",
        *_base_columns(),
        *_registration_columns(),
        sa.ForeignKeyConstraint(["program_id"], ["mentoring_programs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mentor_registrations_tenant_id", "mentor_registrations", ["tenant_id"])
    op.create_index(
        "ix_mentor_registrations_program_status", "mentor_registrations", ["program_id", "status"]
    )
    op.create_index(
        "uq_mentor_registrations_program_user",
        "mentor_registrations",
        ["program_id", "user_id"],
        unique=True,
    )

    op.create_table(
        "mentee_registrations",
        *_base_columns(),
        *_registration_columns(),
        sa.Column("preferred_mentors", postgresql.JSONB(), nullable=False),
        sa.ForeignKeyConstraint(["program_id"], ["mentoring_programs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mentee_registrations_tenant_id", "mentee_registrations", ["tenant_id"])
    op.create_index(
        "ix_mentee_registrations_program_status", "mentee_registrations", ["program_id", "status"]
    )
    op.create_index(
        "uq_mentee_registrations_program_user",
        "mentee_registrations",
        ["program_id", "user_id"],
        unique=True,
    )

    # ── Matches ───────────────────────────────────────────────────────────────
    op.create_table(
        "mentor_mentee_matches",
        *_base_columns(),
        sa.Column("program_id", sa.Uuid(), nullable=False),
        sa.Column("mentee_id", sa.Uuid(), nullable=False),
        sa.Column("mentee_registration_id", sa.Uuid(), nullable=False),
        sa.Column("mentor_id", sa.Uuid(), nullable=False),
        sa.Column("mentor_registration_id", sa.Uuid(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("score_breakdown", postgresql.JSONB(), nullable=False),
        sa.Column("match_type", sa.String(40), nullable=False),
        sa.Column("preferred_choice_order", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("mentee_selected_mentors", postgresql.JSONB(), nullable=False),
        sa.Column("matched_at", sa.DateTime(), nullable=False),
        sa.Column("mentor_response_at", sa.DateTime(), nullable=True),
        sa.Column("auto_reject_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("matched_by", sa.Uuid(), nullable=True),
        sa.Column("collaboration_space_id", sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(["program_id"], ["mentoring_programs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["mentee_registration_id"], ["mentee_registrations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["mentor_registration_id"], ["mentor_registrations.id"], ondelete="CASCADE"
        ),
        sa.CheckConstraint("score >= 0 AND score <= 100", name="ck_mentor_mentee_matches_score"),
        sa.CheckConstraint(
            "(match_type = 'preferred' AND preferred_choice_order BETWEEN 1 AND 3)"
            " OR (match_type <> 'preferred' AND preferred_choice_order IS NULL)",
            name="ck_mentor_mentee_matches_preferred_order",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mentor_mentee_matches_tenant_id", "mentor_mentee_matches", ["tenant_id"])
    op.create_index("ix_mentor_mentee_matches_program_id", "mentor_mentee_matches", ["program_id"])
    op.create_index("ix_mentor_mentee_matches_mentee_id", "mentor_mentee_matches", ["mentee_id"])
    op.create_index("ix_mentor_mentee_matches_mentor_id", "mentor_mentee_matches", ["mentor_id"])
    op.create_index("ix_mentor_mentee_matches_status", "mentor_mentee_matches", ["status"])
    op.create_index(
        "ix_mentor_mentee_matches_auto_reject_at", "mentor_mentee_matches", ["auto_reject_at"]
    )
    op.create_index(
        "ix_mentor_mentee_matches_program_mentor_status",
        "mentor_mentee_matches",
        ["program_id", "mentor_id", "status"],
    )
    # At most one pending or accepted match per mentee per program
    op.create_index(
        "uq_mentor_mentee_matches_active_mentee",
        "mentor_mentee_matches",
        ["program_id", "mentee_id"],
        unique=True,
        postgresql_where=_ACTIVE_PREDICATE,
    )


def downgrade() -> None:
    op.drop_table("mentor_mentee_matches")
    op.drop_table("mentee_registrations")
    op.drop_table("mentor_registrations")
    op.drop_table("mentoring_programs")
