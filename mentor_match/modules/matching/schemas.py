"""Matching module API schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mentor_match.models.enums import MatchStatus, MatchType


# ── Matches ───────────────────────────────────────────────────────────────────


class ScoreBreakdownResponse(BaseModel):
    industry: float
    programme: float
    skills: float
    preference: float


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    program_id: uuid.UUID
    mentee_id: uuid.UUID
    mentee_registration_id: uuid.UUID
    mentor_id: uuid.UUID
    mentor_registration_id: uuid.UUID
    score: float
    score_breakdown: ScoreBreakdownResponse
    match_type: MatchType
    preferred_choice_order: int | None
    status: MatchStatus
    mentee_selected_mentors: list[uuid.UUID]
    matched_at: datetime
    mentor_response_at: datetime | None
    auto_reject_at: datetime | None
    rejection_reason: str | None
    matched_by: uuid.UUID | None
    collaboration_space_id: str | None


class MatchListResponse(BaseModel):
    items: list[MatchResponse]
    total: int


class CascadeResponse(BaseModel):
    outcome: str                     # reassigned | manual_required | already_matched | failed
    new_match: MatchResponse | None = None


class RejectMatchRequest(BaseModel):
    reason: str | None = Field(None, max_length=2000)


class RejectMatchResponse(BaseModel):
    match: MatchResponse
    cascade: CascadeResponse | None


class ManualMatchRequest(BaseModel):
    mentee_registration_id: uuid.UUID
    mentor_id: uuid.UUID


# ── Mentee / mentor views ─────────────────────────────────────────────────────


class SubmitPreferencesRequest(BaseModel):
    mentee_registration_id: uuid.UUID
    preferred_mentor_ids: list[uuid.UUID] = Field(..., min_length=3, max_length=3)


class PreferencesResponse(BaseModel):
    mentee_registration_id: uuid.UUID
    preferred_mentor_ids: list[uuid.UUID]


class MenteeStatusResponse(BaseModel):
    program_id: uuid.UUID
    mentee_id: uuid.UUID
    active_match: MatchResponse | None
    matches: list[MatchResponse]


class MentorRequestResponse(BaseModel):
    match: MatchResponse
    days_remaining: int


class MentorRequestsResponse(BaseModel):
    items: list[MentorRequestResponse]
    total: int


# ── Coordinator views ─────────────────────────────────────────────────────────


class InitiateMatchingRequest(BaseModel):
    enforce_window: bool = True


class BatchResultResponse(BaseModel):
    total_mentees: int
    pending: int
    needs_manual: int
    skipped: int
    errors: int


class SweepResultResponse(BaseModel):
    expired: int
    reassigned: int
    manual_required: int
    errors: int


class UnmatchedMenteeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    email: str | None
    company: str | None
    industry: str | None
    programme: str | None
    preferred_mentors: list[uuid.UUID]


class UnmatchedMenteesResponse(BaseModel):
    items: list[UnmatchedMenteeResponse]
    total: int


class MatchStatisticsResponse(BaseModel):
    total_matches: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    approved_mentees: int
    matched_mentees: int
    unmatched_mentees: int
    average_score: float | None


class CandidatePreviewResponse(BaseModel):
    rank: int
    mentor_id: uuid.UUID
    mentor_registration_id: uuid.UUID
    total: float
    breakdown: ScoreBreakdownResponse
    preferred_order: int | None
    accepted_count: int
    has_capacity: bool
    previously_attempted: bool
    detail: dict[str, Any]


class CandidatePreviewListResponse(BaseModel):
    mentee_registration_id: uuid.UUID
    items: list[CandidatePreviewResponse]
