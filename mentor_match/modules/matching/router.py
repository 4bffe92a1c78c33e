"""Matching API router: mentee, mentor and coordinator sides."""

import uuid

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mentor_match.auth.dependencies import get_current_user, require_coordinator
from mentor_match.core.database import get_session_factory
from mentor_match.models.enums import MatchStatus, MatchType, UserRole
from mentor_match.models.matching import MentorMenteeMatch
from mentor_match.modules.matching import batch
from mentor_match.modules.matching.notifier import build_collaboration_spaces, build_notifier
from mentor_match.modules.matching.schemas import (
    BatchResultResponse,
    CandidatePreviewListResponse,
    CandidatePreviewResponse,
    CascadeResponse,
    InitiateMatchingRequest,
    ManualMatchRequest,
    MatchListResponse,
    MatchResponse,
    MatchStatisticsResponse,
    MenteeStatusResponse,
    MentorRequestResponse,
    MentorRequestsResponse,
    PreferencesResponse,
    RejectMatchRequest,
    RejectMatchResponse,
    SubmitPreferencesRequest,
    SweepResultResponse,
    UnmatchedMenteeResponse,
    UnmatchedMenteesResponse,
)
from mentor_match.modules.matching.service import MatchingConfig, MatchingService
from mentor_match.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/matching", tags=["matching"])

_COORDINATOR_ROLES = (UserRole.ADMIN, UserRole.COORDINATOR)


def get_matching_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> MatchingService:
    return MatchingService(
        session_factory,
        MatchingConfig.from_settings(),
        notifier=build_notifier(),
        spaces=build_collaboration_spaces(),
    )


def _match_response(match: MentorMenteeMatch) -> MatchResponse:
    return MatchResponse.model_validate(match)


# ── Mentee side ───────────────────────────────────────────────────────────────


@router.post("/programs/{program_id}/preferences", response_model=PreferencesResponse)
async def submit_preferences(
    program_id: uuid.UUID,
    body: SubmitPreferencesRequest,
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    """Store the mentee's three ranked mentor choices."""
    registration = await svc.submit_preferences(
        program_id,
        body.mentee_registration_id,
        body.preferred_mentor_ids,
        actor_id=current_user.user_id,
        tenant_id=current_user.tenant_id,
    )
    return PreferencesResponse(
        mentee_registration_id=registration.id,
        preferred_mentor_ids=registration.preferred_mentors,
    )


@router.get("/programs/{program_id}/status", response_model=MenteeStatusResponse)
async def get_mentee_status(
    program_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    """The current user's matches in a program, newest first."""
    result = await svc.get_mentee_status(
        program_id, current_user.user_id, tenant_id=current_user.tenant_id
    )
    return MenteeStatusResponse(
        program_id=program_id,
        mentee_id=current_user.user_id,
        active_match=_match_response(result.active) if result.active else None,
        matches=[_match_response(m) for m in result.matches],
    )


# ── Mentor side ───────────────────────────────────────────────────────────────


@router.get("/requests", response_model=MentorRequestsResponse)
async def get_mentor_requests(
    program_id: uuid.UUID | None = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    """Pending match requests addressed to the current user."""
    requests = await svc.get_mentor_requests(
        current_user.user_id, program_id=program_id, tenant_id=current_user.tenant_id
    )
    items = [
        MentorRequestResponse(match=_match_response(r.match), days_remaining=r.days_remaining)
        for r in requests
    ]
    return MentorRequestsResponse(items=items, total=len(items))


@router.get("/programs/{program_id}/my-mentees", response_model=MatchListResponse)
async def get_my_mentees(
    program_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    matches = await svc.get_my_mentees(
        program_id, current_user.user_id, tenant_id=current_user.tenant_id
    )
    return MatchListResponse(items=[_match_response(m) for m in matches], total=len(matches))


# ── Coordinator side (fixed paths before /{match_id}) ─────────────────────────


@router.post("/programs/{program_id}/initiate", response_model=BatchResultResponse)
async def initiate_matching(
    program_id: uuid.UUID,
    body: InitiateMatchingRequest | None = None,
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    """Run the matching batch for every unmatched approved mentee."""
    enforce_window = body.enforce_window if body else True
    result = await batch.initiate_matching(
        svc,
        program_id,
        enforce_window=enforce_window,
        tenant_id=current_user.tenant_id,
    )
    logger.info(
        "matching_initiated",
        program_id=str(program_id),
        coordinator_id=str(current_user.user_id),
    )
    return result.to_dict()


@router.post("/sweep", response_model=SweepResultResponse)
async def sweep_expired_matches(
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    """Expire overdue requests now instead of waiting for the scheduled sweep."""
    result = await batch.sweep_expired_matches(svc)
    return result.to_dict()


@router.post(
    "/programs/{program_id}/manual",
    response_model=MatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def manual_match(
    program_id: uuid.UUID,
    body: ManualMatchRequest,
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    """Assign a mentor directly; the match is accepted immediately."""
    match = await svc.manual_match(
        program_id,
        body.mentee_registration_id,
        body.mentor_id,
        current_user.user_id,
        tenant_id=current_user.tenant_id,
    )
    return _match_response(match)


@router.get("/programs/{program_id}/matches", response_model=MatchListResponse)
async def list_matches(
    program_id: uuid.UUID,
    status_filter: MatchStatus | None = Query(None, alias="status"),
    match_type: MatchType | None = Query(None),
    mentor_id: uuid.UUID | None = Query(None),
    mentee_id: uuid.UUID | None = Query(None),
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    matches = await svc.list_matches(
        program_id,
        tenant_id=current_user.tenant_id,
        status=status_filter,
        mentor_id=mentor_id,
        mentee_id=mentee_id,
        match_type=match_type,
    )
    return MatchListResponse(items=[_match_response(m) for m in matches], total=len(matches))


@router.get("/programs/{program_id}/unmatched", response_model=UnmatchedMenteesResponse)
async def get_unmatched_mentees(
    program_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    """Approved mentees with no pending or accepted match."""
    registrations = await svc.get_unmatched_mentees(
        program_id, tenant_id=current_user.tenant_id
    )
    items = [UnmatchedMenteeResponse.model_validate(r) for r in registrations]
    return UnmatchedMenteesResponse(items=items, total=len(items))


@router.get("/programs/{program_id}/statistics", response_model=MatchStatisticsResponse)
async def get_statistics(
    program_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    return await svc.get_statistics(program_id, tenant_id=current_user.tenant_id)


@router.get(
    "/programs/{program_id}/mentees/{mentee_registration_id}/candidates",
    response_model=CandidatePreviewListResponse,
)
async def preview_candidates(
    program_id: uuid.UUID,
    mentee_registration_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_coordinator),
    svc: MatchingService = Depends(get_matching_service),
):
    """Every approved mentor scored against the mentee, for manual matching."""
    previews = await svc.preview_candidates(
        program_id, mentee_registration_id, tenant_id=current_user.tenant_id
    )
    return CandidatePreviewListResponse(
        mentee_registration_id=mentee_registration_id,
        items=[
            CandidatePreviewResponse(
                rank=p.rank,
                mentor_id=p.mentor.mentor_id,
                mentor_registration_id=p.mentor.registration_id,
                total=p.score.total,
                breakdown=p.score.breakdown(),
                preferred_order=p.score.preferred_order,
                accepted_count=p.mentor.accepted_count,
                has_capacity=p.has_capacity,
                previously_attempted=p.previously_attempted,
                detail=p.score.detail,
            )
            for p in previews
        ],
    )


# ── Match actions (parameterised /{match_id}) ─────────────────────────────────


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    """One match, visible to its mentor, its mentee and coordinators."""
    viewer_id = None if current_user.role in _COORDINATOR_ROLES else current_user.user_id
    match = await svc.get_match(match_id, tenant_id=current_user.tenant_id, viewer_id=viewer_id)
    return _match_response(match)


@router.post("/{match_id}/accept", response_model=MatchResponse)
async def accept_match(
    match_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    """Assigned mentor accepts a pending request."""
    match = await svc.accept_match(
        match_id, current_user.user_id, tenant_id=current_user.tenant_id
    )
    return _match_response(match)


@router.post("/{match_id}/reject", response_model=RejectMatchResponse)
async def reject_match(
    match_id: uuid.UUID,
    body: RejectMatchRequest | None = None,
    current_user: CurrentUser = Depends(get_current_user),
    svc: MatchingService = Depends(get_matching_service),
):
    """Assigned mentor declines; a preferred match cascades to the next choice."""
    result = await svc.reject_match(
        match_id,
        current_user.user_id,
        body.reason if body else None,
        tenant_id=current_user.tenant_id,
    )

    cascade = None
    if result.cascade is not None:
        cascade = CascadeResponse(
            outcome=result.cascade.outcome.value,
            new_match=_match_response(result.cascade.match) if result.cascade.match else None,
        )
    return RejectMatchResponse(match=_match_response(result.match), cascade=cascade)
