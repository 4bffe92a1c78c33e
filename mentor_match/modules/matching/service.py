"""Match lifecycle: create, accept, reject, expire, manual match, and the
reassignment cascade that follows a failed preferred match.

Every operation owns its transactions through the injected session factory.
Reads that only validate a request run in their own short session; the write
that changes a match status runs in a separate transaction that re-checks the
status with a conditional update. Collaborator calls (notifications,
collaboration spaces) happen after commit and never undo a committed change.
"""

from __future__ import annotations

import enum
import math
import uuid
from collections import Counter
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, NoReturn, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mentor_match.core.config import Settings, settings as default_settings
from mentor_match.models.base import utcnow
from mentor_match.models.enums import (
    ACTIVE_MATCH_STATUSES,
    MatchStatus,
    MatchType,
)
from mentor_match.models.matching import MentorMenteeMatch
from mentor_match.models.mentoring import MenteeRegistration, MentoringProgram
from mentor_match.modules.matching.algorithm import (
    CompatibilityScore,
    MatchingAlgorithm,
    MenteeCandidate,
    MentorCandidate,
    round1,
)
from mentor_match.modules.matching.capacity import CapacityGuard
from mentor_match.modules.matching.exceptions import (
    ActiveMatchExists,
    InvalidPreferences,
    InvalidState,
    MatchingWindowClosed,
    NotAuthorized,
)
from mentor_match.modules.matching.notifier import (
    CollaborationSpaces,
    LoggingNotifier,
    MatchNotifier,
    NullCollaborationSpaces,
)
from mentor_match.modules.matching.ranker import CandidateRanker, RankedCandidate
from mentor_match.modules.matching.repository import (
    MatchingRepository,
    mentee_candidate,
    mentor_candidate,
)

logger = structlog.get_logger()

T = TypeVar("T")

PREFERENCE_COUNT = 3


@dataclass(frozen=True)
class MatchingConfig:
    max_mentees_per_mentor: int = 20
    auto_reject_days: int = 3
    batch_concurrency: int = 8
    sweep_interval_seconds: float = 300.0

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> MatchingConfig:
        return cls(
            max_mentees_per_mentor=settings.MATCHING_MAX_MENTEES_PER_MENTOR,
            auto_reject_days=settings.MATCHING_AUTO_REJECT_DAYS,
            batch_concurrency=settings.MATCHING_BATCH_CONCURRENCY,
            sweep_interval_seconds=settings.MATCHING_SWEEP_INTERVAL_SECONDS,
        )

    @property
    def auto_reject_reason(self) -> str:
        unit = "day" if self.auto_reject_days == 1 else "days"
        return f"No response received within {self.auto_reject_days} {unit}"


# ── Result types ──────────────────────────────────────────────────────────────


class CascadeOutcome(str, enum.Enum):
    REASSIGNED = "reassigned"
    MANUAL_REQUIRED = "manual_required"
    ALREADY_MATCHED = "already_matched"
    FAILED = "failed"


@dataclass(frozen=True)
class CascadeResult:
    outcome: CascadeOutcome
    match: MentorMenteeMatch | None = None


@dataclass(frozen=True)
class TransitionResult:
    """A match after a reject/expire transition, plus what the cascade did."""

    match: MentorMenteeMatch
    cascade: CascadeResult | None = None


@dataclass(frozen=True)
class MenteeStatus:
    matches: list[MentorMenteeMatch]
    active: MentorMenteeMatch | None


@dataclass(frozen=True)
class MentorRequest:
    match: MentorMenteeMatch
    days_remaining: int


@dataclass(frozen=True)
class CandidatePreview:
    rank: int
    mentor: MentorCandidate
    score: CompatibilityScore
    has_capacity: bool
    previously_attempted: bool


def validate_matching_window(program: MentoringProgram, now: datetime) -> None:
    """Matching may start once both registrations have closed and before it ends."""
    if now < program.registration_end_date_mentee:
        raise MatchingWindowClosed("Mentee registration period has not ended yet")
    if now < program.registration_end_date_mentor:
        raise MatchingWindowClosed("Mentor registration period has not ended yet")
    if now > program.matching_end_date:
        raise MatchingWindowClosed("Matching period has ended")


def days_remaining(deadline: datetime | None, now: datetime) -> int:
    if deadline is None:
        return 0
    return max(0, math.ceil((deadline - now) / timedelta(days=1)))


class MatchingService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: MatchingConfig | None = None,
        *,
        notifier: MatchNotifier | None = None,
        spaces: CollaborationSpaces | None = None,
        algorithm: MatchingAlgorithm | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.config = config or MatchingConfig()
        self.notifier = notifier or LoggingNotifier()
        self.spaces = spaces or NullCollaborationSpaces()
        self.algorithm = algorithm or MatchingAlgorithm()
        self.clock = clock

    # ── Helpers ───────────────────────────────────────────────────────────────

    def capacity_for(self, program: MentoringProgram) -> CapacityGuard:
        return CapacityGuard(program.max_mentees_per_mentor or self.config.max_mentees_per_mentor)

    async def _best_effort(self, event: str, call: Awaitable[T], **context: Any) -> T | None:
        try:
            return await call
        except Exception as exc:
            logger.warning(event, error=str(exc), **context)
            return None

    async def _rank(
        self,
        repo: MatchingRepository,
        program: MentoringProgram,
        mentee: MenteeCandidate,
        *,
        preferences: Sequence[uuid.UUID],
        excluded: set[uuid.UUID],
    ) -> RankedCandidate | None:
        mentors = await repo.get_approved_mentors(program.id)
        ranker = CandidateRanker(self.capacity_for(program), self.algorithm)
        return ranker.select(mentee, mentors, preferences=preferences, excluded=excluded)

    def _new_pending_match(
        self,
        program: MentoringProgram,
        mentee: MenteeCandidate,
        ranked: RankedCandidate,
        snapshot: list[str],
        now: datetime,
    ) -> MentorMenteeMatch:
        return MentorMenteeMatch(
            tenant_id=program.tenant_id,
            program_id=program.id,
            mentee_id=mentee.mentee_id,
            mentee_registration_id=mentee.registration_id,
            mentor_id=ranked.mentor.mentor_id,
            mentor_registration_id=ranked.mentor.registration_id,
            score=ranked.score.total,
            score_breakdown=ranked.score.breakdown(),
            match_type=ranked.match_type,
            preferred_choice_order=ranked.preferred_choice_order,
            status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            mentee_selected_mentors=list(snapshot),
            matched_at=now,
            auto_reject_at=now + timedelta(days=self.config.auto_reject_days),
        )

    async def _after_match_created(self, match: MentorMenteeMatch) -> None:
        logger.info(
            "match_created",
            match_id=str(match.id),
            program_id=str(match.program_id),
            mentee_id=str(match.mentee_id),
            mentor_id=str(match.mentor_id),
            match_type=match.match_type.value,
            score=match.score,
        )
        await self._best_effort(
            "notify_mentor_failed",
            self.notifier.notify_mentor_of_match(match.id),
            match_id=str(match.id),
        )

    async def _after_match_accepted(self, match: MentorMenteeMatch) -> None:
        space_id = await self._best_effort(
            "collaboration_space_failed",
            self.spaces.create_collaboration_space(match.id),
            match_id=str(match.id),
        )
        if space_id:
            try:
                async with self.session_factory.begin() as session:
                    await MatchingRepository(session).set_collaboration_space(match.id, space_id)
                match.collaboration_space_id = space_id
            except Exception as exc:
                logger.warning(
                    "collaboration_space_store_failed",
                    match_id=str(match.id),
                    space_id=space_id,
                    error=str(exc),
                )
        await self._best_effort(
            "notify_mentee_failed",
            self.notifier.notify_mentee_of_acceptance(match.id),
            match_id=str(match.id),
        )

    async def _notify_manual_matching_required(
        self, failed: MentorMenteeMatch, context: dict[str, str]
    ) -> None:
        await self._best_effort(
            "notify_coordinators_failed",
            self.notifier.notify_coordinators_manual_matching_required(
                failed.program_id, failed.mentee_registration_id
            ),
            **context,
        )

    async def _load_pending_for_mentor(
        self, match_id: uuid.UUID, actor_id: uuid.UUID, tenant_id: uuid.UUID | None
    ) -> tuple[MentorMenteeMatch, MentoringProgram]:
        async with self.session_factory() as session:
            repo = MatchingRepository(session)
            match = await repo.get_match(match_id, tenant_id)
            if match.mentor_id != actor_id:
                raise NotAuthorized("You are not authorized to respond to this match")
            if match.status != MatchStatus.PENDING_MENTOR_ACCEPTANCE:
                raise InvalidState(
                    match_id, match.status.value, MatchStatus.PENDING_MENTOR_ACCEPTANCE.value
                )
            program = await repo.get_program(match.program_id)
        return match, program

    async def _raise_lost_transition(
        self, repo: MatchingRepository, match_id: uuid.UUID
    ) -> NoReturn:
        current = await repo.get_match(match_id)
        raise InvalidState(
            match_id, current.status.value, MatchStatus.PENDING_MENTOR_ACCEPTANCE.value
        )

    # ── Create ────────────────────────────────────────────────────────────────

    async def create_match_request(
        self,
        program_id: uuid.UUID,
        mentee_registration_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> MentorMenteeMatch | None:
        """Rank mentors for one mentee and create a pending match.

        Mentors who already rejected this mentee, or let a request to them
        expire, are not offered again. Returns None when no mentor is
        eligible. Raises ActiveMatchExists if the mentee is already matched.
        """
        async with self.session_factory.begin() as session:
            repo = MatchingRepository(session)
            program = await repo.get_program(program_id, tenant_id)
            registration = await repo.get_mentee_registration(program_id, mentee_registration_id)
            mentee = mentee_candidate(registration)

            if await repo.get_active_match(program_id, mentee.mentee_id) is not None:
                raise ActiveMatchExists(program_id, mentee.mentee_id)

            excluded = await repo.attempted_mentor_ids(
                program_id,
                mentee.mentee_id,
                statuses=(MatchStatus.REJECTED, MatchStatus.AUTO_REJECTED),
            )
            ranked = await self._rank(
                repo,
                program,
                mentee,
                preferences=mentee.preferred_mentor_ids,
                excluded=excluded,
            )
            if ranked is None:
                logger.info(
                    "no_candidate_for_mentee",
                    program_id=str(program_id),
                    mentee_registration_id=str(mentee_registration_id),
                )
                return None

            match = await repo.add_match(
                self._new_pending_match(
                    program,
                    mentee,
                    ranked,
                    [str(m) for m in registration.preferred_mentors or []],
                    self.clock(),
                )
            )

        await self._after_match_created(match)
        return match

    # ── Mentor decisions ──────────────────────────────────────────────────────

    async def accept_match(
        self,
        match_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> MentorMenteeMatch:
        match, program = await self._load_pending_for_mentor(match_id, actor_id, tenant_id)
        capacity = self.capacity_for(program)

        async with self.session_factory.begin() as session:
            repo = MatchingRepository(session)
            await capacity.claim_slot(
                repo, match.program_id, match.mentor_id, match.mentor_registration_id
            )
            moved = await repo.transition(
                match_id,
                MatchStatus.PENDING_MENTOR_ACCEPTANCE,
                MatchStatus.ACCEPTED,
                mentor_response_at=self.clock(),
            )
            if not moved:
                await self._raise_lost_transition(repo, match_id)
            match = await repo.get_match(match_id)

        logger.info(
            "match_accepted",
            match_id=str(match_id),
            mentor_id=str(match.mentor_id),
            mentee_id=str(match.mentee_id),
        )
        await self._after_match_accepted(match)
        return match

    async def reject_match(
        self,
        match_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str | None = None,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> TransitionResult:
        await self._load_pending_for_mentor(match_id, actor_id, tenant_id)

        async with self.session_factory.begin() as session:
            repo = MatchingRepository(session)
            moved = await repo.transition(
                match_id,
                MatchStatus.PENDING_MENTOR_ACCEPTANCE,
                MatchStatus.REJECTED,
                mentor_response_at=self.clock(),
                rejection_reason=reason,
            )
            if not moved:
                await self._raise_lost_transition(repo, match_id)
            match = await repo.get_match(match_id)

        logger.info(
            "match_rejected",
            match_id=str(match_id),
            mentor_id=str(match.mentor_id),
            match_type=match.match_type.value,
        )
        cascade = None
        if match.match_type == MatchType.PREFERRED:
            cascade = await self.reassign(match)
        return TransitionResult(match=match, cascade=cascade)

    async def expire_match(self, match_id: uuid.UUID) -> TransitionResult | None:
        """Auto-reject one overdue pending match.

        Returns None when the match was no longer pending or not yet due, so
        a match is only ever expired (and cascaded) by one caller.
        """
        now = self.clock()
        async with self.session_factory.begin() as session:
            repo = MatchingRepository(session)
            moved = await repo.transition(
                match_id,
                MatchStatus.PENDING_MENTOR_ACCEPTANCE,
                MatchStatus.AUTO_REJECTED,
                expired_before=now,
                rejection_reason=self.config.auto_reject_reason,
            )
            if not moved:
                return None
            match = await repo.get_match(match_id)

        logger.info(
            "match_auto_rejected",
            match_id=str(match_id),
            mentor_id=str(match.mentor_id),
            match_type=match.match_type.value,
        )
        cascade = None
        if match.match_type == MatchType.PREFERRED:
            cascade = await self.reassign(match)
        return TransitionResult(match=match, cascade=cascade)

    # ── Reassignment cascade ──────────────────────────────────────────────────

    async def reassign(self, failed: MentorMenteeMatch) -> CascadeResult:
        """Offer the mentee the next best mentor after a failed match.

        Ranks with the preference snapshot stored on the failed match and
        excludes every mentor this mentee has already been sent to.

        Never raises: it runs after the failed match's transition has
        committed. Any error is logged, coordinators are asked to match the
        mentee by hand, and the outcome is FAILED.
        """
        context = {
            "program_id": str(failed.program_id),
            "mentee_registration_id": str(failed.mentee_registration_id),
            "failed_match_id": str(failed.id),
        }
        try:
            async with self.session_factory.begin() as session:
                repo = MatchingRepository(session)
                if await repo.get_active_match(failed.program_id, failed.mentee_id) is not None:
                    logger.info("cascade_skipped_already_matched", **context)
                    return CascadeResult(CascadeOutcome.ALREADY_MATCHED)

                program = await repo.get_program(failed.program_id)
                registration = await repo.get_mentee_registration(
                    failed.program_id, failed.mentee_registration_id
                )
                mentee = mentee_candidate(registration)
                snapshot = list(failed.mentee_selected_mentors or [])
                excluded = await repo.attempted_mentor_ids(failed.program_id, failed.mentee_id)

                ranked = await self._rank(
                    repo,
                    program,
                    mentee,
                    preferences=tuple(uuid.UUID(str(m)) for m in snapshot),
                    excluded=excluded,
                )
                match = None
                if ranked is not None:
                    match = await repo.add_match(
                        self._new_pending_match(program, mentee, ranked, snapshot, self.clock())
                    )
        except ActiveMatchExists:
            logger.info("cascade_skipped_already_matched", **context)
            return CascadeResult(CascadeOutcome.ALREADY_MATCHED)
        except Exception as exc:
            logger.error(
                "cascade_failed", error=str(exc), error_type=type(exc).__name__, **context
            )
            await self._notify_manual_matching_required(failed, context)
            return CascadeResult(CascadeOutcome.FAILED)

        if match is None:
            logger.info("cascade_manual_matching_required", **context)
            await self._notify_manual_matching_required(failed, context)
            return CascadeResult(CascadeOutcome.MANUAL_REQUIRED)

        logger.info("cascade_reassigned", new_match_id=str(match.id), **context)
        await self._after_match_created(match)
        return CascadeResult(CascadeOutcome.REASSIGNED, match)

    # ── Manual match ──────────────────────────────────────────────────────────

    async def manual_match(
        self,
        program_id: uuid.UUID,
        mentee_registration_id: uuid.UUID,
        mentor_id: uuid.UUID,
        coordinator_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> MentorMenteeMatch:
        """Coordinator assigns a mentor directly; the match starts accepted."""
        async with self.session_factory.begin() as session:
            repo = MatchingRepository(session)
            program = await repo.get_program(program_id, tenant_id)
            registration = await repo.get_mentee_registration(program_id, mentee_registration_id)
            mentor_reg = await repo.get_mentor_registration(program_id, mentor_id)
            mentee = mentee_candidate(registration)

            await self.capacity_for(program).claim_slot(repo, program_id, mentor_id, mentor_reg.id)
            if await repo.get_active_match(program_id, mentee.mentee_id) is not None:
                raise ActiveMatchExists(program_id, mentee.mentee_id)

            score = self.algorithm.calculate_compatibility(mentee, mentor_candidate(mentor_reg))
            now = self.clock()
            match = await repo.add_match(
                MentorMenteeMatch(
                    tenant_id=program.tenant_id,
                    program_id=program_id,
                    mentee_id=mentee.mentee_id,
                    mentee_registration_id=registration.id,
                    mentor_id=mentor_id,
                    mentor_registration_id=mentor_reg.id,
                    score=score.total,
                    score_breakdown=score.breakdown(),
                    match_type=MatchType.MANUAL,
                    preferred_choice_order=None,
                    status=MatchStatus.ACCEPTED,
                    mentee_selected_mentors=[str(m) for m in registration.preferred_mentors or []],
                    matched_at=now,
                    mentor_response_at=now,
                    auto_reject_at=None,
                    matched_by=coordinator_id,
                )
            )

        logger.info(
            "manual_match_created",
            match_id=str(match.id),
            program_id=str(program_id),
            mentor_id=str(mentor_id),
            coordinator_id=str(coordinator_id),
        )
        await self._after_match_accepted(match)
        return match

    # ── Preferences ───────────────────────────────────────────────────────────

    async def submit_preferences(
        self,
        program_id: uuid.UUID,
        mentee_registration_id: uuid.UUID,
        mentor_ids: Sequence[uuid.UUID],
        *,
        actor_id: uuid.UUID | None = None,
        tenant_id: uuid.UUID | None = None,
    ) -> MenteeRegistration:
        if len(mentor_ids) != PREFERENCE_COUNT:
            raise InvalidPreferences(f"Please select exactly {PREFERENCE_COUNT} mentors")
        if len(set(mentor_ids)) != PREFERENCE_COUNT:
            raise InvalidPreferences("Cannot select the same mentor multiple times")

        async with self.session_factory.begin() as session:
            repo = MatchingRepository(session)
            program = await repo.get_program(program_id, tenant_id)
            if self.clock() > program.registration_end_date_mentee:
                raise MatchingWindowClosed("Mentor selection period has ended")

            registration = await repo.get_mentee_registration(program_id, mentee_registration_id)
            if actor_id is not None and registration.user_id != actor_id:
                raise NotAuthorized("You can only submit preferences for your own registration")

            approved = {m.mentor_id for m in await repo.get_approved_mentors(program_id)}
            if any(m not in approved for m in mentor_ids):
                raise InvalidPreferences("All selected mentors must be approved for this program")

            registration.preferred_mentors = [str(m) for m in mentor_ids]

        logger.info(
            "mentee_preferences_submitted",
            program_id=str(program_id),
            mentee_registration_id=str(mentee_registration_id),
        )
        return registration

    # ── Queries ───────────────────────────────────────────────────────────────

    async def get_program(
        self, program_id: uuid.UUID, tenant_id: uuid.UUID | None = None
    ) -> MentoringProgram:
        async with self.session_factory() as session:
            return await MatchingRepository(session).get_program(program_id, tenant_id)

    async def get_match(
        self,
        match_id: uuid.UUID,
        tenant_id: uuid.UUID | None = None,
        *,
        viewer_id: uuid.UUID | None = None,
    ) -> MentorMenteeMatch:
        """Load one match. With viewer_id, only its mentor or mentee may see it."""
        async with self.session_factory() as session:
            match = await MatchingRepository(session).get_match(match_id, tenant_id)
        if viewer_id is not None and viewer_id not in (match.mentor_id, match.mentee_id):
            raise NotAuthorized("You can only view matches you are part of")
        return match

    async def get_mentee_status(
        self,
        program_id: uuid.UUID,
        mentee_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> MenteeStatus:
        async with self.session_factory() as session:
            repo = MatchingRepository(session)
            await repo.get_program(program_id, tenant_id)
            matches = await repo.list_matches(program_id=program_id, mentee_id=mentee_id)
        active = next((m for m in matches if m.is_active), None)
        return MenteeStatus(matches=matches, active=active)

    async def get_mentor_requests(
        self,
        mentor_id: uuid.UUID,
        *,
        program_id: uuid.UUID | None = None,
        tenant_id: uuid.UUID | None = None,
    ) -> list[MentorRequest]:
        async with self.session_factory() as session:
            matches = await MatchingRepository(session).list_matches(
                tenant_id=tenant_id,
                program_id=program_id,
                mentor_id=mentor_id,
                status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            )
        now = self.clock()
        return [MentorRequest(m, days_remaining(m.auto_reject_at, now)) for m in matches]

    async def get_my_mentees(
        self,
        program_id: uuid.UUID,
        mentor_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> list[MentorMenteeMatch]:
        async with self.session_factory() as session:
            return await MatchingRepository(session).list_matches(
                tenant_id=tenant_id,
                program_id=program_id,
                mentor_id=mentor_id,
                status=MatchStatus.ACCEPTED,
            )

    async def list_matches(
        self,
        program_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
        status: MatchStatus | None = None,
        mentor_id: uuid.UUID | None = None,
        mentee_id: uuid.UUID | None = None,
        match_type: MatchType | None = None,
    ) -> list[MentorMenteeMatch]:
        async with self.session_factory() as session:
            repo = MatchingRepository(session)
            await repo.get_program(program_id, tenant_id)
            return await repo.list_matches(
                program_id=program_id,
                status=status,
                mentor_id=mentor_id,
                mentee_id=mentee_id,
                match_type=match_type,
            )

    async def get_unmatched_mentees(
        self, program_id: uuid.UUID, *, tenant_id: uuid.UUID | None = None
    ) -> list[MenteeRegistration]:
        async with self.session_factory() as session:
            repo = MatchingRepository(session)
            await repo.get_program(program_id, tenant_id)
            return await repo.list_unmatched_mentees(program_id)

    async def get_statistics(
        self, program_id: uuid.UUID, *, tenant_id: uuid.UUID | None = None
    ) -> dict[str, Any]:
        async with self.session_factory() as session:
            repo = MatchingRepository(session)
            await repo.get_program(program_id, tenant_id)
            matches = await repo.list_matches(program_id=program_id)
            approved_mentees = await repo.count_approved_mentees(program_id)

        by_status = Counter(m.status.value for m in matches)
        by_type = Counter(m.match_type.value for m in matches)
        accepted = {m.mentee_registration_id for m in matches if m.status == MatchStatus.ACCEPTED}
        active = {m.mentee_registration_id for m in matches if m.status in ACTIVE_MATCH_STATUSES}

        return {
            "total_matches": len(matches),
            "by_status": {s.value: by_status.get(s.value, 0) for s in MatchStatus},
            "by_type": {t.value: by_type.get(t.value, 0) for t in MatchType},
            "approved_mentees": approved_mentees,
            "matched_mentees": len(accepted),
            "unmatched_mentees": max(0, approved_mentees - len(active)),
            "average_score": (
                round1(sum(m.score for m in matches) / len(matches)) if matches else None
            ),
        }

    async def preview_candidates(
        self,
        program_id: uuid.UUID,
        mentee_registration_id: uuid.UUID,
        *,
        tenant_id: uuid.UUID | None = None,
    ) -> list[CandidatePreview]:
        """Every approved mentor scored against the mentee, best first."""
        async with self.session_factory() as session:
            repo = MatchingRepository(session)
            program = await repo.get_program(program_id, tenant_id)
            mentee = mentee_candidate(
                await repo.get_mentee_registration(program_id, mentee_registration_id)
            )
            mentors = await repo.get_approved_mentors(program_id)
            attempted = await repo.attempted_mentor_ids(program_id, mentee.mentee_id)

        capacity = self.capacity_for(program)
        ranker = CandidateRanker(capacity, self.algorithm)
        return [
            CandidatePreview(
                rank=index,
                mentor=mentor,
                score=score,
                has_capacity=capacity.has_room(mentor.accepted_count),
                previously_attempted=mentor.mentor_id in attempted,
            )
            for index, (mentor, score) in enumerate(ranker.score_all(mentee, mentors), start=1)
        ]
