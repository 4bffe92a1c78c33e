"""Candidate ranking: choose one mentor for one mentee.

Pure over its inputs: the caller supplies the approved mentors (with their current
accepted counts) and the exclusion set; the ranker never reads the store.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection, Sequence
from dataclasses import dataclass

import structlog

from mentor_match.models.enums import MatchType
from mentor_match.modules.matching.algorithm import (
    CompatibilityScore,
    MatchingAlgorithm,
    MenteeCandidate,
    MentorCandidate,
)
from mentor_match.modules.matching.capacity import CapacityGuard

logger = structlog.get_logger()


@dataclass(frozen=True)
class RankedCandidate:
    mentor: MentorCandidate
    score: CompatibilityScore
    match_type: MatchType

    @property
    def preferred_choice_order(self) -> int | None:
        return self.score.preferred_order if self.match_type == MatchType.PREFERRED else None


class CandidateRanker:
    def __init__(
        self,
        capacity: CapacityGuard,
        algorithm: MatchingAlgorithm | None = None,
    ) -> None:
        self.capacity = capacity
        self.algorithm = algorithm or MatchingAlgorithm()

    def score_all(
        self,
        mentee: MenteeCandidate,
        mentors: Sequence[MentorCandidate],
        preferences: Sequence[uuid.UUID] | None = None,
    ) -> list[tuple[MentorCandidate, CompatibilityScore]]:
        """Score every mentor and return them sorted by total, highest first.

        The sort is stable, so equal totals keep the input order of ``mentors``.
        A mentor whose scoring fails is logged and left out.
        """
        if preferences is None:
            preferences = mentee.preferred_mentor_ids

        scored: list[tuple[MentorCandidate, CompatibilityScore]] = []
        for mentor in mentors:
            try:
                scored.append(
                    (mentor, self.algorithm.calculate_compatibility(mentee, mentor, preferences))
                )
            except Exception as exc:
                logger.warning(
                    "mentor_scoring_failed",
                    mentee_registration_id=str(mentee.registration_id),
                    mentor_id=str(mentor.mentor_id),
                    error=str(exc),
                )
        scored.sort(key=lambda item: item[1].total, reverse=True)
        return scored

    def select(
        self,
        mentee: MenteeCandidate,
        mentors: Sequence[MentorCandidate],
        *,
        preferences: Sequence[uuid.UUID] | None = None,
        excluded: Collection[uuid.UUID] = (),
    ) -> RankedCandidate | None:
        """Pick the best eligible mentor, or None when nobody is left.

        Preferred mentors win in the mentee's own order; otherwise the highest
        total wins, ties going to the earlier mentor in ``mentors``.
        """
        if preferences is None:
            preferences = mentee.preferred_mentor_ids

        pool = [
            (mentor, score)
            for mentor, score in self.score_all(mentee, mentors, preferences)
            if mentor.mentor_id not in excluded
            and self.capacity.has_room(mentor.accepted_count)
        ]
        if not pool:
            return None

        by_mentor = {mentor.mentor_id: (mentor, score) for mentor, score in pool}
        for preferred_id in preferences:
            if preferred_id in by_mentor:
                mentor, score = by_mentor[preferred_id]
                return RankedCandidate(mentor=mentor, score=score, match_type=MatchType.PREFERRED)

        mentor, score = pool[0]
        return RankedCandidate(mentor=mentor, score=score, match_type=MatchType.ALGORITHM)
