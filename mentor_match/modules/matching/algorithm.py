"""Matching Algorithm: pure deterministic compatibility scoring.

All calculations are reproducible Python arithmetic over immutable candidate
projections; nothing here touches the database. The score breakdown is stored on
MentorMenteeMatch.score_breakdown for auditability.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence

# ── Weights ───────────────────────────────────────────────────────────────────

INDUSTRY_WEIGHT = Decimal("0.30")
PROGRAMME_WEIGHT = Decimal("0.20")
SKILLS_WEIGHT = Decimal("0.10")
PREFERENCE_WEIGHT = Decimal("0.40")

# 1st, 2nd, 3rd choice
PREFERENCE_SCORES = (100, 80, 60)

# ── Related industry buckets ──────────────────────────────────────────────────

_RELATED_INDUSTRIES: dict[str, frozenset[str]] = {
    "technology":  frozenset({"technology", "software", "it", "tech", "computing", "ai", "data"}),
    "finance":     frozenset({"finance", "banking", "investment", "accounting", "consulting"}),
    "healthcare":  frozenset({"healthcare", "medical", "pharmaceutical", "biotech"}),
    "education":   frozenset({"education", "academic", "teaching", "research"}),
    "engineering": frozenset({"engineering", "manufacturing", "construction", "automotive"}),
}

_WORD_SPLIT = re.compile(r"[^a-z0-9]+")
_PUNCTUATION = re.compile(r"[^a-z0-9\s]")


def _normalize(value: str | None) -> str:
    return (value or "").lower().strip()


def _tokens(value: str) -> set[str]:
    return {t for t in _WORD_SPLIT.split(value) if t}


def round1(value: float | Decimal) -> float:
    """Round half-up to one decimal place."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


# ── Candidate projections ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class MenteeCandidate:
    mentee_id: uuid.UUID
    registration_id: uuid.UUID
    preferred_mentor_ids: tuple[uuid.UUID, ...] = ()
    company: str | None = None
    industry: str | None = None
    programme: str | None = None
    interests: tuple[str, ...] = ()


@dataclass(frozen=True)
class MentorCandidate:
    mentor_id: uuid.UUID
    registration_id: uuid.UUID
    company: str | None = None
    industry: str | None = None
    programme: str | None = None
    areas: tuple[str, ...] = ()
    accepted_count: int = 0


@dataclass(frozen=True)
class CompatibilityScore:
    industry: float
    programme: float
    skills: float
    preference: float
    total: float
    preferred_order: int | None = None
    detail: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_preferred(self) -> bool:
        return self.preferred_order is not None

    def breakdown(self) -> dict[str, float]:
        return {
            "industry": self.industry,
            "programme": self.programme,
            "skills": self.skills,
            "preference": self.preference,
        }


class MatchingAlgorithm:
    """
    Deterministic compatibility scoring between a mentee and a mentor.

    Total: 0-100, weighted across 4 sub-scores that are each 0-100.
    """

    def calculate_compatibility(
        self,
        mentee: MenteeCandidate,
        mentor: MentorCandidate,
        preferences: Sequence[uuid.UUID] | None = None,
    ) -> CompatibilityScore:
        if preferences is None:
            preferences = mentee.preferred_mentor_ids

        industry, industry_detail = self._score_industry(mentee, mentor)
        programme, programme_detail = self._score_programme(mentee.programme, mentor.programme)
        skills, skills_detail = self._score_skills(mentee.interests, mentor.areas)
        preference, order = self._score_preference(mentor.mentor_id, preferences)

        total = (
            Decimal(str(industry)) * INDUSTRY_WEIGHT
            + Decimal(str(programme)) * PROGRAMME_WEIGHT
            + Decimal(str(skills)) * SKILLS_WEIGHT
            + Decimal(preference) * PREFERENCE_WEIGHT
        )

        return CompatibilityScore(
            industry=round1(industry),
            programme=round1(programme),
            skills=round1(skills),
            preference=round1(preference),
            total=round1(total),
            preferred_order=order,
            detail={
                "industry": industry_detail,
                "programme": programme_detail,
                "skills": skills_detail,
                "preference": {"order": order},
            },
        )

    # ── Sub-scorers ────────────────────────────────────────────────────────

    def _score_industry(
        self, mentee: MenteeCandidate, mentor: MentorCandidate
    ) -> tuple[float, dict]:
        mentee_ind, mentor_ind = _normalize(mentee.industry), _normalize(mentor.industry)
        mentee_comp, mentor_comp = _normalize(mentee.company), _normalize(mentor.company)

        if mentee_ind and mentee_ind == mentor_ind:
            return 100, {"result": "exact_industry"}
        if mentee_comp and mentee_comp == mentor_comp:
            return 100, {"result": "exact_company"}

        mentee_words = _tokens(mentee_ind) | _tokens(mentee_comp)
        mentor_words = _tokens(mentor_ind) | _tokens(mentor_comp)
        # keywords match whole words, so "fintech" is not in the technology bucket
        for bucket, keywords in _RELATED_INDUSTRIES.items():
            if mentee_words & keywords and mentor_words & keywords:
                return 60, {"result": "related_industry", "bucket": bucket}

        mentee_primary = mentee_ind or mentee_comp
        mentor_primary = mentor_ind or mentor_comp
        if mentee_primary and mentor_primary:
            common = {
                w for w in _tokens(mentee_primary) & _tokens(mentor_primary) if len(w) > 3
            }
            if common:
                return 40, {"result": "shared_term", "terms": sorted(common)}

        return 0, {"result": "no_match"}

    def _score_programme(
        self, mentee_programme: str | None, mentor_programme: str | None
    ) -> tuple[float, dict]:
        mentee_prog = _PUNCTUATION.sub("", _normalize(mentee_programme))
        mentor_prog = _PUNCTUATION.sub("", _normalize(mentor_programme))

        if not mentee_prog or not mentor_prog:
            return 0, {"result": "missing"}
        if mentee_prog == mentor_prog:
            return 100, {"result": "exact_match"}
        if mentee_prog in mentor_prog or mentor_prog in mentee_prog:
            return 80, {"result": "contains"}

        common = {w for w in mentee_prog.split() if len(w) > 3} & {
            w for w in mentor_prog.split() if len(w) > 3
        }
        if len(common) >= 2:
            return 60, {"result": "shared_terms", "terms": sorted(common)}
        if len(common) == 1:
            return 30, {"result": "shared_term", "terms": sorted(common)}
        return 0, {"result": "no_match"}

    def _score_skills(
        self, mentee_areas: Sequence[str], mentor_areas: Sequence[str]
    ) -> tuple[float, dict]:
        mentee_norm = [_normalize(a) for a in mentee_areas if _normalize(a)]
        mentor_norm = [_normalize(a) for a in mentor_areas if _normalize(a)]
        if not mentee_norm or not mentor_norm:
            return 0, {"result": "missing"}

        matches = 0
        for mentee_area in mentee_norm:
            # each mentee area counts at most once
            if any(
                mentee_area == m or mentee_area in m or m in mentee_area
                for m in mentor_norm
            ):
                matches += 1

        mentee_coverage = matches / len(mentee_norm)
        mentor_coverage = matches / len(mentor_norm)
        score = (mentee_coverage + mentor_coverage) / 2 * 100
        return min(score, 100.0), {"result": "overlap", "matches": matches}

    def _score_preference(
        self, mentor_id: uuid.UUID, preferences: Sequence[uuid.UUID]
    ) -> tuple[int, int | None]:
        for index, preferred_id in enumerate(preferences[: len(PREFERENCE_SCORES)]):
            if preferred_id == mentor_id:
                return PREFERENCE_SCORES[index], index + 1
        return 0, None
