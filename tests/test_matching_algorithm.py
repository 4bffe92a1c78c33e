"""Tests for the pure compatibility scorer."""

import uuid

import pytest

from mentor_match.modules.matching.algorithm import (
    MatchingAlgorithm,
    MenteeCandidate,
    MentorCandidate,
    round1,
)

ALGO = MatchingAlgorithm()


def _mentee(**kwargs) -> MenteeCandidate:
    return MenteeCandidate(mentee_id=uuid.uuid4(), registration_id=uuid.uuid4(), **kwargs)


def _mentor(**kwargs) -> MentorCandidate:
    return MentorCandidate(mentor_id=uuid.uuid4(), registration_id=uuid.uuid4(), **kwargs)


class TestIndustryScore:
    def test_exact_industry_ignores_case_and_whitespace(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Technology"), _mentor(industry="  technology ")
        )
        assert score.industry == 100

    def test_exact_company_when_industries_differ(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Retail", company="Acme Corp"),
            _mentor(industry="Banking", company="ACME CORP"),
        )
        assert score.industry == 100
        assert score.detail["industry"]["result"] == "exact_company"

    def test_related_bucket(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Software"), _mentor(industry="AI Research")
        )
        assert score.industry == 60
        assert score.detail["industry"]["bucket"] == "technology"

    def test_bucket_name_counts_as_a_keyword(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Finance"), _mentor(industry="Investment Banking")
        )
        assert score.industry == 60

    def test_bucket_keywords_are_whole_words(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Fintech"), _mentor(industry="Software")
        )
        assert score.industry == 0

    def test_shared_long_token(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Renewable Energy"), _mentor(industry="Energy Trading")
        )
        assert score.industry == 40

    def test_no_overlap(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Retail"), _mentor(industry="Agriculture")
        )
        assert score.industry == 0

    def test_missing_everything_scores_zero(self) -> None:
        assert ALGO.calculate_compatibility(_mentee(), _mentor()).industry == 0


class TestProgrammeScore:
    @pytest.mark.parametrize(
        ("mentee", "mentor", "expected"),
        [
            ("Computer Science", "computer science.", 100),
            ("Computer Science", "Computer Science and Engineering", 80),
            ("Master of Business Administration", "Business Administration Executive", 60),
            ("Data Science", "Political Science", 30),
            ("Law", "Medicine", 0),
            (None, "Medicine", 0),
            ("Law", "", 0),
        ],
    )
    def test_programme_rules(self, mentee, mentor, expected) -> None:
        score = ALGO.calculate_compatibility(_mentee(programme=mentee), _mentor(programme=mentor))
        assert score.programme == expected


class TestSkillsScore:
    def test_partial_overlap_averages_both_coverages(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(interests=("Leadership", "Python")),
            _mentor(areas=("python programming", "Finance")),
        )
        assert score.skills == 50.0

    def test_uneven_lists(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(interests=("AI",)),
            _mentor(areas=("ai", "machine learning", "data")),
        )
        assert score.skills == 66.7

    def test_clamped_to_100(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(interests=("data", "data science")),
            _mentor(areas=("Data",)),
        )
        assert score.skills == 100

    def test_empty_side_scores_zero(self) -> None:
        score = ALGO.calculate_compatibility(_mentee(interests=("data",)), _mentor())
        assert score.skills == 0


class TestPreferenceScore:
    def test_rank_scores(self) -> None:
        mentors = [_mentor() for _ in range(4)]
        prefs = tuple(m.mentor_id for m in mentors[:3])
        mentee = _mentee(preferred_mentor_ids=prefs)

        scores = [ALGO.calculate_compatibility(mentee, m) for m in mentors]
        assert [s.preference for s in scores] == [100, 80, 60, 0]
        assert [s.preferred_order for s in scores] == [1, 2, 3, None]
        assert [s.is_preferred for s in scores] == [True, True, True, False]

    def test_explicit_preferences_override_candidate(self) -> None:
        mentor = _mentor()
        mentee = _mentee(preferred_mentor_ids=(mentor.mentor_id,))
        other = (uuid.uuid4(), mentor.mentor_id, uuid.uuid4())
        score = ALGO.calculate_compatibility(mentee, mentor, other)
        assert score.preference == 80
        assert score.preferred_order == 2


class TestTotal:
    def test_weighted_sum(self) -> None:
        mentor = _mentor(
            industry="Technology",
            programme="Computer Science",
            areas=("python programming", "Finance"),
        )
        mentee = _mentee(
            industry="technology",
            programme="Computer Science",
            interests=("Leadership", "Python"),
            preferred_mentor_ids=(mentor.mentor_id,),
        )
        score = ALGO.calculate_compatibility(mentee, mentor)
        # 100*0.3 + 100*0.2 + 50*0.1 + 100*0.4
        assert score.total == 95.0
        assert score.breakdown() == {
            "industry": 100,
            "programme": 100,
            "skills": 50.0,
            "preference": 100,
        }

    def test_total_rounds_half_up_from_unrounded_components(self) -> None:
        score = ALGO.calculate_compatibility(
            _mentee(industry="Software", programme="Data Science", interests=("AI",)),
            _mentor(
                industry="AI Research",
                programme="Political Science",
                areas=("ai", "machine learning", "data"),
            ),
        )
        # 60*0.3 + 30*0.2 + 66.666..*0.1 = 30.666..
        assert score.total == 30.7

    @pytest.mark.parametrize(
        ("mentee", "mentor"),
        [
            (dict(industry="Finance", programme="Economics"), dict(industry="Banking")),
            (dict(company="Globex", interests=("Sales",)), dict(company="globex", areas=("sales",))),
            (dict(), dict()),
            (
                dict(industry="Healthcare", programme="Medicine", interests=("research", "ethics")),
                dict(industry="Biotech", programme="Medicine", areas=("clinical research",)),
            ),
        ],
    )
    def test_components_and_total_within_bounds(self, mentee, mentor) -> None:
        score = ALGO.calculate_compatibility(_mentee(**mentee), _mentor(**mentor))
        for value in (score.industry, score.programme, score.skills, score.preference, score.total):
            assert 0 <= value <= 100
        weighted = (
            score.industry * 0.3 + score.programme * 0.2 + score.skills * 0.1 + score.preference * 0.4
        )
        assert abs(score.total - weighted) <= 0.1

    def test_scoring_is_deterministic(self) -> None:
        mentee = _mentee(industry="Education", programme="History", interests=("teaching",))
        mentor = _mentor(industry="Academic", programme="History", areas=("Teaching",))
        assert ALGO.calculate_compatibility(mentee, mentor) == ALGO.calculate_compatibility(
            mentee, mentor
        )


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.05, 0.1), (0.15, 0.2), (66.65, 66.7), (30.666, 30.7), (12.0, 12.0)],
)
def test_round1_is_half_up(value, expected) -> None:
    assert round1(value) == expected
