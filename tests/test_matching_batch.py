"""Tests for program-wide batch matching and the expiry sweep."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from mentor_match.models import MatchStatus, MatchType, RegistrationStatus
from mentor_match.modules.matching.batch import (
    BatchResult,
    initiate_matching,
    sweep_expired_matches,
)
from mentor_match.modules.matching.exceptions import MatchingWindowClosed

from tests.conftest import NOW

pytestmark = pytest.mark.anyio


@pytest.fixture
async def program(seed):
    return await seed.program()


class TestInitiateMatching:
    async def test_counts_each_outcome(self, service, seed, program) -> None:
        a = await seed.mentor(program, industry="Technology")
        b = await seed.mentor(program, industry="Finance")
        await seed.mentor(program, industry="Healthcare")
        await seed.mentee(program, preferences=[b, a])
        await seed.mentee(program, industry="Technology")
        await seed.mentee(program, industry="Banking")
        already = await seed.mentee(program)
        await seed.match(program, already, a, status=MatchStatus.ACCEPTED)
        await seed.mentee(program, status=RegistrationStatus.SUBMITTED)

        result = await initiate_matching(service, program.id)

        assert result == BatchResult(total_mentees=4, pending=3, needs_manual=0, skipped=1)
        pending = await service.list_matches(
            program.id, status=MatchStatus.PENDING_MENTOR_ACCEPTANCE
        )
        assert len(pending) == 3
        assert {m.match_type for m in pending} == {MatchType.PREFERRED, MatchType.ALGORITHM}

    async def test_rerun_skips_everyone_already_matched(self, service, seed, program) -> None:
        await seed.mentor(program)
        for _ in range(3):
            await seed.mentee(program)

        first = await initiate_matching(service, program.id)
        second = await initiate_matching(service, program.id)

        assert first.pending == 3
        assert second.to_dict() == {
            "total_mentees": 3,
            "pending": 0,
            "needs_manual": 0,
            "skipped": 3,
            "errors": 0,
        }

    async def test_no_mentors_means_manual_matching(
        self, service, seed, program, notifier
    ) -> None:
        await seed.mentee(program)
        await seed.mentee(program)

        result = await initiate_matching(service, program.id)

        assert result.needs_manual == 2
        assert result.pending == 0
        assert notifier.manual_required == []

    async def test_mentor_who_rejected_is_not_offered_again(
        self, service, seed, program
    ) -> None:
        first_choice = await seed.mentor(program, industry="Technology")
        fallback = await seed.mentor(program, industry="Finance")
        mentee = await seed.mentee(program, industry="Technology")
        await seed.match(program, mentee, first_choice, status=MatchStatus.REJECTED)

        result = await initiate_matching(service, program.id)

        assert result.pending == 1
        status = await service.get_mentee_status(program.id, mentee.user_id)
        assert status.active.mentor_id == fallback.user_id

    async def test_one_failure_does_not_stop_the_batch(
        self, service, seed, program, monkeypatch
    ) -> None:
        await seed.mentor(program)
        broken = await seed.mentee(program)
        await seed.mentee(program)
        original = service.create_match_request

        async def _flaky(program_id, registration_id, **kwargs):
            if registration_id == broken.id:
                raise RuntimeError("boom")
            return await original(program_id, registration_id, **kwargs)

        monkeypatch.setattr(service, "create_match_request", _flaky)

        result = await initiate_matching(service, program.id)

        assert result.errors == 1
        assert result.pending == 1

    async def test_window_not_open_yet(self, service, seed) -> None:
        early = await seed.program(registration_end_date_mentor=NOW + timedelta(days=1))
        with pytest.raises(MatchingWindowClosed):
            await initiate_matching(service, early.id)

    async def test_window_already_closed(self, service, seed) -> None:
        late = await seed.program(matching_end_date=NOW - timedelta(days=1))
        with pytest.raises(MatchingWindowClosed):
            await initiate_matching(service, late.id)

    async def test_window_check_can_be_skipped(self, service, seed) -> None:
        late = await seed.program(matching_end_date=NOW - timedelta(days=1))
        await seed.mentor(late)
        await seed.mentee(late)

        result = await initiate_matching(service, late.id, enforce_window=False)
        assert result.pending == 1


class TestSweepExpiredMatches:
    @pytest.fixture
    async def overdue(self, seed, program):
        """One overdue preferred match, one overdue algorithm match, one not yet due."""
        a = await seed.mentor(program, full_name="A")
        b = await seed.mentor(program, full_name="B")
        c = await seed.mentor(program, full_name="C")
        chooser = await seed.mentee(program, preferences=[a, b, c])
        plain = await seed.mentee(program)
        waiting = await seed.mentee(program)
        await seed.match(
            program,
            chooser,
            a,
            status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            match_type=MatchType.PREFERRED,
            preferred_choice_order=1,
            auto_reject_at=NOW - timedelta(hours=2),
        )
        await seed.match(
            program,
            plain,
            b,
            status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            auto_reject_at=NOW - timedelta(hours=1),
        )
        await seed.match(
            program,
            waiting,
            c,
            status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            auto_reject_at=NOW + timedelta(days=1),
        )
        return {"mentors": (a, b, c), "chooser": chooser, "plain": plain}

    async def test_expires_and_cascades(self, service, program, overdue) -> None:
        result = await sweep_expired_matches(service)

        assert result.to_dict() == {
            "expired": 2,
            "reassigned": 1,
            "manual_required": 0,
            "errors": 0,
        }
        auto = await service.list_matches(program.id, status=MatchStatus.AUTO_REJECTED)
        assert len(auto) == 2
        assert {m.rejection_reason for m in auto} == {"No response received within 3 days"}

        chooser = await service.get_mentee_status(program.id, overdue["chooser"].user_id)
        assert chooser.active.mentor_id == overdue["mentors"][1].user_id
        assert chooser.active.preferred_choice_order == 2

        plain = await service.get_mentee_status(program.id, overdue["plain"].user_id)
        assert plain.active is None

    async def test_second_sweep_finds_nothing(self, service, overdue) -> None:
        await sweep_expired_matches(service)
        again = await sweep_expired_matches(service)
        assert again.expired == 0

    async def test_concurrent_sweeps_expire_each_match_once(
        self, service, program, overdue, notifier
    ) -> None:
        results = await asyncio.gather(
            sweep_expired_matches(service), sweep_expired_matches(service)
        )

        assert sum(r.expired for r in results) == 2
        assert sum(r.reassigned for r in results) == 1
        assert sum(r.errors for r in results) == 0
        pending = await service.list_matches(
            program.id, status=MatchStatus.PENDING_MENTOR_ACCEPTANCE
        )
        assert len(pending) == 2
        assert len(notifier.mentor_notified) == 1

    async def test_exhausted_cascade_asks_for_manual_matching(
        self, service, seed, program, notifier
    ) -> None:
        only = await seed.mentor(program)
        mentee = await seed.mentee(program, preferences=[only])
        await seed.match(
            program,
            mentee,
            only,
            status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            match_type=MatchType.PREFERRED,
            preferred_choice_order=1,
            auto_reject_at=NOW - timedelta(minutes=5),
        )

        result = await sweep_expired_matches(service)

        assert result.expired == 1
        assert result.manual_required == 1
        assert notifier.manual_required == [(program.id, mentee.id)]

    async def test_withdrawn_mentee_is_still_expired(
        self, service, seed, program, notifier
    ) -> None:
        a = await seed.mentor(program)
        b = await seed.mentor(program)
        withdrawn = await seed.mentee(
            program, preferences=[a, b], status=RegistrationStatus.REJECTED
        )
        overdue = await seed.match(
            program,
            withdrawn,
            a,
            status=MatchStatus.PENDING_MENTOR_ACCEPTANCE,
            match_type=MatchType.PREFERRED,
            preferred_choice_order=1,
            auto_reject_at=NOW - timedelta(minutes=5),
        )

        result = await sweep_expired_matches(service)

        assert result.to_dict() == {
            "expired": 1,
            "reassigned": 0,
            "manual_required": 1,
            "errors": 0,
        }
        assert (await service.get_match(overdue.id)).status == MatchStatus.AUTO_REJECTED
        assert notifier.manual_required == [(program.id, withdrawn.id)]
        assert notifier.mentor_notified == []
        assert (await sweep_expired_matches(service)).expired == 0

    async def test_nothing_due(self, service, clock, overdue) -> None:
        clock.advance(hours=-3)
        result = await sweep_expired_matches(service)
        assert result.expired == 0
