"""Capacity guard: at most ``max_mentees`` accepted mentees per mentor per program."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog

from mentor_match.modules.matching.exceptions import CapacityExceeded

if TYPE_CHECKING:
    from mentor_match.modules.matching.repository import MatchingRepository

logger = structlog.get_logger()


class CapacityGuard:
    def __init__(self, max_mentees: int) -> None:
        if max_mentees < 1:
            raise ValueError(f"max_mentees must be positive, got {max_mentees}")
        self.max_mentees = max_mentees

    def has_room(self, accepted_count: int) -> bool:
        return accepted_count < self.max_mentees

    async def claim_slot(
        self,
        repo: MatchingRepository,
        program_id: uuid.UUID,
        mentor_id: uuid.UUID,
        mentor_registration_id: uuid.UUID,
    ) -> int:
        """Lock the mentor's registration row, then re-count accepted matches.

        Must run inside the transaction that writes the ACCEPTED status. The row
        lock is held until that transaction ends, so concurrent claims for the
        same mentor run one after another and each sees the previous commit.
        Returns the accepted count observed under the lock.
        """
        await repo.lock_mentor_registration(mentor_registration_id)
        accepted = await repo.get_accepted_count(program_id, mentor_id)
        if not self.has_room(accepted):
            logger.info(
                "mentor_capacity_reached",
                program_id=str(program_id),
                mentor_id=str(mentor_id),
                accepted=accepted,
                max_mentees=self.max_mentees,
            )
            raise CapacityExceeded(mentor_id, self.max_mentees)
        return accepted
