"""Batch matching for a whole program, and the expiry sweep for overdue requests."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import asdict, dataclass

import structlog

from mentor_match.modules.matching.exceptions import ActiveMatchExists
from mentor_match.modules.matching.repository import MatchingRepository
from mentor_match.modules.matching.service import (
    CascadeOutcome,
    MatchingService,
    validate_matching_window,
)

logger = structlog.get_logger()


@dataclass
class BatchResult:
    total_mentees: int = 0
    pending: int = 0
    needs_manual: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class SweepResult:
    expired: int = 0
    reassigned: int = 0
    manual_required: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


async def initiate_matching(
    service: MatchingService,
    program_id: uuid.UUID,
    *,
    enforce_window: bool = True,
    tenant_id: uuid.UUID | None = None,
) -> BatchResult:
    """Create a pending match for every approved mentee who has no active match.

    Mentees are independent: each gets its own transaction, and a failure for
    one is logged and counted without stopping the others.
    """
    program = await service.get_program(program_id, tenant_id)
    if enforce_window:
        validate_matching_window(program, service.clock())

    async with service.session_factory() as session:
        registrations = await MatchingRepository(session).list_approved_mentees(program_id)

    result = BatchResult(total_mentees=len(registrations))
    semaphore = asyncio.Semaphore(service.config.batch_concurrency)
    logger.info("batch_matching_start", program_id=str(program_id), mentees=len(registrations))

    async def _match_one(registration_id: uuid.UUID) -> None:
        async with semaphore:
            try:
                match = await service.create_match_request(program_id, registration_id)
            except ActiveMatchExists:
                result.skipped += 1
                return
            except Exception as exc:
                result.errors += 1
                logger.error(
                    "batch_matching_mentee_failed",
                    program_id=str(program_id),
                    mentee_registration_id=str(registration_id),
                    error=str(exc),
                )
                return
        if match is None:
            result.needs_manual += 1
        else:
            result.pending += 1

    await asyncio.gather(*(_match_one(reg.id) for reg in registrations))

    logger.info("batch_matching_complete", program_id=str(program_id), **result.to_dict())
    return result


async def sweep_expired_matches(service: MatchingService) -> SweepResult:
    """Auto-reject every pending match past its deadline.

    Safe to run repeatedly or concurrently: each match is moved by a
    conditional update, and only the caller that moved it runs the cascade.
    A cascade that failed still counts the match as expired and, since
    coordinators were asked to step in, as manual_required.
    """
    async with service.session_factory() as session:
        match_ids = await MatchingRepository(session).expired_pending_match_ids(service.clock())

    result = SweepResult()
    for match_id in match_ids:
        try:
            transition = await service.expire_match(match_id)
        except Exception as exc:
            result.errors += 1
            logger.error("match_expiry_failed", match_id=str(match_id), error=str(exc))
            continue
        if transition is None:
            continue

        result.expired += 1
        if transition.cascade is None:
            continue
        if transition.cascade.outcome == CascadeOutcome.REASSIGNED:
            result.reassigned += 1
        elif transition.cascade.outcome in (CascadeOutcome.MANUAL_REQUIRED, CascadeOutcome.FAILED):
            result.manual_required += 1

    if match_ids:
        logger.info("expiry_sweep_complete", candidates=len(match_ids), **result.to_dict())
    return result
