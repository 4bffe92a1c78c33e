"""Celery tasks for Matching: expiry sweep and program batch runs."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mentor_match.core.config import settings
from mentor_match.modules.matching import batch
from mentor_match.modules.matching.notifier import build_collaboration_spaces, build_notifier
from mentor_match.modules.matching.service import MatchingConfig, MatchingService

logger = structlog.get_logger()


@asynccontextmanager
async def _matching_service() -> AsyncIterator[MatchingService]:
    """Service bound to a per-run engine.

    Each task invocation runs its own event loop, so pooled connections from
    a previous loop cannot be reused.
    """
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    try:
        yield MatchingService(
            async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
            MatchingConfig.from_settings(),
            notifier=build_notifier(),
            spaces=build_collaboration_spaces(),
        )
    finally:
        await engine.dispose()


@shared_task(
    bind=True,
    name="mentor_match.modules.matching.tasks.sweep_expired_matches",
    max_retries=2,
    default_retry_delay=60,
)
def sweep_expired_matches(self) -> dict:
    """Scheduled on beat. Auto-reject overdue requests and cascade preferred ones."""

    async def _run() -> dict:
        async with _matching_service() as svc:
            result = await batch.sweep_expired_matches(svc)
        return result.to_dict()

    try:
        return asyncio.run(_run())
    except Exception as exc:
        logger.error("expiry_sweep_failed", error=str(exc))
        raise self.retry(exc=exc)


@shared_task(name="mentor_match.modules.matching.tasks.initiate_matching")
def initiate_matching(program_id: str, enforce_window: bool = True) -> dict:
    """Run the batch for one program in the background.

    Not retried: a partial run is already committed per mentee, and rerunning
    by hand skips everyone who was matched.
    """

    async def _run() -> dict:
        async with _matching_service() as svc:
            result = await batch.initiate_matching(
                svc, uuid.UUID(program_id), enforce_window=enforce_window
            )
        return result.to_dict()

    return asyncio.run(_run())
