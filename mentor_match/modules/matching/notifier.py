"""Outbound collaborators: match notifications and collaboration spaces.

Email delivery and community/chat creation are owned by other services. When
their URLs are configured we post JSON events to them with httpx; otherwise the
events are only logged.
"""

from __future__ import annotations

import uuid
from typing import Protocol

import httpx
import structlog

from mentor_match.core.config import Settings, settings as default_settings

logger = structlog.get_logger()


class MatchNotifier(Protocol):
    async def notify_mentor_of_match(self, match_id: uuid.UUID) -> None: ...

    async def notify_mentee_of_acceptance(self, match_id: uuid.UUID) -> None: ...

    async def notify_coordinators_manual_matching_required(
        self, program_id: uuid.UUID, mentee_registration_id: uuid.UUID
    ) -> None: ...


class CollaborationSpaces(Protocol):
    async def create_collaboration_space(self, match_id: uuid.UUID) -> str | None: ...


# ── Logging-only implementations ─────────────────────────────────────────────


class LoggingNotifier:
    async def notify_mentor_of_match(self, match_id: uuid.UUID) -> None:
        logger.info("notify_mentor_of_match", match_id=str(match_id))

    async def notify_mentee_of_acceptance(self, match_id: uuid.UUID) -> None:
        logger.info("notify_mentee_of_acceptance", match_id=str(match_id))

    async def notify_coordinators_manual_matching_required(
        self, program_id: uuid.UUID, mentee_registration_id: uuid.UUID
    ) -> None:
        logger.info(
            "notify_coordinators_manual_matching_required",
            program_id=str(program_id),
            mentee_registration_id=str(mentee_registration_id),
        )


class NullCollaborationSpaces:
    async def create_collaboration_space(self, match_id: uuid.UUID) -> str | None:
        logger.info("collaboration_space_skipped", match_id=str(match_id))
        return None


# ── HTTP implementations ─────────────────────────────────────────────────────


class WebhookNotifier:
    """Posts ``{"event": ..., ...}`` payloads to a single notification endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def _post(self, event: str, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(self.url, json={"event": event, **payload})
            resp.raise_for_status()
        logger.info("notification_sent", notification_event=event, status_code=resp.status_code)

    async def notify_mentor_of_match(self, match_id: uuid.UUID) -> None:
        await self._post("mentor_match.requested", {"match_id": str(match_id)})

    async def notify_mentee_of_acceptance(self, match_id: uuid.UUID) -> None:
        await self._post("mentor_match.accepted", {"match_id": str(match_id)})

    async def notify_coordinators_manual_matching_required(
        self, program_id: uuid.UUID, mentee_registration_id: uuid.UUID
    ) -> None:
        await self._post(
            "mentor_match.manual_required",
            {
                "program_id": str(program_id),
                "mentee_registration_id": str(mentee_registration_id),
            },
        )


class HttpCollaborationSpaces:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def create_collaboration_space(self, match_id: uuid.UUID) -> str | None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(
                f"{self.base_url}/spaces",
                json={"kind": "mentoring", "match_id": str(match_id)},
            )
            resp.raise_for_status()
            space_id = resp.json().get("id")
        logger.info("collaboration_space_created", match_id=str(match_id), space_id=space_id)
        return str(space_id) if space_id is not None else None


def build_notifier(settings: Settings = default_settings) -> MatchNotifier:
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotifier(
            settings.NOTIFICATION_WEBHOOK_URL, timeout=settings.COLLABORATOR_TIMEOUT_SECONDS
        )
    return LoggingNotifier()


def build_collaboration_spaces(settings: Settings = default_settings) -> CollaborationSpaces:
    if settings.COLLABORATION_SERVICE_URL:
        return HttpCollaborationSpaces(
            settings.COLLABORATION_SERVICE_URL, timeout=settings.COLLABORATOR_TIMEOUT_SECONDS
        )
    return NullCollaborationSpaces()
