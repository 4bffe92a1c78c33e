"""Matching engine errors.

Each carries the HTTP status and error code the API answers with; batch and
sweep code catches them per mentee / per match.
"""

from __future__ import annotations

import uuid


class MatchingError(Exception):
    """Base class for all matching engine errors."""

    status_code = 400
    error_code = "matching_error"


class NotFound(MatchingError, LookupError):
    status_code = 404
    error_code = "not_found"

    def __init__(self, entity: str, entity_id: uuid.UUID | str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidState(MatchingError):
    status_code = 409
    error_code = "invalid_state"

    def __init__(self, match_id: uuid.UUID, status: str, expected: str) -> None:
        self.match_id = match_id
        self.status = status
        super().__init__(f"Match {match_id} is {status}, expected {expected}")


class NotAuthorized(MatchingError):
    status_code = 403
    error_code = "not_authorized"


class CapacityExceeded(MatchingError):
    status_code = 409
    error_code = "capacity_exceeded"

    def __init__(self, mentor_id: uuid.UUID, max_mentees: int) -> None:
        self.mentor_id = mentor_id
        self.max_mentees = max_mentees
        super().__init__(
            f"Mentor {mentor_id} has reached the maximum capacity of "
            f"{max_mentees} mentees per program"
        )


class ActiveMatchExists(MatchingError):
    """The mentee already has a pending or accepted match in this program."""

    status_code = 409
    error_code = "active_match_exists"

    def __init__(self, program_id: uuid.UUID, mentee_id: uuid.UUID) -> None:
        self.program_id = program_id
        self.mentee_id = mentee_id
        super().__init__(f"Mentee {mentee_id} already has an active match in program {program_id}")


class MatchingWindowClosed(MatchingError, ValueError):
    status_code = 422
    error_code = "matching_window_closed"


class InvalidPreferences(MatchingError, ValueError):
    status_code = 422
    error_code = "invalid_preferences"
