"""Auth package: bearer token verification and FastAPI dependencies."""

from mentor_match.auth.dependencies import get_current_user, require_coordinator, require_role

__all__ = [
    "get_current_user",
    "require_coordinator",
    "require_role",
]
