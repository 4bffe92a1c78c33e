"""FastAPI auth dependencies: get_current_user, require_role."""

import uuid

import sentry_sdk
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from mentor_match.auth.tokens import verify_token
from mentor_match.models.enums import UserRole
from mentor_match.schemas.auth import CurrentUser

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=True)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Verify the bearer JWT and build the request's user context.

    The token is the only source of identity; user and registration records
    are owned by the platform, not by this service.
    """
    try:
        payload = verify_token(credentials.credentials)
        current_user = CurrentUser(
            user_id=uuid.UUID(str(payload["sub"])),
            tenant_id=uuid.UUID(str(payload["tenant_id"])),
            role=UserRole(payload["role"]),
            email=payload.get("email", ""),
        )
    except (JWTError, ValueError) as e:
        logger.warning("jwt_verification_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Enrich Sentry scope with identity (PII-free: no email)
    sentry_sdk.set_user({"id": str(current_user.user_id)})
    sentry_sdk.set_tag("tenant_id", str(current_user.tenant_id))
    sentry_sdk.set_tag("user_role", current_user.role.value)

    return current_user


def require_role(allowed_roles: list[UserRole]):
    """
    Dependency factory: checks if current user has one of the allowed roles.

    Usage:
        @router.post("/{program_id}/initiate", dependencies=[Depends(require_role([UserRole.COORDINATOR]))])
    """

    async def _check_role(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role.value}' not authorized. Required: {[r.value for r in allowed_roles]}",
            )
        return current_user

    return _check_role


require_coordinator = require_role([UserRole.ADMIN, UserRole.COORDINATOR])
