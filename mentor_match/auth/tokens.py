"""HS256 bearer token verification.

Tokens are issued by the alumni platform's auth service with the shared
SECRET_KEY. Claims used here: ``sub`` (user id), ``tenant_id``, ``role``, ``email``.
"""

from datetime import timedelta

import structlog
from jose import JWTError, jwt

from mentor_match.core.config import settings
from mentor_match.models.base import utcnow

logger = structlog.get_logger()

REQUIRED_CLAIMS = ("sub", "tenant_id", "role")


def verify_token(token: str) -> dict:
    """Decode and verify a token, raising JWTError on any failure."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        raise JWTError(f"Token missing claims: {', '.join(missing)}")
    return payload


def create_token(claims: dict, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Sign a token with the shared secret. Used by tooling and tests."""
    payload = {**claims, "exp": utcnow() + expires_in}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
