"""Auth schemas: CurrentUser."""

import uuid

from pydantic import BaseModel

from mentor_match.models.enums import UserRole


class CurrentUser(BaseModel):
    """Lightweight user context extracted from the platform's bearer JWT."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    role: UserRole
    email: str
