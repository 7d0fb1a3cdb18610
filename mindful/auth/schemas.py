"""Pydantic schemas for authentication."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from mindful.auth.permissions import UserRole


class UserResponse(BaseModel):
    """Authenticated user, built from access token claims."""

    model_config = ConfigDict(use_enum_values=True)

    id: UUID
    email: str
    role: UserRole
