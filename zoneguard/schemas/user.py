"""
Pydantic schemas for user management endpoints.

These schemas control what user data is exposed through the API.
password_hash is NEVER included in any response schema. This is a
critical security boundary.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from zoneguard.models.user import Role


class UserCreateRequest(BaseModel):
    """Request body for POST /users."""
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)
    # Plain string so an unknown role reaches the service and fails as "invalid role"
    role: str
    zones: list[str] | None = None


class UserUpdateRequest(BaseModel):
    """Request body for PUT /users/{user_id}. Replaces the zone set."""
    zones: list[str] | None = None


class UserResponse(BaseModel):
    """Public representation of a User (never includes the password hash)."""
    id: str
    username: str
    role: Role
    zones: list[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """Response body for GET /users."""
    results: list[UserResponse]
    total_results: int = Field(alias="totalResults")

    model_config = ConfigDict(populate_by_name=True)
