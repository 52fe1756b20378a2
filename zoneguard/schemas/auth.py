"""
Pydantic schemas for the login endpoint.

Pydantic validates incoming data automatically. If a required field is
missing or the wrong type, FastAPI rejects the request (with 400, see
exceptions.py) before our code runs.
"""

from pydantic import BaseModel, Field

from zoneguard.models.user import Role


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    """Response body for a successful login: the token plus who it was issued to."""
    username: str
    token: str
    zones: list[str]
    role: Role
