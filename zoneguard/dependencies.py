"""
FastAPI dependencies for the service object and the request identity.

Dependencies are reusable functions that FastAPI injects into route handlers:

  get_user_service (app.state -> UserService)
      └── get_request_identity (Bearer token -> RequestIdentity | None)

get_request_identity never rejects a request by itself. A missing,
malformed, expired or tampered token yields None, and the UserService
refuses gated operations for a None identity exactly as it does for a
valid identity with the wrong role. Callers therefore can't tell "no
credential" from "insufficient role".

Tests swap the service through app.dependency_overrides[get_user_service].
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from zoneguard.exceptions import AuthenticationError
from zoneguard.security import RequestIdentity
from zoneguard.services.user_service import UserService


# HTTPBearer reads the "Authorization: Bearer <token>" header. auto_error=False
# hands us None instead of FastAPI's own 403 so refusals stay uniform.
bearer_scheme = HTTPBearer(auto_error=False)


def get_user_service(request: Request) -> UserService:
    """Return the UserService built by the application lifespan."""
    return request.app.state.user_service


def get_request_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    service: UserService = Depends(get_user_service),
) -> RequestIdentity | None:
    """
    Validate the bearer token, if any, and return its identity.

    Returns:
        The RequestIdentity from a valid token, or None for a missing or
        invalid one (the reason is logged by the token issuer).
    """
    if credentials is None:
        return None
    try:
        return service.token_issuer.validate_token(credentials.credentials)
    except AuthenticationError:
        return None
