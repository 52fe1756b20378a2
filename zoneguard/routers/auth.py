"""
Authentication router — the login endpoint.

This is the only public (unauthenticated) endpoint besides /health.
Everything else requires a valid bearer token.

Endpoints:
  POST /auth/login   — Authenticate and get a token

Security audit notes:
  - Plaintext passwords exist only in memory during request processing;
    they are verified against the stored hash and never logged.
  - Tokens appear only in response bodies, which are not logged by
    uvicorn (it logs method, path, and status code only).
"""

from fastapi import APIRouter, Depends

from zoneguard.dependencies import get_user_service
from zoneguard.schemas.auth import LoginRequest, LoginResponse
from zoneguard.services.user_service import UserService

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    service: UserService = Depends(get_user_service),
):
    """
    Authenticate with username and password.

    Returns a bearer token that must be included in the Authorization
    header of every administrative request:

        Authorization: Bearer <token>

    The token expires after ACCESS_TOKEN_EXPIRE_MINUTES (default: 30).
    """
    user, token = await service.authenticate(
        username=request.username,
        password=request.password,
    )

    return LoginResponse(
        username=user.username,
        token=token,
        zones=user.zones,
        role=user.role,
    )
