"""
Users router — operator account management.

All endpoints require the ADMIN role. The identity comes from the bearer
token and is passed explicitly to the UserService, which enforces the role
check before any storage access.

Endpoints:
  GET    /users            — List all operators
  POST   /users            — Create an operator
  PUT    /users/{user_id}  — Replace an operator's zone set
  DELETE /users/{user_id}  — Delete an operator
"""

from fastapi import APIRouter, Depends, status

from zoneguard.dependencies import get_request_identity, get_user_service
from zoneguard.schemas.user import (
    UserCreateRequest,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)
from zoneguard.security import RequestIdentity
from zoneguard.services.user_service import UserService

router = APIRouter()


@router.get(
    "",
    response_model=UserListResponse,
    summary="[Admin] List all users",
)
async def list_users(
    identity: RequestIdentity | None = Depends(get_request_identity),
    service: UserService = Depends(get_user_service),
):
    """List every operator account. Password hashes are never included."""
    users = await service.get_users(identity)
    return UserListResponse(
        results=[UserResponse.model_validate(user) for user in users],
        total_results=len(users),
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Create a user",
)
async def create_user(
    request: UserCreateRequest,
    identity: RequestIdentity | None = Depends(get_request_identity),
    service: UserService = Depends(get_user_service),
):
    """
    Create a new operator account.

    - **username**: Must not already be in use (409 otherwise)
    - **password**: Hashed with Argon2id before storage
    - **role**: "admin" or "zone_admin" (400 otherwise)
    - **zones**: Optional, defaults to an empty list
    """
    return await service.create_user(
        identity,
        username=request.username,
        password=request.password,
        role=request.role,
        zones=request.zones,
    )


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="[Admin] Replace a user's zones",
)
async def update_user(
    user_id: str,
    request: UserUpdateRequest,
    identity: RequestIdentity | None = Depends(get_request_identity),
    service: UserService = Depends(get_user_service),
):
    """Replace the zone set of an operator. Username, role and password are unchanged."""
    return await service.update_user(identity, user_id, request.zones)


@router.delete(
    "/{user_id}",
    response_model=None,
    summary="[Admin] Delete a user",
)
async def delete_user(
    user_id: str,
    identity: RequestIdentity | None = Depends(get_request_identity),
    service: UserService = Depends(get_user_service),
):
    """
    Delete an operator account.

    Tokens already issued to the operator stay valid until they expire.
    """
    await service.delete_user(identity, user_id)
