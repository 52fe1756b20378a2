"""
User service — operator account lifecycle and login.

This module contains the core business logic, separated from HTTP concerns.
Routers call these methods and the registered exception handlers translate
the domain errors into HTTP responses, so the logic can be tested without
a web server.

UserService is built once at startup and holds its collaborators (the
repository and the token issuer) by reference. Every gated operation takes
the caller's RequestIdentity as its first argument and checks it before
touching storage.

Create flow:
  1. Require the ADMIN role
  2. Validate the role being granted and normalize the zone list
  3. Hash the password with Argon2id (in the thread pool)
  4. Assign a new UUID and insert; the store's UNIQUE constraint rejects
     duplicate usernames

Login flow:
  1. Look up the user by username
  2. Verify the password against the stored hash
  3. Issue a token carrying the user's username and role

Security notes:
  - Login returns the same error for "unknown username" and "wrong password"
    to prevent username enumeration. Unknown usernames still pay for one
    hash verification so the two cases take comparable time.
  - Tokens are not revalidated against the store. Deleting a user or
    changing a role leaves existing tokens valid until they expire.
"""

import uuid
from collections.abc import Iterable

import structlog
from fastapi.concurrency import run_in_threadpool

from zoneguard.exceptions import (
    AuthorizationError,
    DuplicateKeyError,
    DuplicateUsernameError,
    InternalError,
    InvalidCredentialsError,
    InvalidRoleError,
    RecordNotFoundError,
    StorageError,
    UserDeletionError,
    UserNotFoundError,
)
from zoneguard.models.user import Role, User
from zoneguard.repositories.user_repository import UserRepository
from zoneguard.security import (
    RequestIdentity,
    TokenIssuer,
    has_role,
    hash_password,
    verify_password,
)

logger = structlog.get_logger(__name__)

# Role required for every account-management operation
MANAGE_USERS_ROLE = Role.ADMIN


def normalize_zones(zones: Iterable[str] | None) -> list[str]:
    """Return zones as a duplicate-free list in first-seen order; None becomes []."""
    if zones is None:
        return []
    return list(dict.fromkeys(zones))


class UserService:
    """Creates, lists, updates and deletes operator accounts, and logs operators in."""

    def __init__(self, repository: UserRepository, token_issuer: TokenIssuer) -> None:
        self.repository = repository
        self.token_issuer = token_issuer
        # Verified against when the username is unknown, so both login
        # failures cost one hash verification
        self._dummy_hash = hash_password(uuid.uuid4().hex)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, username: str, password: str) -> tuple[User, str]:
        """
        Verify an operator's credentials and issue a token.

        Args:
            username: The login key.
            password: Plaintext password to verify.

        Returns:
            Tuple of (User instance, signed token string).

        Raises:
            InvalidCredentialsError: If the username is unknown or the
                password is wrong. Both look identical to the caller.
            TokenSigningError: If the token cannot be signed.
            InternalError: If the store fails.
        """
        try:
            user = await self.repository.get_user_by_username(username)
        except RecordNotFoundError:
            # Burn a verification anyway so response timing doesn't reveal
            # whether the username exists
            await run_in_threadpool(verify_password, password, self._dummy_hash)
            logger.info("login_failed", reason="unknown_user")
            raise InvalidCredentialsError() from None
        except StorageError as exc:
            raise InternalError("unable to look up user") from exc

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("login_failed", reason="bad_password", user_id=user.id)
            raise InvalidCredentialsError()

        token = self.token_issuer.generate_token(user.username, user.role)
        logger.info("login_succeeded", user_id=user.id, role=user.role.value)
        return user, token

    # ------------------------------------------------------------------
    # Account lifecycle (ADMIN only)
    # ------------------------------------------------------------------

    async def create_user(
        self,
        identity: RequestIdentity | None,
        username: str,
        password: str,
        role: Role | str,
        zones: Iterable[str] | None = None,
    ) -> User:
        """
        Create a new operator account.

        Raises:
            AuthorizationError: If the caller is not an ADMIN.
            InvalidRoleError: If role is not a recognized role.
            DuplicateUsernameError: If the username is taken. The existing
                record is left untouched.
            PasswordHashingError / InternalError: On hashing or store failure.
        """
        self._authorize(identity, "create_user")
        return await self._create_user(username, password, role, zones)

    async def get_users(self, identity: RequestIdentity | None) -> list[User]:
        """
        List every operator account, ordered by username.

        Returned objects still carry password_hash; routers must serialize
        them through UserResponse, which leaves it out.
        """
        self._authorize(identity, "get_users")
        try:
            return await self.repository.get_users()
        except StorageError as exc:
            raise InternalError("unable to get users") from exc

    async def update_user(
        self,
        identity: RequestIdentity | None,
        user_id: str,
        zones: Iterable[str] | None,
    ) -> User:
        """
        Replace a user's zone set wholesale (not merged).

        No other field can change through this operation.

        Raises:
            AuthorizationError: If the caller is not an ADMIN.
            UserNotFoundError: If no user has this id.
            InternalError: If the store fails.
        """
        caller = self._authorize(identity, "update_user")
        try:
            user = await self.repository.get_user_by_id(user_id)
        except RecordNotFoundError:
            raise UserNotFoundError(user_id) from None
        except StorageError as exc:
            raise InternalError("unable to look up user") from exc

        user.zones = normalize_zones(zones)

        try:
            user = await self.repository.save_user(user)
        except RecordNotFoundError:
            # Deleted between the lookup and the write
            raise UserNotFoundError(user_id) from None
        except StorageError as exc:
            raise InternalError("unable to store user") from exc

        logger.info("user_updated", user_id=user.id, zones=user.zones, by=caller.username)
        return user

    async def delete_user(self, identity: RequestIdentity | None, user_id: str) -> None:
        """
        Delete a user by id.

        Raises:
            AuthorizationError: If the caller is not an ADMIN.
            UserNotFoundError: If no user has this id; nothing is changed.
            UserDeletionError: If the store fails for any other reason.
        """
        caller = self._authorize(identity, "delete_user")
        try:
            await self.repository.delete_user(user_id)
        except RecordNotFoundError:
            raise UserNotFoundError(user_id) from None
        except StorageError as exc:
            raise UserDeletionError() from exc

        logger.info("user_deleted", user_id=user_id, by=caller.username)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def ensure_bootstrap_admin(self, username: str, password: str) -> User | None:
        """
        Create the first ADMIN when the store is empty.

        Runs at startup, before anyone can hold a token, so it bypasses the
        role check. Does nothing (returns None) once any user exists.
        """
        try:
            existing = await self.repository.count_users()
        except StorageError as exc:
            raise InternalError("unable to count users") from exc
        if existing:
            return None

        try:
            user = await self._create_user(username, password, Role.ADMIN, None)
        except DuplicateUsernameError:
            # Another worker bootstrapped first
            return None
        logger.info("bootstrap_admin_created", user_id=user.id)
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _authorize(self, identity: RequestIdentity | None, operation: str) -> RequestIdentity:
        """Return the identity if it holds MANAGE_USERS_ROLE, else raise AuthorizationError."""
        if not has_role(identity, MANAGE_USERS_ROLE):
            logger.info(
                "operation_refused",
                operation=operation,
                username=identity.username if identity else None,
                role=identity.role.value if identity else None,
            )
            raise AuthorizationError()
        return identity

    async def _create_user(
        self,
        username: str,
        password: str,
        role: Role | str,
        zones: Iterable[str] | None,
    ) -> User:
        try:
            role = Role(role)
        except ValueError:
            raise InvalidRoleError(str(role)) from None

        password_hash = await run_in_threadpool(hash_password, password)

        user = User(
            id=str(uuid.uuid4()),
            username=username,
            password_hash=password_hash,
            role=role,
            zones=normalize_zones(zones),
        )

        try:
            user = await self.repository.create_user(user)
        except DuplicateKeyError:
            logger.info("user_create_conflict")
            raise DuplicateUsernameError(username) from None
        except StorageError as exc:
            raise InternalError("unable to store user") from exc

        logger.info("user_created", user_id=user.id, role=user.role.value)
        return user
