"""
Persistence layer for User records.

Pattern: Repository. UserRepository is the only code that talks to
SQLAlchemy; the service layer never builds queries or sees ORM errors.

Every method opens its own short-lived session from the factory it was
built with, so one repository instance is safely shared by concurrent
requests.

Errors:
  Engine-specific exceptions are translated into the small set of storage
  errors in zoneguard.exceptions:
    - IntegrityError on insert         -> DuplicateKeyError
    - no matching row                  -> RecordNotFoundError
    - any other SQLAlchemyError        -> StorageError
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zoneguard.exceptions import DuplicateKeyError, RecordNotFoundError, StorageError
from zoneguard.models.user import User

logger = structlog.get_logger(__name__)


class UserRepository:
    """
    Async repository for User records.

    Usage:
        repo = UserRepository(create_session_factory(engine))
        await repo.create_user(User(id=..., username="alice", ...))
        user = await repo.get_user_by_username("alice")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_user_by_username(self, username: str) -> User:
        """Look up a user by exact username. Raises RecordNotFoundError if absent."""
        return await self._get_one(User.username == username)

    async def get_user_by_id(self, user_id: str) -> User:
        """Look up a user by id. Raises RecordNotFoundError if absent."""
        return await self._get_one(User.id == user_id)

    async def get_users(self) -> list[User]:
        """Return all users ordered by username."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).order_by(User.username))
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise self._storage_error("get_users", exc) from exc

    async def count_users(self) -> int:
        """Return the number of stored users."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(User))
                return result.scalar_one()
        except SQLAlchemyError as exc:
            raise self._storage_error("count_users", exc) from exc

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_user(self, user: User) -> User:
        """
        Insert a new user.

        The UNIQUE constraint on username decides races between concurrent
        inserts: exactly one commits, the others get DuplicateKeyError and
        nothing of theirs is written.
        """
        try:
            async with self._session_factory() as session:
                session.add(user)
                await session.commit()
                return user
        except IntegrityError as exc:
            raise DuplicateKeyError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise self._storage_error("create_user", exc) from exc

    async def save_user(self, user: User) -> User:
        """
        Write the mutable fields of an existing user back to the store.

        Only an UPDATE is issued, never an insert: if the row was deleted
        after the caller read it, RecordNotFoundError is raised and nothing
        is written.
        """
        now = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(User)
                    .where(User.id == user.id)
                    .values(zones=user.zones, updated_at=now)
                )
                updated = result.rowcount
                await session.commit()
        except SQLAlchemyError as exc:
            raise self._storage_error("save_user", exc) from exc

        if updated == 0:
            raise RecordNotFoundError(user.id)
        user.updated_at = now
        return user

    async def delete_user(self, user_id: str) -> None:
        """Delete a user by id. Raises RecordNotFoundError if no row matched."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(User).where(User.id == user_id))
                deleted = result.rowcount
                await session.commit()
        except SQLAlchemyError as exc:
            raise self._storage_error("delete_user", exc) from exc

        if deleted == 0:
            raise RecordNotFoundError(user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_one(self, criterion) -> User:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).where(criterion))
                user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise self._storage_error("get_user", exc) from exc

        if user is None:
            raise RecordNotFoundError()
        return user

    @staticmethod
    def _storage_error(operation: str, exc: SQLAlchemyError) -> StorageError:
        logger.error(
            "storage_failure",
            operation=operation,
            error=exc.__class__.__name__,
            exc_info=exc,
        )
        return StorageError(f"{operation} failed")
