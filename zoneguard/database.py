"""
Database engine, session factory, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - create_engine(): Builds the async engine (connection pool)
  - create_session_factory(): Factory for creating async sessions
  - Base: Declarative base class that all ORM models inherit from
  - init_models(): Creates tables that don't exist yet

Nothing here is a module-level singleton. The lifespan in main.py builds one
engine and one session factory at startup and hands the factory to the
UserRepository, which opens a short-lived session per operation.

Architecture note:
  We use async SQLAlchemy (with aiosqlite for SQLite) so the API can handle
  concurrent requests without blocking. When migrating to PostgreSQL, only
  the DATABASE_URL needs to change (to use the asyncpg driver).
"""

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Provides metadata tracking so init_models() (and Alembic, if added later)
    can discover every table.
    """
    pass


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    For file-backed SQLite the parent directory is created first, since
    SQLite creates the file but not missing directories.
    echo=True logs all SQL statements (only ever the hash, never a password).
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(database_url, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to the engine.

    expire_on_commit=False keeps attributes readable after commit; the
    repository returns detached User objects to the service layer, and without
    this every attribute access would try a lazy reload outside a session.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """
    Create all tables if they don't exist.

    A development convenience; a production deployment would manage schema
    changes with migrations instead.
    """
    # Registers the models on Base.metadata
    import zoneguard.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
