"""
User model — an operator account.

Each User is a login credential (username + hashed password) with a role
and the set of zones the operator may act upon.

Roles:
  - ADMIN: Manages operator accounts (create, list, update zones, delete)
  - ZONE_ADMIN: Operates devices within its assigned zones

There is no role hierarchy: an ADMIN does not implicitly hold ZONE_ADMIN.

The password is stored as an Argon2id hash, never in plaintext. The id is a
UUID4 string assigned by the service layer at creation and never changed; it
is the only stable handle other records should reference.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from zoneguard.database import Base


class Role(str, enum.Enum):
    """
    The closed set of roles an operator can hold.

    Inherits from str so the enum value serializes naturally to JSON
    and can be stored as a simple string in the database.
    """
    ADMIN = "admin"
    ZONE_ADMIN = "zone_admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
    )

    # Login key. UNIQUE makes the store the arbiter for concurrent signups;
    # SQLite compares with BINARY collation, so usernames are case-sensitive.
    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
    )

    # Zone identifiers, deduplicated; [] when the operator has none
    zones: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
