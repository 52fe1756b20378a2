"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. init_models() can discover them through Base.metadata
  2. Other modules can import from zoneguard.models directly
"""

from zoneguard.models.user import Role, User  # noqa: F401
