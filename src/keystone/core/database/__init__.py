"""Database layer - session management, base models, and mixins."""

from keystone.core.database.base import Base, TimestampMixin, UUIDMixin
from keystone.core.database.session import (
    async_engine,
    async_session_factory,
    atomic,
    get_db,
)


__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "async_engine",
    "async_session_factory",
    "atomic",
    "get_db",
]
