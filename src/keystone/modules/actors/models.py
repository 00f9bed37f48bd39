"""Actor database model."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from keystone.core.constants import (
    LEGACY_PRIVILEGE_NONE,
    MAX_EMAIL_LENGTH,
    MAX_NAME_LENGTH,
)
from keystone.core.database.base import Base, TimestampMixin, UUIDMixin


class Actor(Base, UUIDMixin, TimestampMixin):
    """An authenticated principal of the admin platform.

    Attributes:
        email: Unique email address
        full_name: Display name
        is_active: Whether the actor may act at all
        is_superadmin: Superadmin override; bypasses permission evaluation
        privilege_level: Deprecated coarse tier (0-3). Kept while handlers
            migrate to granular permissions; never read by the evaluator.
    """

    __tablename__ = "actors"

    email: Mapped[str] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    full_name: Mapped[str] = mapped_column(
        String(MAX_NAME_LENGTH),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_superadmin: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    privilege_level: Mapped[int] = mapped_column(
        Integer,
        default=LEGACY_PRIVILEGE_NONE,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Actor(id={self.id}, email={self.email})>"
