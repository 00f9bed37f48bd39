"""Actor factory for tests."""

from uuid import uuid4

from polyfactory.factories.sqlalchemy_factory import SQLAlchemyFactory

from keystone.core.constants import LEGACY_PRIVILEGE_NONE
from keystone.modules.actors.models import Actor


class ActorFactory(SQLAlchemyFactory[Actor]):
    """Factory for creating test Actor instances."""

    __model__ = Actor
    __set_relationships__ = False

    @classmethod
    def email(cls) -> str:
        """Generate a unique email."""
        return f"actor-{uuid4().hex[:8]}@example.com"

    @classmethod
    def full_name(cls) -> str:
        """Generate a full name."""
        return f"Test Actor {uuid4().hex[:4]}"

    @classmethod
    def is_active(cls) -> bool:
        """Default to active."""
        return True

    @classmethod
    def is_superadmin(cls) -> bool:
        """Default to a regular actor."""
        return False

    @classmethod
    def privilege_level(cls) -> int:
        """Default to no legacy privileges."""
        return LEGACY_PRIVILEGE_NONE
