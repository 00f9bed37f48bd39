"""Actor repository for database operations."""

from uuid import UUID

from sqlalchemy import select

from keystone.api.dependencies import DBSession
from keystone.modules.actors.models import Actor


class ActorRepository:
    """Repository for Actor lookups."""

    def __init__(self, session: DBSession) -> None:
        self.session = session

    async def get_by_id(self, actor_id: UUID) -> Actor | None:
        """Get an actor by ID.

        Args:
            actor_id: The actor's UUID

        Returns:
            Actor if found, None otherwise
        """
        stmt = select(Actor).where(Actor.id == actor_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Actor | None:
        """Get an actor by email address."""
        result = await self.session.execute(select(Actor).where(Actor.email == email))
        return result.scalar_one_or_none()
