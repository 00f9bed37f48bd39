"""FastAPI dependencies for identity resolution.

The enforcement gateway asks these dependencies "who is calling" and
decides by itself what a missing identity means.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from keystone.api.dependencies import DBSession
from keystone.core.auth.backend import decode_token
from keystone.modules.actors.models import Actor
from keystone.modules.actors.repos import ActorRepository


# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: DBSession,
) -> Actor | None:
    """Get the calling actor if a valid access token was presented.

    Args:
        credentials: Optional bearer token credentials
        db: Database session

    Returns:
        The active actor, or None when there is no usable identity
    """
    if not credentials:
        return None

    token_data = decode_token(credentials.credentials)
    if not token_data:
        return None

    repo = ActorRepository(db)
    actor = await repo.get_by_id(token_data.actor_id)

    if not actor or not actor.is_active:
        return None

    return actor


OptionalActor = Annotated[Actor | None, Depends(get_optional_actor)]
