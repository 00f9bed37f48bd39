"""Authentication schemas for token handling."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Data extracted from a JWT token.

    Attributes:
        actor_id: The actor's UUID
        exp: Token expiration time
        type: Token type; only "access" tokens identify a caller
        jti: Unique token ID
    """

    actor_id: UUID
    exp: datetime
    type: str = "access"
    jti: str | None = None
