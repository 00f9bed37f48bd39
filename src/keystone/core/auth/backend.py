"""JWT verification for bearer tokens.

Tokens are issued by the platform's authentication service; this
service only verifies them. ``create_access_token`` produces the same
format for tests and local tooling.
"""

import secrets
from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt

from keystone.config import settings
from keystone.core.auth.schemas import TokenData
from keystone.core.constants import ACCESS_TOKEN_JTI_LENGTH


ACCESS_TOKEN_TYPE = "access"


def create_access_token(actor_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Create a signed access token naming ``actor_id`` as its subject.

    Args:
        actor_id: The actor's UUID
        expires_delta: Lifetime; defaults to ``access_token_expire_minutes``

    Returns:
        Encoded JWT
    """
    now = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = {
        "sub": str(actor_id),
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + lifetime,
        "jti": secrets.token_urlsafe(ACCESS_TOKEN_JTI_LENGTH),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenData | None:
    """Verify an access token and extract the caller.

    Signature, expiry, subject and token type are all checked; refresh
    or otherwise typed tokens never identify a caller.

    Returns:
        TokenData for a valid access token, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        token_type = payload.get("type", ACCESS_TOKEN_TYPE)
        if token_type != ACCESS_TOKEN_TYPE or payload.get("exp") is None:
            return None

        return TokenData(
            actor_id=UUID(payload["sub"]),
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            type=token_type,
            jti=payload.get("jti"),
        )
    except (JWTError, KeyError, TypeError, ValueError):
        return None
