"""Identity resolution for incoming requests.

Tokens are issued by the platform's authentication service; this
package only verifies them and turns them into an actor.
"""

from keystone.core.auth.backend import create_access_token, decode_token
from keystone.core.auth.dependencies import OptionalActor, get_optional_actor
from keystone.core.auth.middleware import ActorContextMiddleware, RequestIdMiddleware
from keystone.core.auth.schemas import TokenData


__all__ = [
    "ActorContextMiddleware",
    "OptionalActor",
    "RequestIdMiddleware",
    "TokenData",
    "create_access_token",
    "decode_token",
    "get_optional_actor",
]
