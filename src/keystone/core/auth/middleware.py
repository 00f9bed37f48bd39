"""Request context middleware.

``RequestIdMiddleware`` gives every request an ID; ``ActorContextMiddleware``
records which actor the bearer token names. Both only feed logging:
whether the actor may do anything is decided by the enforcement gateway.
"""

import re
import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from keystone.core.auth.backend import decode_token


if TYPE_CHECKING:
    from starlette.types import ASGIApp


REQUEST_ID_HEADER = "X-Request-ID"

# Client supplied IDs end up in log lines; anything else is replaced
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Bind the actor ID claimed by the bearer token to the log context.

    The token is only decoded here, not checked against the policy
    store; an inactive actor still shows up in the logs of the request
    the gateway rejects.

    Attributes:
        exclude_paths: Path prefixes that never carry an actor
    """

    def __init__(
        self,
        app: "ASGIApp",
        exclude_paths: tuple[str, ...] = ("/health/", "/docs", "/redoc", "/openapi.json"),
    ) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if not request.url.path.startswith(self.exclude_paths):
            scheme, _, token = request.headers.get("Authorization", "").partition(" ")
            token_data = decode_token(token) if scheme.lower() == "bearer" and token else None
            if token_data:
                request.state.actor_id = token_data.actor_id
                structlog.contextvars.bind_contextvars(actor_id=str(token_data.actor_id))

        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID.

    A well-formed incoming X-Request-ID is kept so IDs follow a request
    across services. The ID is stored on ``request.state`` (as both
    ``request_id`` and ``trace_id``), bound to the log context and echoed
    in the response header.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if _REQUEST_ID_PATTERN.match(incoming) else uuid.uuid4().hex

        request.state.request_id = request_id
        request.state.trace_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
