"""Request logging middleware.

One ``request_completed`` line per request. ``request_id`` and
``actor_id`` come from the structlog context bound by the middlewares
in ``keystone.core.auth.middleware``; the authorization decision comes
from the ``PermissionContext`` the gateway leaves on ``request.state``.
"""

import time
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint


logger = structlog.get_logger()

DEFAULT_EXCLUDED_PATHS = ("/health/", "/docs", "/redoc", "/openapi.json")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status, duration and the permissions checked.

    Attributes:
        exclude_paths: Path prefixes that are not logged (probes, docs)
    """

    def __init__(self, app: Any, exclude_paths: tuple[str, ...] | None = None) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or DEFAULT_EXCLUDED_PATHS

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path.startswith(self.exclude_paths):
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=_elapsed_ms(start),
            )
            raise

        event: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": _elapsed_ms(start),
            "client_ip": get_client_ip(request),
        }

        context = getattr(request.state, "permission_context", None)
        if context is not None:
            event["authorization"] = {
                "mode": context.mode.value,
                "checks": sorted(context.results),
            }

        if response.status_code >= 500:
            logger.error("request_completed", **event)
        elif response.status_code >= 400:
            logger.warning("request_completed", **event)
        else:
            logger.info("request_completed", **event)

        return response


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def get_client_ip(request: Request) -> str | None:
    """Client address, honoring X-Forwarded-For from the proxy in front."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
