"""FastAPI application factory.

Run with ``uvicorn keystone.main:create_app --factory``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keystone import __version__
from keystone.api.router import api_router
from keystone.config import settings
from keystone.core.auth import ActorContextMiddleware, RequestIdMiddleware
from keystone.core.database import async_engine
from keystone.core.errors import register_exception_handlers
from keystone.core.logging import RequestLoggingMiddleware, configure_logging


logger = structlog.get_logger()

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup and release the connection pool on shutdown."""
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        version=__version__,
        environment=settings.environment,
        authorization_timeout_seconds=settings.authorization_timeout_seconds,
        role_name_case_sensitive=settings.role_name_case_sensitive,
    )
    try:
        yield
    finally:
        await async_engine.dispose()
        logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Build the application: logging, middleware, error handlers, routes.

    Middleware runs outermost first in this order: request ID, actor
    context, request logging, CORS. The request ID therefore reaches
    every log line of the request.
    """
    configure_logging()

    docs_enabled = not settings.is_production
    app = FastAPI(
        title=settings.app_name,
        description="Role-based authorization for the admin platform",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins
        or (DEV_CORS_ORIGINS if settings.is_development else []),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    # add_middleware prepends: the last one added runs first
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    return app
