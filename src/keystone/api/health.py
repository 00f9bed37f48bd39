"""Health and info endpoints.

Public by design and mounted without the /api/v1 prefix; the module
name is on the consistency auditor's allow-list.
"""

from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from keystone import __version__
from keystone.api.dependencies import DBSession
from keystone.config import settings
from keystone.core.permissions.models import Permission


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns 200 if the process is running.",
)
async def liveness() -> HealthResponse:
    return HealthResponse(status="alive")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description=(
        "Checks that the policy store is reachable and the permission catalog "
        "is seeded. Without a catalog every permission check denies."
    ),
)
async def readiness(db: DBSession) -> JSONResponse:
    checks: dict[str, str] = {}

    try:
        catalog_size = (
            await db.execute(select(func.count()).select_from(Permission))
        ).scalar_one()
        checks["database"] = "ok"
        checks["catalog"] = "ok" if catalog_size else "empty"
    except SQLAlchemyError as e:
        checks["database"] = type(e).__name__

    ready = all(value == "ok" for value in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )


@router.get("/info", summary="Application info")
async def info() -> dict[str, Any]:
    """Application name, version and environment."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "authorization_timeout_seconds": settings.authorization_timeout_seconds,
    }
