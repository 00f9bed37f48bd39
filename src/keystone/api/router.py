"""Root API router with health endpoints and module mounting."""

from fastapi import APIRouter

from keystone.api.health import router as health_router
from keystone.modules import discover_modules


# Create root API router
api_router = APIRouter()

# Create versioned API router
v1_router = APIRouter(prefix="/api/v1")

# Mount discovered module routers
for module_router in discover_modules():
    v1_router.include_router(module_router)

# Include routers in main api_router
api_router.include_router(health_router)
api_router.include_router(v1_router)
