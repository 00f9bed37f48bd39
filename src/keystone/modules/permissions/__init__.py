"""Permission catalog endpoints."""

from keystone.modules.permissions.routes import router


__all__ = ["router"]
